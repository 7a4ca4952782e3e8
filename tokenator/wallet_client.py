"""
Tokenator - Wallet RPC Client

JSON-RPC client for a wallet daemon exposing createAction / signAction /
listOutputs and the protocol-scoped crypto calls.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .errors import TimeoutFailure, WalletActionFailure
from .token_types import WalletProtocol

log = logging.getLogger(__name__)


def to_byte_array(data: Optional[bytes]) -> Optional[List[int]]:
    """Wallets exchange binary data as arrays of integers."""
    if data is None:
        return None
    return list(data)


def from_byte_array(value: Any) -> Optional[bytes]:
    """Accept an integer array, a hex string or raw bytes."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return bytes.fromhex(value)
    return bytes(value)


def mask_secret(secret: str, visible_prefix: int = 4, visible_suffix: int = 2) -> str:
    """Mask a secret for safe logging."""
    if not secret or len(secret) <= visible_prefix + visible_suffix:
        return "***"
    return f"{secret[:visible_prefix]}...{secret[-visible_suffix:]}"


class JsonRpcWallet:
    """
    Wallet backend reached over JSON-RPC 2.0.

    Usage:
        wallet = JsonRpcWallet("http://localhost:3321", "user", "pass")
        network = await wallet.get_network()
        result = await wallet.create_action("Mint", outputs=[...])
    """

    def __init__(self, url: str = "http://localhost:3321",
                 user: str = "", password: str = "",
                 timeout: float = 30,
                 client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.auth: Optional[Tuple[str, str]] = (user, password) if user else None
        self.timeout = timeout
        self._client = client
        self._id = 0
        if user:
            log.debug(f"Wallet RPC {url} as {user} (password {mask_secret(password)})")

    async def _call(self, method: str, params: Optional[dict] = None) -> Any:
        """Make RPC call."""
        self._id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._id,
            "method": method,
            "params": params or {},
        }

        client = self._client or httpx.AsyncClient()
        try:
            response = await client.post(self.url, json=payload,
                                         auth=self.auth, timeout=self.timeout)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise TimeoutFailure(f"Wallet call {method} timed out: {e}")
        except httpx.HTTPError as e:
            raise WalletActionFailure(f"Wallet connection failed: {e}", "ERR_WALLET_UNAVAILABLE")
        finally:
            if self._client is None:
                await client.aclose()

        try:
            result = response.json()
        except ValueError as e:
            raise WalletActionFailure(f"Wallet returned invalid JSON for {method}: {e}",
                                      "ERR_WALLET_RESPONSE")
        if not isinstance(result, dict):
            raise WalletActionFailure(f"Wallet returned a non-object reply for {method}",
                                      "ERR_WALLET_RESPONSE")

        if result.get("error"):
            error = result["error"]
            code = error.get("code", "ERR_WALLET_ACTION")
            raise WalletActionFailure(error.get("message", "wallet error"), str(code))

        return result.get("result")

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()

    # ═══════════════════════════════════════════════════════════════════════
    # ACTIONS
    # ═══════════════════════════════════════════════════════════════════════

    async def create_action(self, description: str,
                            outputs: Optional[List[dict]] = None,
                            inputs: Optional[List[dict]] = None,
                            input_bundle: Optional[bytes] = None,
                            options: Optional[dict] = None) -> Dict[str, Any]:
        """
        Build a transaction from declarative outputs/inputs.

        Returns:
            {"txid": ..., "tx": bytes} when the wallet could finalize it, or
            {"signableTransaction": {"tx": bytes, "reference": ...}} when
            inputs still need unlocking scripts.
        """
        params: Dict[str, Any] = {"description": description}
        if outputs:
            params["outputs"] = outputs
        if inputs:
            params["inputs"] = inputs
        if input_bundle is not None:
            params["inputBEEF"] = to_byte_array(input_bundle)
        if options:
            params["options"] = options

        result = await self._call("createAction", params) or {}
        return _decode_action(result)

    async def sign_action(self, reference: str, spends: Dict[int, dict]) -> Dict[str, Any]:
        """Complete a signable transaction with unlocking scripts."""
        params = {
            "reference": reference,
            "spends": {str(index): spend for index, spend in spends.items()},
        }
        result = await self._call("signAction", params) or {}
        return _decode_action(result)

    async def list_outputs(self, basket: str, include: Optional[str] = None,
                           include_custom_instructions: bool = False) -> Dict[str, Any]:
        """List spendable outputs in a basket (plus their combined BEEF)."""
        params: Dict[str, Any] = {"basket": basket}
        if include:
            params["include"] = include
        if include_custom_instructions:
            params["includeCustomInstructions"] = True
        result = await self._call("listOutputs", params) or {}
        return {
            "outputs": result.get("outputs", []),
            "totalOutputs": result.get("totalOutputs", len(result.get("outputs", []))),
            "BEEF": from_byte_array(result.get("BEEF")),
        }

    async def internalize_action(self, tx: bytes, outputs: List[dict],
                                 description: str) -> Dict[str, Any]:
        """Accept an incoming transaction and file its outputs."""
        params = {"tx": to_byte_array(tx), "outputs": outputs, "description": description}
        return await self._call("internalizeAction", params) or {}

    # ═══════════════════════════════════════════════════════════════════════
    # CRYPTO
    # ═══════════════════════════════════════════════════════════════════════

    async def encrypt(self, plaintext: bytes, protocol: WalletProtocol,
                      key_id: str, counterparty: str = "self") -> bytes:
        result = await self._call("encrypt", {
            "plaintext": to_byte_array(plaintext),
            "protocolID": list(protocol),
            "keyID": key_id,
            "counterparty": counterparty,
        })
        return from_byte_array(result["ciphertext"])

    async def decrypt(self, ciphertext: bytes, protocol: WalletProtocol,
                      key_id: str, counterparty: str = "self") -> bytes:
        result = await self._call("decrypt", {
            "ciphertext": to_byte_array(ciphertext),
            "protocolID": list(protocol),
            "keyID": key_id,
            "counterparty": counterparty,
        })
        return from_byte_array(result["plaintext"])

    async def create_hmac(self, data: bytes, protocol: WalletProtocol,
                          key_id: str, counterparty: str = "self") -> bytes:
        result = await self._call("createHmac", {
            "data": to_byte_array(data),
            "protocolID": list(protocol),
            "keyID": key_id,
            "counterparty": counterparty,
        })
        return from_byte_array(result["hmac"])

    # ═══════════════════════════════════════════════════════════════════════
    # UTILITY METHODS
    # ═══════════════════════════════════════════════════════════════════════

    async def get_public_key(self, identity_key: bool = True) -> str:
        result = await self._call("getPublicKey", {"identityKey": identity_key})
        return result["publicKey"]

    async def get_network(self) -> str:
        """Return "mainnet" or "testnet"."""
        result = await self._call("getNetwork")
        return result["network"]

    async def test_connection(self) -> bool:
        """Test if the wallet answers."""
        try:
            await self.get_network()
            return True
        except (WalletActionFailure, TimeoutFailure):
            return False


def _decode_action(result: Dict[str, Any]) -> Dict[str, Any]:
    """Convert byte arrays in a createAction/signAction result to bytes."""
    decoded = dict(result)
    if decoded.get("tx") is not None:
        decoded["tx"] = from_byte_array(decoded["tx"])
    signable = decoded.get("signableTransaction")
    if signable:
        decoded["signableTransaction"] = {
            "tx": from_byte_array(signable.get("tx")),
            "reference": signable.get("reference"),
        }
    return decoded
