"""
Tokenator - Crypto Adapter

Thin layer over the wallet's protocol-scoped encrypt / decrypt / HMAC.
"""

from typing import Any, List, Sequence

from .errors import DecodeFailure
from .interfaces import WalletInterface
from .token_types import WalletProtocol, canonical_json

# Fixed protocol tag that scopes message ids on the relay
MESSAGE_ID_PROTOCOL: WalletProtocol = (0, "PeerServ")
MESSAGE_ID_KEY = "1"


class CryptoAdapter:
    """
    Encrypts token fields before they are committed and decrypts them when
    tokens are listed. All keys stay inside the wallet.
    """

    def __init__(self, wallet: WalletInterface, protocol: WalletProtocol, key_id: str):
        self.wallet = wallet
        self.protocol = protocol
        self.key_id = key_id

    async def encrypt_fields(self, fields: Sequence[bytes],
                             counterparty: str = "self") -> List[bytes]:
        return [await self.wallet.encrypt(bytes(f), self.protocol, self.key_id, counterparty)
                for f in fields]

    async def decrypt_fields(self, fields: Sequence[bytes],
                             counterparty: str = "self") -> List[bytes]:
        """Decrypt every field; any failure is a DecodeFailure for the item."""
        plain = []
        for f in fields:
            try:
                plain.append(await self.wallet.decrypt(f, self.protocol, self.key_id, counterparty))
            except Exception as e:
                raise DecodeFailure(f"Failed to decrypt field: {e}")
        return plain


async def compute_message_id(wallet: WalletInterface, body: Any, recipient: str) -> str:
    """
    Deterministic message id: HMAC over the canonical body, keyed by the
    recipient as counterparty, hex-encoded. Same (body, recipient) gives
    the same id, which the relay uses to drop duplicates.
    """
    data = canonical_json(body).encode("utf-8")
    mac = await wallet.create_hmac(data, MESSAGE_ID_PROTOCOL, MESSAGE_ID_KEY, recipient)
    return bytes(mac).hex()
