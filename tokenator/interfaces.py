"""
Tokenator - External Interfaces

Contracts for the collaborators the library drives but does not
implement: the wallet (signing backend) and the commitment codec.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol as TypingProtocol, Sequence

from .token_types import WalletProtocol

# Unlocking script size reserved for a commitment input
UNLOCKING_SCRIPT_LENGTH = 74


@dataclass(frozen=True)
class BundleOutput:
    """One output read out of a transaction bundle."""
    txid: str
    output_index: int
    locking_script: str
    satoshis: int


class WalletInterface(TypingProtocol):
    """
    Signing / transaction-construction backend.

    Results are plain dicts using the wallet's wire keys, e.g.
    ``{"txid": ..., "tx": b"..."}`` or
    ``{"signableTransaction": {"tx": b"...", "reference": "..."}}``.
    """

    async def create_action(self, description: str,
                            outputs: Optional[List[dict]] = None,
                            inputs: Optional[List[dict]] = None,
                            input_bundle: Optional[bytes] = None,
                            options: Optional[dict] = None) -> Dict[str, Any]: ...

    async def sign_action(self, reference: str,
                          spends: Dict[int, dict]) -> Dict[str, Any]: ...

    async def list_outputs(self, basket: str,
                           include: Optional[str] = None,
                           include_custom_instructions: bool = False) -> Dict[str, Any]: ...

    async def internalize_action(self, tx: bytes, outputs: List[dict],
                                 description: str) -> Dict[str, Any]: ...

    async def encrypt(self, plaintext: bytes, protocol: WalletProtocol,
                      key_id: str, counterparty: str = "self") -> bytes: ...

    async def decrypt(self, ciphertext: bytes, protocol: WalletProtocol,
                      key_id: str, counterparty: str = "self") -> bytes: ...

    async def create_hmac(self, data: bytes, protocol: WalletProtocol,
                          key_id: str, counterparty: str = "self") -> bytes: ...

    async def get_public_key(self, identity_key: bool = True) -> str: ...

    async def get_network(self) -> str: ...


class CommitmentCodec(TypingProtocol):
    """Encodes fields into a spendable locking script and back."""

    async def lock(self, fields: Sequence[bytes], protocol: WalletProtocol,
                   key_id: str, counterparty: str) -> str:
        """Return the locking script (hex) committing to ``fields``."""
        ...

    def decode(self, locking_script: str) -> List[bytes]:
        """Return the data fields committed in ``locking_script``."""
        ...

    async def unlock(self, protocol: WalletProtocol, key_id: str,
                     counterparty: str, partial_tx: bytes,
                     input_index: int) -> str:
        """Return the unlocking script (hex) for ``input_index``."""
        ...

    def read_output(self, bundle: bytes, output_index: int,
                    txid: Optional[str] = None) -> BundleOutput:
        """Locate an output inside a bundle (subject tx when ``txid`` is None)."""
        ...
