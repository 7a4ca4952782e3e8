"""
Tokenator - Token Commitment Manager

Mint, update and redeem commitment tokens through the wallet's
createAction / signAction calls.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from .crypto import CryptoAdapter
from .errors import MissingBundle, TransactionConstructionFailed, ValidationError
from .interfaces import UNLOCKING_SCRIPT_LENGTH, CommitmentCodec, WalletInterface
from .overlay import OverlayClient
from .token_types import (
    BroadcastResult,
    Outpoint,
    RedeemResult,
    Token,
    TokenConfiguration,
)

log = logging.getLogger(__name__)


class TokenCommitmentManager:
    """
    Token lifecycle: create -> update* -> redeem.

    Each update spends the previous outpoint as its only input and creates
    exactly one successor output in the same transaction, so a token chain
    never forks. Spending needs the token's transaction bundle.

    Usage:
        config = TokenConfiguration(protocol=(0, "todo"), key_id="1", basket="todo")
        manager = TokenCommitmentManager(config, wallet, codec)

        token = await manager.create([b"buy milk"])
        token = await manager.update(token, [b"buy oat milk"])
        result = await manager.redeem(token)
    """

    def __init__(self, config: TokenConfiguration, wallet: WalletInterface,
                 codec: CommitmentCodec, overlay: Optional[OverlayClient] = None):
        """
        Args:
            config: Token policy (protocol, key, tracking mode, basket)
            wallet: Signing backend, fixed for the lifetime of the manager
            codec: Commitment codec used to lock / unlock outputs
            overlay: Overlay client, needed when tracking is "overlay"
        """
        self.config = config
        self.wallet = wallet
        self.codec = codec
        self.crypto = CryptoAdapter(wallet, config.protocol, config.key_id)
        if overlay is None and not config.is_local:
            overlay = OverlayClient()
        self.overlay = overlay

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════

    async def create(self, fields: Sequence[bytes], satoshis: int = 1,
                     description: str = "Tokenator - create",
                     counterparty: Optional[str] = None,
                     encrypt: Optional[bool] = None,
                     encrypt_for: Optional[str] = None,
                     track: bool = True) -> Token:
        """
        Mint a new token.

        Args:
            fields: Payload fields to commit
            satoshis: Value locked in the output (>= 1)
            description: Wallet action description
            counterparty: Commitment counterparty (default from config)
            encrypt: Encrypt fields first (default config.encrypt_by_default)
            encrypt_for: Encryption counterparty (default "self")
            track: Place the output in the configured basket (local tracking).
                False for tokens handed to another identity.

        Returns:
            Token at output 0 of the new transaction, carrying its bundle.
            In overlay mode ``token.broadcast`` holds the broadcast outcome.
        """
        if satoshis < 1:
            raise ValidationError("Must lock at least 1 satoshi", "ERR_INVALID_SATOSHIS")

        counterparty = counterparty or self.config.counterparty
        fields = [bytes(f) for f in fields]
        locking_script = await self._lock(fields, counterparty, encrypt, encrypt_for)

        result = await self.wallet.create_action(
            description,
            outputs=[self._output(locking_script, satoshis, "Tokenator token", track)],
            options=self._options(),
        )
        tx = result.get("tx")
        txid = result.get("txid")
        if not tx or not txid:
            raise TransactionConstructionFailed("Failed to create transaction")

        token = Token(
            outpoint=Outpoint(txid, 0),
            fields=fields,
            satoshis=satoshis,
            locking_script=locking_script,
            bundle=tx,
            counterparty=counterparty,
        )
        log.info(f"Created token {token.outpoint} ({satoshis} sats)")

        if not self.config.is_local:
            token.broadcast = await self._broadcast(tx, txid)
        return token

    async def update(self, previous: Token, new_fields: Sequence[bytes],
                     description: str = "Tokenator - update",
                     counterparty: Optional[str] = None,
                     encrypt: Optional[bool] = None,
                     encrypt_for: Optional[str] = None) -> Token:
        """
        Replace a token's fields: spend ``previous`` and create its successor
        in one atomic transaction.

        Returns:
            The successor token (new outpoint). The previous outpoint is spent.
        """
        self._require_bundle(previous)
        counterparty = counterparty or previous.counterparty or self.config.counterparty
        new_fields = [bytes(f) for f in new_fields]
        locking_script = await self._lock(new_fields, counterparty, encrypt, encrypt_for)

        final = await self._spend(
            previous,
            description,
            counterparty,
            outputs=[self._output(locking_script, previous.satoshis, "Updated Tokenator token")],
        )

        token = Token(
            outpoint=Outpoint(final["txid"], 0),
            fields=new_fields,
            satoshis=previous.satoshis,
            locking_script=locking_script,
            bundle=final["tx"],
            counterparty=counterparty,
        )
        log.info(f"Updated token {previous.outpoint} -> {token.outpoint}")

        if not self.config.is_local:
            token.broadcast = await self._broadcast(final["tx"], final["txid"])
        return token

    async def redeem(self, token: Token, description: Optional[str] = None,
                     counterparty: Optional[str] = None) -> RedeemResult:
        """
        Spend a token with no new commitment output; its satoshis return to
        the wallet's balance.
        """
        self._require_bundle(token)
        counterparty = counterparty or token.counterparty or self.config.counterparty
        description = description or "Tokenator - redeem"

        final = await self._spend(token, description, counterparty, outputs=None)
        result = RedeemResult(txid=final["txid"], transaction=final["tx"])
        log.info(f"Redeemed token {token.outpoint} in {result.txid}")

        if not self.config.is_local:
            result.broadcast = await self._broadcast(final["tx"], final["txid"])
        return result

    # ═══════════════════════════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════════════════════════

    @staticmethod
    def _require_bundle(token: Token):
        if not token.bundle:
            raise MissingBundle(f"Token {token.outpoint} has no transaction bundle")

    def _options(self) -> dict:
        return {
            "randomizeOutputs": False,
            "acceptDelayedBroadcast": self.config.accept_delayed_broadcast,
        }

    def _output(self, locking_script: str, satoshis: int, output_description: str,
                track: bool = True) -> dict:
        output = {
            "lockingScript": locking_script,
            "satoshis": satoshis,
            "outputDescription": output_description,
        }
        if self.config.is_local and track:
            output["basket"] = self.config.basket
        return output

    async def _lock(self, fields: List[bytes], counterparty: str,
                    encrypt: Optional[bool], encrypt_for: Optional[str]) -> str:
        if self.config.encrypt_by_default if encrypt is None else encrypt:
            fields = await self.crypto.encrypt_fields(fields, encrypt_for or "self")
        return await self.codec.lock(fields, self.config.protocol,
                                     self.config.key_id, counterparty)

    async def _spend(self, token: Token, description: str, counterparty: str,
                     outputs: Optional[List[dict]]) -> Dict[str, Any]:
        """
        Two-phase spend of ``token`` as input 0:
          1. wallet builds a signable transaction
          2. codec produces the unlocking script for input 0
          3. wallet finalizes with that script
        """
        created = await self.wallet.create_action(
            description,
            inputs=[{
                "outpoint": str(token.outpoint),
                "unlockingScriptLength": UNLOCKING_SCRIPT_LENGTH,
                "inputDescription": "Spend Tokenator token",
            }],
            outputs=outputs,
            input_bundle=token.bundle,
            options=self._options(),
        )
        signable = created.get("signableTransaction")
        if not signable or not signable.get("tx"):
            raise TransactionConstructionFailed(f"Unable to build spend of {token.outpoint}")

        unlocking_script = await self.codec.unlock(
            self.config.protocol, self.config.key_id, counterparty,
            signable["tx"], 0,
        )

        final = await self.wallet.sign_action(
            signable["reference"],
            {0: {"unlockingScript": unlocking_script}},
        )
        if not final.get("tx") or not final.get("txid"):
            raise TransactionConstructionFailed(f"Unable to finalize spend of {token.outpoint}")
        return final

    async def _broadcast(self, tx: bytes, txid: str) -> BroadcastResult:
        network = await self.wallet.get_network()
        return await self.overlay.broadcast(tx, [self.config.overlay_topic],
                                            network=network, txid=txid)
