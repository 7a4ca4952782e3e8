"""
Tokenator - Token Discovery

Resolves the live tokens either from the wallet basket (local tracking)
or from the overlay lookup service (overlay tracking), then filters,
sorts and paginates them the same way.
"""

import json
import logging
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Tuple

from .crypto import CryptoAdapter
from .errors import DecodeFailure
from .interfaces import CommitmentCodec, WalletInterface
from .overlay import OverlayClient
from .token_types import (
    ListFilter,
    ListOptions,
    Outpoint,
    SortOrder,
    Token,
    TokenConfiguration,
    parse_timestamp,
)

log = logging.getLogger(__name__)


class TokenDiscovery:
    """
    Usage:
        discovery = TokenDiscovery(config, wallet, codec)

        # Everything, newest identifiers first
        tokens = await discovery.list()

        # Text search + pagination
        tokens = await discovery.list(ListFilter(message="milk", limit=10, skip=10))
    """

    def __init__(self, config: TokenConfiguration, wallet: WalletInterface,
                 codec: CommitmentCodec, overlay: Optional[OverlayClient] = None):
        self.config = config
        self.wallet = wallet
        self.codec = codec
        self.crypto = CryptoAdapter(wallet, config.protocol, config.key_id)
        if overlay is None and not config.is_local:
            overlay = OverlayClient()
        self.overlay = overlay

    async def list(self, filter: Optional[ListFilter] = None,
                   options: Optional[ListOptions] = None) -> List[Token]:
        """
        List live tokens.

        Args:
            filter: Text/date filter and pagination (default: everything, desc)
            options: decrypt (default: local tracking), include_bundle, timeout

        Returns:
            Decoded tokens. Outputs that fail to decode are skipped and logged.
        """
        filter = filter or ListFilter()
        options = options or ListOptions()
        decrypt = self.config.is_local if options.decrypt is None else options.decrypt

        if self.config.is_local:
            tokens = await self._query_local(decrypt)
        else:
            tokens = await self._query_overlay(filter, options, decrypt)

        result = []
        for token in tokens:
            # Filter by text
            if filter.message and not _matches_text(token, filter.message):
                continue

            # Filter by date (only when the source reported one)
            if token.created_at and not _in_date_range(token.created_at, filter):
                continue

            if not options.include_bundle:
                token.bundle = None
            result.append(token)

        # Stable sort: equal identifiers keep their received order
        result.sort(key=Token.sort_key, reverse=(filter.sort_order == SortOrder.DESC))

        # Overlay already applied skip server-side
        skip = filter.skip if self.config.is_local else 0
        end = None if filter.limit is None else skip + filter.limit
        return result[skip:end]

    # ═══════════════════════════════════════════════════════════════════════
    # LOCAL (BASKET)
    # ═══════════════════════════════════════════════════════════════════════

    async def _query_local(self, decrypt: bool) -> List[Token]:
        listing = await self.wallet.list_outputs(self.config.basket,
                                                 include="entire transactions",
                                                 include_custom_instructions=True)
        bundle = listing.get("BEEF")

        tokens = []
        for out in listing.get("outputs", []):
            try:
                tokens.append(await self._decode_local_output(out, bundle, decrypt))
            except DecodeFailure as e:
                log.warning(f"Skipping output {out.get('outpoint')}: {e.message}")
        return tokens

    async def _decode_local_output(self, out: Dict[str, Any], bundle: Optional[bytes],
                                   decrypt: bool) -> Token:
        try:
            outpoint = Outpoint.parse(out["outpoint"])
            locking_script = out.get("lockingScript")
            satoshis = out.get("satoshis")
            if not locking_script:
                if not bundle:
                    raise DecodeFailure("no locking script and no bundle")
                read = self.codec.read_output(bundle, outpoint.index, outpoint.txid)
                locking_script = read.locking_script
                satoshis = satoshis if satoshis is not None else read.satoshis
            fields = self.codec.decode(locking_script)
        except DecodeFailure:
            raise
        except Exception as e:
            raise DecodeFailure(f"failed to decode output: {e}")

        # Received tokens are locked and encrypted with their sender as counterparty
        sender = _sender_of(out.get("customInstructions"))
        if decrypt:
            fields = await self.crypto.decrypt_fields(fields, sender or "self")

        created = out.get("createdAt")
        return Token(
            outpoint=outpoint,
            fields=fields,
            satoshis=int(satoshis or 0),
            locking_script=locking_script,
            bundle=bundle,
            counterparty=sender or self.config.counterparty,
            created_at=parse_timestamp(created) if created else None,
        )

    # ═══════════════════════════════════════════════════════════════════════
    # OVERLAY
    # ═══════════════════════════════════════════════════════════════════════

    async def _query_overlay(self, filter: ListFilter, options: ListOptions,
                             decrypt: bool) -> List[Token]:
        query = build_overlay_query(filter)
        network = await self.wallet.get_network()
        answer = await self.overlay.query(self.config.overlay_service, query,
                                          timeout=options.timeout, network=network)
        if answer.get("type") != "output-list" or not answer.get("outputs"):
            return []

        tokens = []
        for item in answer["outputs"]:
            try:
                tokens.append(await self._decode_overlay_output(item, decrypt))
            except DecodeFailure as e:
                log.warning(f"Skipping overlay result {item.get('outputIndex')}: {e.message}")
        return tokens

    async def _decode_overlay_output(self, item: Dict[str, Any], decrypt: bool) -> Token:
        bundle = item.get("beef")
        try:
            read = self.codec.read_output(bundle, int(item.get("outputIndex", 0)))
            fields = self.codec.decode(read.locking_script)
        except Exception as e:
            raise DecodeFailure(f"failed to decode overlay output: {e}")

        if decrypt:
            fields = await self.crypto.decrypt_fields(fields)

        created = item.get("createdAt")
        return Token(
            outpoint=Outpoint(read.txid, read.output_index),
            fields=fields,
            satoshis=read.satoshis,
            locking_script=read.locking_script,
            bundle=bundle,
            counterparty=self.config.counterparty,
            created_at=parse_timestamp(created) if created else None,
        )


def build_overlay_query(filter: ListFilter) -> Dict[str, Any]:
    """Translate a ListFilter into the lookup service's query document."""
    query: Dict[str, Any] = {
        "limit": filter.limit if filter.limit is not None else 20,
        "skip": filter.skip,
        "sortOrder": filter.sort_order.value,
    }
    if filter.message and filter.message.strip():
        query["message"] = filter.message.strip()
    start, end = _date_bounds(filter)
    if start:
        query["startDate"] = _iso_millis(start)
    if end:
        query["endDate"] = _iso_millis(end)
    return query


def _matches_text(token: Token, needle: str) -> bool:
    return any(needle in f.decode("utf-8", errors="replace") for f in token.fields)


def _date_bounds(filter: ListFilter) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Plain dates widen to the whole day (UTC)."""
    start = end = None
    if filter.start_date:
        start = _as_datetime(filter.start_date, time.min)
    if filter.end_date:
        end = _as_datetime(filter.end_date, time(23, 59, 59, 999000))
    return start, end


def _as_datetime(value, day_time: time) -> datetime:
    if isinstance(value, str) and len(value.strip()) == 10:
        value = date.fromisoformat(value.strip())
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, day_time, tzinfo=timezone.utc)
    return parse_timestamp(value)


def _in_date_range(created_at: datetime, filter: ListFilter) -> bool:
    start, end = _date_bounds(filter)
    if start and created_at < start:
        return False
    if end and created_at > end:
        return False
    return True


def _iso_millis(dt: datetime) -> str:
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def _sender_of(custom_instructions: Any) -> Optional[str]:
    """Sender recorded when a token was received from another identity."""
    if not custom_instructions:
        return None
    if isinstance(custom_instructions, str):
        try:
            custom_instructions = json.loads(custom_instructions)
        except ValueError:
            return None
    if isinstance(custom_instructions, dict):
        return custom_instructions.get("sender") or None
    return None
