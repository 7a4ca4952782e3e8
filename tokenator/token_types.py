"""
Tokenator - Data Types

Token, Message and configuration structures shared by the manager,
discovery and message channel.
"""

import json
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Tuple, Union

from .errors import ConfigurationError, ValidationError


class TrackingMode(Enum):
    """Where live tokens are discovered: wallet basket or overlay network."""
    LOCAL = "local"
    OVERLAY = "overlay"


class SortOrder(Enum):
    ASC = "asc"
    DESC = "desc"


# (security level, protocol name), e.g. (0, "todo list")
WalletProtocol = Tuple[int, str]

DEFAULT_OVERLAY_TOPIC = "tm_tokenator"
DEFAULT_OVERLAY_SERVICE = "ls_tokenator"


@dataclass(frozen=True)
class Outpoint:
    """Transaction id + output index of a spendable output."""
    txid: str
    index: int = 0

    def __str__(self) -> str:
        return f"{self.txid}.{self.index}"

    @classmethod
    def parse(cls, value: Union[str, "Outpoint"]) -> "Outpoint":
        """Parse ``"<txid>.<n>"`` (or the ``"<txid>:<n>"`` form)."""
        if isinstance(value, Outpoint):
            return value
        sep = "." if "." in value else ":"
        txid, _, index = value.rpartition(sep)
        if not txid or not index.isdigit():
            raise ValidationError(f"Invalid outpoint: {value!r}", "ERR_INVALID_OUTPOINT")
        return cls(txid=txid, index=int(index))


@dataclass(frozen=True)
class TokenConfiguration:
    """
    Immutable per-client token policy.

    Structure:
      - protocol: (security level, protocol name) used for lock/unlock/encrypt
      - key_id: key identifier within the protocol
      - tracking: LOCAL (wallet basket) or OVERLAY (public lookup service)
      - basket: wallet basket name, required for LOCAL tracking
      - overlay_topic / overlay_service: used for OVERLAY tracking
      - encrypt_by_default: encrypt fields on create/update unless overridden
        (None: same as the list-time decrypt default, i.e. local tracking)
      - accept_delayed_broadcast: let the wallet broadcast in the background
      - counterparty: default counterparty for the commitment ("self")
    """
    protocol: WalletProtocol
    key_id: str
    tracking: TrackingMode = TrackingMode.LOCAL
    basket: Optional[str] = None
    overlay_topic: str = DEFAULT_OVERLAY_TOPIC
    overlay_service: str = DEFAULT_OVERLAY_SERVICE
    encrypt_by_default: Optional[bool] = None
    accept_delayed_broadcast: bool = True
    counterparty: str = "self"

    def __post_init__(self):
        if isinstance(self.tracking, str):
            try:
                object.__setattr__(self, "tracking", TrackingMode(self.tracking))
            except ValueError:
                raise ConfigurationError(
                    f"Unknown tracking mode: {self.tracking!r}", "ERR_INVALID_TRACKING")
        if not isinstance(self.protocol, tuple):
            object.__setattr__(self, "protocol", tuple(self.protocol))
        if len(self.protocol) != 2:
            raise ConfigurationError(
                "protocol must be (security level, protocol name)", "ERR_INVALID_PROTOCOL")
        if self.tracking is TrackingMode.LOCAL and not self.basket:
            raise ConfigurationError(
                'basket must be supplied when tracking mode is "local"', "ERR_BASKET_REQUIRED")
        if self.encrypt_by_default is None:
            object.__setattr__(self, "encrypt_by_default", self.tracking is TrackingMode.LOCAL)

    @property
    def is_local(self) -> bool:
        return self.tracking is TrackingMode.LOCAL


@dataclass
class BroadcastResult:
    """Outcome of submitting a transaction to the overlay network."""
    status: str
    txid: str = ""
    reason: str = ""
    code: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict:
        return {"status": self.status, "txid": self.txid,
                "reason": self.reason, "code": self.code}


@dataclass
class Token:
    """
    One unspent commitment output.

    ``fields`` hold the application payload. A token listed without its
    ``bundle`` is read-only: update and redeem need the bundle to spend it.
    """
    outpoint: Outpoint
    fields: List[bytes]
    satoshis: int
    locking_script: str

    bundle: Optional[bytes] = None
    counterparty: str = "self"
    created_at: Optional[datetime] = None

    # Overlay tracking only
    broadcast: Optional[BroadcastResult] = None

    @property
    def txid(self) -> str:
        return self.outpoint.txid

    @property
    def output_index(self) -> int:
        return self.outpoint.index

    @property
    def message(self) -> str:
        """First field as UTF-8 text."""
        if not self.fields:
            return ""
        return self.fields[0].decode("utf-8", errors="replace")

    def sort_key(self) -> Tuple[str, int]:
        return (self.outpoint.txid, self.outpoint.index)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization (bytes as hex)."""
        return {
            "outpoint": str(self.outpoint),
            "fields": [f.hex() for f in self.fields],
            "satoshis": self.satoshis,
            "lockingScript": self.locking_script,
            "beef": self.bundle.hex() if self.bundle is not None else None,
            "counterparty": self.counterparty,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Token":
        bundle = data.get("beef")
        created = data.get("createdAt")
        return cls(
            outpoint=Outpoint.parse(data["outpoint"]),
            fields=[bytes.fromhex(f) for f in data.get("fields", [])],
            satoshis=int(data["satoshis"]),
            locking_script=data["lockingScript"],
            bundle=bytes.fromhex(bundle) if bundle else None,
            counterparty=data.get("counterparty", "self"),
            created_at=parse_timestamp(created) if created else None,
        )


@dataclass
class RedeemResult:
    """Finalized redemption; ``broadcast`` is set for overlay tracking."""
    txid: str
    transaction: bytes
    broadcast: Optional[BroadcastResult] = None


@dataclass
class ListFilter:
    """Text/date filtering plus pagination for token listing."""
    message: Optional[str] = None
    start_date: Optional[Union[date, datetime, str]] = None
    end_date: Optional[Union[date, datetime, str]] = None
    limit: Optional[int] = None
    skip: int = 0
    sort_order: SortOrder = SortOrder.DESC

    def __post_init__(self):
        if not isinstance(self.sort_order, SortOrder):
            try:
                self.sort_order = SortOrder(self.sort_order)
            except ValueError:
                raise ValidationError(f"Unknown sort order: {self.sort_order!r}",
                                      "ERR_INVALID_SORT_ORDER")
        if self.skip < 0:
            raise ValidationError("skip must be >= 0", "ERR_INVALID_PAGINATION")
        if self.limit is not None and self.limit < 0:
            raise ValidationError("limit must be >= 0", "ERR_INVALID_PAGINATION")


@dataclass
class ListOptions:
    """
    decrypt: None means "tracking == local"
    include_bundle: attach the bundle needed for update/redeem
    timeout: overlay query timeout in seconds
    """
    decrypt: Optional[bool] = None
    include_bundle: bool = True
    timeout: Optional[float] = None


@dataclass
class Message:
    """A relay-stored message. Relay metadata is read-only."""
    message_id: str
    body: Any
    message_box: str = ""
    recipient: str = ""
    sender: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def json_body(self) -> Any:
        """Body parsed as JSON when it is JSON text, else as received."""
        if isinstance(self.body, (str, bytes)):
            try:
                return json.loads(self.body)
            except ValueError:
                return self.body
        return self.body

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            message_id=str(data.get("messageId", "")),
            body=data.get("body"),
            message_box=data.get("messageBox", ""),
            recipient=data.get("recipient", ""),
            sender=data.get("sender", ""),
            created_at=data.get("created_at", data.get("createdAt")),
            updated_at=data.get("updated_at", data.get("updatedAt")),
        )

    def to_dict(self) -> dict:
        return {
            "messageId": self.message_id,
            "body": self.body,
            "messageBox": self.message_box,
            "recipient": self.recipient,
            "sender": self.sender,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def canonical_json(value: Any) -> str:
    """Deterministic JSON text: sorted keys, no whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def parse_timestamp(value: Union[date, datetime, str, int, float]) -> datetime:
    """Normalize a date, datetime, ISO string or unix time to aware UTC."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
