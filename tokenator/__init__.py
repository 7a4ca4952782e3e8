"""
Tokenator

Commitment tokens and peer messaging on top of an external wallet.

Architecture:
  - Tokens are single spendable outputs carrying opaque fields
  - The wallet builds and signs every transaction; keys never leave it
  - Live tokens are found in a wallet basket (local) or via an overlay
  - Messages go through a store-and-forward relay, optionally pushed live

Usage:
    from tokenator import (TokenConfiguration, TokenCommitmentManager,
                           TokenDiscovery, MessageChannel, RelayClient,
                           JsonRpcWallet)

    wallet = JsonRpcWallet("http://localhost:3321", "user", "pass")
    config = TokenConfiguration(protocol=(0, "todo list"), key_id="1", basket="todo")

    manager = TokenCommitmentManager(config, wallet, codec)
    token = await manager.create([b"buy milk"])

    tokens = await TokenDiscovery(config, wallet, codec).list()

    channel = MessageChannel(RelayClient(), wallet)
    await channel.send(recipient_key, "inbox", {"hello": "world"})
"""

from .errors import (
    TokenatorError,
    ValidationError,
    ConfigurationError,
    RelayError,
    WalletActionFailure,
    TransactionConstructionFailed,
    MissingBundle,
    DecodeFailure,
    TimeoutFailure,
    OverlayError,
)
from .token_types import (
    TrackingMode,
    SortOrder,
    Outpoint,
    TokenConfiguration,
    Token,
    BroadcastResult,
    RedeemResult,
    ListFilter,
    ListOptions,
    Message,
)
from .interfaces import BundleOutput, CommitmentCodec, WalletInterface
from .wallet_client import JsonRpcWallet
from .overlay import OverlayClient
from .relay import RelayClient
from .manager import TokenCommitmentManager
from .discovery import TokenDiscovery
from .live import LiveSession
from .channel import MessageChannel
from .exchange import TokenExchange
from .config import Settings, load_settings, configure_logging

__version__ = "0.1.0"
__all__ = [
    # Errors
    "TokenatorError", "ValidationError", "ConfigurationError", "RelayError",
    "WalletActionFailure", "TransactionConstructionFailed", "MissingBundle",
    "DecodeFailure", "TimeoutFailure", "OverlayError",
    # Types
    "TrackingMode", "SortOrder", "Outpoint", "TokenConfiguration", "Token",
    "BroadcastResult", "RedeemResult", "ListFilter", "ListOptions", "Message",
    # Collaborators
    "BundleOutput", "CommitmentCodec", "WalletInterface",
    # Clients
    "JsonRpcWallet", "OverlayClient", "RelayClient", "LiveSession",
    # Core
    "TokenCommitmentManager", "TokenDiscovery", "MessageChannel", "TokenExchange",
    # Config
    "Settings", "load_settings", "configure_logging",
]
