"""
Tokenator - Configuration

Process-level settings (endpoints, credentials, timeouts) read from the
environment. Per-client token policy lives in TokenConfiguration.

Environment:
  TOKENATOR_RELAY_URL        relay base URL
  TOKENATOR_LIVE_URL         websocket URL (default derived from relay URL)
  TOKENATOR_WALLET_URL       wallet JSON-RPC endpoint
  TOKENATOR_WALLET_USER      wallet RPC user
  TOKENATOR_WALLET_PASSWORD  wallet RPC password
  TOKENATOR_OVERLAY_MAINNET  overlay host for mainnet
  TOKENATOR_OVERLAY_TESTNET  overlay host for testnet
  TOKENATOR_REQUEST_TIMEOUT  relay / wallet timeout (seconds)
  TOKENATOR_OVERLAY_TIMEOUT  overlay lookup timeout (seconds)
  TOKENATOR_LOG_LEVEL        DEBUG, INFO, WARNING, ...
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from .channel import MessageChannel, live_url_for
from .errors import ConfigurationError
from .overlay import DEFAULT_QUERY_TIMEOUT_S, OVERLAY_HOSTS, OverlayClient
from .relay import DEFAULT_RELAY_URL, RelayClient
from .wallet_client import JsonRpcWallet

log = logging.getLogger(__name__)

ENV_PREFIX = "TOKENATOR_"


@dataclass
class Settings:
    relay_url: str = DEFAULT_RELAY_URL
    live_url: Optional[str] = None

    wallet_url: str = "http://localhost:3321"
    wallet_user: str = ""
    wallet_password: str = ""

    overlay_hosts: Dict[str, str] = field(default_factory=lambda: dict(OVERLAY_HOSTS))

    request_timeout: float = 30
    overlay_timeout: float = DEFAULT_QUERY_TIMEOUT_S
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.live_url:
            self.live_url = live_url_for(self.relay_url)

    def wallet(self) -> JsonRpcWallet:
        return JsonRpcWallet(self.wallet_url, self.wallet_user, self.wallet_password,
                             timeout=self.request_timeout)

    def relay(self) -> RelayClient:
        return RelayClient(self.relay_url, timeout=self.request_timeout)

    def overlay(self) -> OverlayClient:
        return OverlayClient(self.overlay_hosts, query_timeout=self.overlay_timeout)

    def channel(self, wallet: Optional[JsonRpcWallet] = None) -> MessageChannel:
        return MessageChannel(self.relay(), wallet or self.wallet(), live_url=self.live_url)


def load_env_file(path: str):
    """Load KEY=VALUE lines into os.environ without overriding set values."""
    if not os.path.exists(path):
        return
    log.info(f"Loading config from {path}")
    with open(path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, value = line.split("=", 1)
                os.environ.setdefault(key.strip(), value.strip().strip('"').strip("'"))


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build Settings from TOKENATOR_* variables (optionally seeded from a .env file)."""
    if env_file:
        load_env_file(env_file)

    env = lambda name, default="": os.environ.get(ENV_PREFIX + name, default)

    hosts = dict(OVERLAY_HOSTS)
    if env("OVERLAY_MAINNET"):
        hosts["mainnet"] = env("OVERLAY_MAINNET")
    if env("OVERLAY_TESTNET"):
        hosts["testnet"] = env("OVERLAY_TESTNET")

    try:
        request_timeout = float(env("REQUEST_TIMEOUT", "30"))
        overlay_timeout = float(env("OVERLAY_TIMEOUT", str(DEFAULT_QUERY_TIMEOUT_S)))
    except ValueError as e:
        raise ConfigurationError(f"Invalid timeout: {e}", "ERR_INVALID_TIMEOUT")

    return Settings(
        relay_url=env("RELAY_URL", DEFAULT_RELAY_URL),
        live_url=env("LIVE_URL") or None,
        wallet_url=env("WALLET_URL", "http://localhost:3321"),
        wallet_user=env("WALLET_USER"),
        wallet_password=env("WALLET_PASSWORD"),
        overlay_hosts=hosts,
        request_timeout=request_timeout,
        overlay_timeout=overlay_timeout,
        log_level=env("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO"):
    """Root logging setup for the command-line entry point."""
    numeric = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric, int):
        raise ConfigurationError(f"Unknown log level: {level!r}", "ERR_INVALID_LOG_LEVEL")
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
