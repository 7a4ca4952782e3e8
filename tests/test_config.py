"""Tests for Settings loading and logging setup."""
import os

import pytest

from tokenator.config import Settings, configure_logging, load_settings
from tokenator.errors import ConfigurationError
from tokenator.overlay import OVERLAY_HOSTS


@pytest.fixture
def environ(monkeypatch):
    """Private copy of os.environ without TOKENATOR_* variables."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("TOKENATOR_")}
    monkeypatch.setattr(os, "environ", env)
    return env


def test_defaults(environ):
    settings = load_settings()
    assert settings.relay_url == "https://messagebox.babbage.systems"
    assert settings.live_url == "wss://messagebox.babbage.systems"
    assert settings.wallet_url == "http://localhost:3321"
    assert settings.overlay_hosts == OVERLAY_HOSTS
    assert settings.request_timeout == 30
    assert settings.overlay_timeout == 10
    assert settings.log_level == "INFO"


def test_environment_overrides(environ):
    environ.update({
        "TOKENATOR_RELAY_URL": "http://localhost:8080",
        "TOKENATOR_WALLET_USER": "rpc",
        "TOKENATOR_OVERLAY_TESTNET": "https://overlay.test",
        "TOKENATOR_REQUEST_TIMEOUT": "5",
        "TOKENATOR_LOG_LEVEL": "debug",
    })
    settings = load_settings()
    assert settings.live_url == "ws://localhost:8080"
    assert settings.wallet_user == "rpc"
    assert settings.overlay_hosts["testnet"] == "https://overlay.test"
    assert settings.overlay_hosts["mainnet"] == OVERLAY_HOSTS["mainnet"]
    assert settings.request_timeout == 5.0
    assert settings.log_level == "DEBUG"


def test_env_file_does_not_override_environment(environ, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# local relay\n"
        "TOKENATOR_RELAY_URL='http://relay.local'\n"
        'TOKENATOR_WALLET_PASSWORD="from-file"\n'
    )
    environ["TOKENATOR_WALLET_PASSWORD"] = "from-env"

    settings = load_settings(str(env_file))
    assert settings.relay_url == "http://relay.local"
    assert settings.wallet_password == "from-env"


def test_missing_env_file_is_ignored(environ, tmp_path):
    assert load_settings(str(tmp_path / "absent.env")).relay_url == "https://messagebox.babbage.systems"


def test_invalid_timeout(environ):
    environ["TOKENATOR_OVERLAY_TIMEOUT"] = "soon"
    with pytest.raises(ConfigurationError) as exc:
        load_settings()
    assert exc.value.code == "ERR_INVALID_TIMEOUT"


def test_factories_use_settings():
    settings = Settings(relay_url="http://relay.local", live_url="ws://live.local",
                        request_timeout=7, overlay_timeout=3)
    assert settings.relay().base_url == "http://relay.local"
    assert settings.relay().timeout == 7
    assert settings.wallet().timeout == 7
    assert settings.overlay().query_timeout == 3
    assert settings.channel().live_url == "ws://live.local"


def test_configure_logging_rejects_unknown_level():
    with pytest.raises(ConfigurationError):
        configure_logging("LOUD")
    configure_logging("warning")
