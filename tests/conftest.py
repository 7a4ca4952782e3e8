"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Ensure the project root is on the import path (for local imports without installing)
ROOT_PATH = Path(__file__).resolve().parent.parent
if str(ROOT_PATH) not in sys.path:
    sys.path.insert(0, str(ROOT_PATH))

from fakes import FakeCodec, FakeWallet, Ledger  # noqa: E402
from tokenator.token_types import TokenConfiguration  # noqa: E402


@pytest.fixture
def ledger() -> Ledger:
    return Ledger()


@pytest.fixture
def wallet(ledger) -> FakeWallet:
    return FakeWallet("id-alice", ledger)


@pytest.fixture
def codec() -> FakeCodec:
    return FakeCodec()


@pytest.fixture
def local_config() -> TokenConfiguration:
    return TokenConfiguration(protocol=(0, "todo list"), key_id="1", basket="todo")


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Ensure tests run without leftover TOKENATOR_* variables."""
    for var in list(os.environ):
        if var.startswith("TOKENATOR_"):
            monkeypatch.delenv(var, raising=False)
    yield
