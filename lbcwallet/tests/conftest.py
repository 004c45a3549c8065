"""
Pytest configuration and fixtures for lbcwallet tests.
"""

from __future__ import annotations

import sys
from collections.abc import Generator
from pathlib import Path

import pytest
from loguru import logger

from lbcwallet.wallet import WalletLoader

# Fast key derivation for wallets created in tests
TEST_KDF_ITERATIONS = 1_000


@pytest.fixture(autouse=True)
def home_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the home directory (and so every default data directory) into tmp_path."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("LBCWALLET_PASSPHRASE", raising=False)
    return home


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Restore the default loguru handler after each test."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def log_messages() -> list[str]:
    """Collect formatted log messages emitted during the test."""
    messages: list[str] = []
    logger.add(lambda message: messages.append(str(message)), format="{message}", level="TRACE")
    return messages


@pytest.fixture
def app_dir(tmp_path: Path) -> Path:
    """An application data directory that does not exist yet."""
    return tmp_path / "appdata"


@pytest.fixture
def fake_lookup() -> list[str]:
    """Record of hosts passed to ``lookup_localhost``."""
    return []


@pytest.fixture
def lookup_localhost(fake_lookup: list[str]):
    """Resolver returning both loopback addresses without touching DNS."""

    def lookup(host: str) -> list[str]:
        fake_lookup.append(host)
        return ["127.0.0.1", "::1"]

    return lookup


@pytest.fixture
def loader() -> WalletLoader:
    return WalletLoader(kdf_iterations=TEST_KDF_ITERATIONS)
