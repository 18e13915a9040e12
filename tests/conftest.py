"""
Test configuration for tagspend tests.
"""

from __future__ import annotations

from typing import NoReturn

import pytest
from coincurve import PrivateKey

from tagspend.config import Settings
from tagspend.errors import SpendAborted
from tagspend.models import Utxo
from tagspend.spend import Host

REFERENCE_PUBKEY = "0242f9da15eae56fe6aca65136738905c0afdb2c4edf379e107b3b00b98c7fc9f0"
REFERENCE_TAG = "1234567890abcdef1234567890abcdef1234567890abcdef1234567890abcdef"
REFERENCE_TXID = "4604a462372fc7f838e8e746685b53bdae1222e44be4601456c7e2882074028c"
DEST_ADDRESS = "tb1qd4erjn4tvt52c92yv66lwju9pzsd2ltph0xe5s"
CHANGE_ADDRESS = "tb1q5dgehs94wf5mgfasnfjsh4dqv6hz8e35w4w7tk"

# Test key (not for production use!)
TEST_PRIVATE_KEY_HEX = "0c28fca386c7a227600b2fe50b7cae11ec86d3bf1fbe471be89827e19d72aa1d"


class RecordingHost(Host):
    """Host that records log lines and serves secrets from a dict."""

    def __init__(self, secrets: dict[str, str] | None = None):
        self.secrets = secrets or {}
        self.logs: list[str] = []
        self.aborted: str | None = None

    def log(self, message: str) -> None:
        self.logs.append(message)

    def abort(self, reason: str) -> NoReturn:
        self.aborted = reason
        raise SpendAborted(reason)

    def get_secret(self, name: str) -> str | None:
        return self.secrets.get(name)


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep TAGSPEND_* variables and .env files from leaking into tests."""
    import os

    for name in list(os.environ):
        if name.startswith("TAGSPEND_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def private_key_hex() -> str:
    return TEST_PRIVATE_KEY_HEX


@pytest.fixture
def pubkey_hex() -> str:
    """Compressed pubkey of the test key."""
    return PrivateKey(bytes.fromhex(TEST_PRIVATE_KEY_HEX)).public_key.format(compressed=True).hex()


@pytest.fixture
def reference_utxo() -> Utxo:
    return Utxo(txid=REFERENCE_TXID, vout=0, amount=121_768)


@pytest.fixture
def reference_settings() -> Settings:
    """The reference testnet spend."""
    return Settings()


@pytest.fixture
def signing_settings(pubkey_hex: str) -> Settings:
    """Reference spend, but locked to the test key so it can be signed."""
    return Settings(pubkey=pubkey_hex)


@pytest.fixture
def host(private_key_hex: str) -> RecordingHost:
    return RecordingHost({"TAGSPEND_PRIVATE_KEY": private_key_hex})


@pytest.fixture
def make_host() -> type[RecordingHost]:
    return RecordingHost
