"""
Tests for the document cipher and key loading.

The real OS keyring is never touched: keyring calls are monkeypatched.
"""

import base64
import os
import stat

import pytest
from keyring.errors import NoKeyringError

from subvault.config import SecuritySettings
from subvault.services.crypto import (
    MASTER_KEY_ENV,
    CipherService,
    DecryptionError,
    KeyProvider,
    KeyUnavailableError,
    generate_key,
)
from subvault.services.crypto import keys as keys_module
from subvault.services.crypto.cipher import NONCE_SIZE, TAG_SIZE


class FakeKeyring:
    def __init__(self):
        self.entries: dict[tuple[str, str], str] = {}

    def get_password(self, service, username):
        return self.entries.get((service, username))

    def set_password(self, service, username, password):
        self.entries[(service, username)] = password


class TestCipherService:
    """Tests for AES-GCM encryption."""

    def test_round_trip(self, cipher):
        blob = cipher.encrypt(b"secret document")
        assert cipher.decrypt(blob) == b"secret document"
        assert len(blob) == NONCE_SIZE + len(b"secret document") + TAG_SIZE

    def test_nonce_is_random(self, cipher):
        assert cipher.encrypt(b"same") != cipher.encrypt(b"same")

    def test_tampered_blob_fails_closed(self, cipher):
        blob = bytearray(cipher.encrypt(b"secret document"))
        blob[-1] ^= 0x01
        with pytest.raises(DecryptionError):
            cipher.decrypt(bytes(blob))

    def test_wrong_key(self, cipher):
        blob = cipher.encrypt(b"secret")
        with pytest.raises(DecryptionError):
            CipherService(generate_key()).decrypt(blob)

    def test_truncated_blob(self, cipher):
        with pytest.raises(DecryptionError, match="too short"):
            cipher.decrypt(b"\x00" * (NONCE_SIZE + TAG_SIZE - 1))

    def test_rejects_short_key(self):
        with pytest.raises(KeyUnavailableError):
            CipherService(b"\x00" * 16)


@pytest.fixture
def fake_keyring(monkeypatch):
    fake = FakeKeyring()
    monkeypatch.setattr(keys_module.keyring, "get_password", fake.get_password)
    monkeypatch.setattr(keys_module.keyring, "set_password", fake.set_password)
    return fake


@pytest.fixture
def no_keyring(monkeypatch):
    def unavailable(*args):
        raise NoKeyringError("No recommended backend was available")

    monkeypatch.setattr(keys_module.keyring, "get_password", unavailable)
    monkeypatch.setattr(keys_module.keyring, "set_password", unavailable)


@pytest.fixture(autouse=True)
def no_env_key(monkeypatch):
    monkeypatch.delenv(MASTER_KEY_ENV, raising=False)


class TestKeyProvider:
    """Tests for key loading: env, keyring, then key file."""

    def test_env_key_wins(self, monkeypatch, fake_keyring, tmp_path):
        key = generate_key()
        monkeypatch.setenv(MASTER_KEY_ENV, base64.b64encode(key).decode())

        provider = KeyProvider(tmp_path, SecuritySettings())
        assert provider.get_key() == key
        assert fake_keyring.entries == {}

    def test_malformed_env_key(self, monkeypatch, tmp_path):
        monkeypatch.setenv(MASTER_KEY_ENV, "not base64!")
        with pytest.raises(KeyUnavailableError):
            KeyProvider(tmp_path, SecuritySettings()).get_key()

    def test_env_key_wrong_length(self, monkeypatch, tmp_path):
        monkeypatch.setenv(MASTER_KEY_ENV, base64.b64encode(b"short").decode())
        with pytest.raises(KeyUnavailableError, match="32 bytes"):
            KeyProvider(tmp_path, SecuritySettings()).get_key()

    def test_keyring_creates_then_reuses(self, fake_keyring, tmp_path):
        settings = SecuritySettings()
        first = KeyProvider(tmp_path, settings).get_key()
        second = KeyProvider(tmp_path, settings).get_key()

        assert first == second
        assert (settings.keyring_service, settings.keyring_username) in fake_keyring.entries
        assert not (tmp_path / settings.key_filename).exists()

    def test_key_is_cached(self, fake_keyring, tmp_path):
        provider = KeyProvider(tmp_path, SecuritySettings())
        key = provider.get_key()
        fake_keyring.entries.clear()
        assert provider.get_key() == key

    def test_falls_back_to_private_key_file(self, no_keyring, tmp_path):
        provider = KeyProvider(tmp_path / "data", SecuritySettings())
        key = provider.get_key()

        assert provider.key_file.exists()
        if os.name == "posix":
            assert stat.S_IMODE(provider.key_file.stat().st_mode) == 0o600
        assert KeyProvider(tmp_path / "data", SecuritySettings()).get_key() == key

    def test_corrupt_key_file_is_an_error(self, no_keyring, tmp_path):
        provider = KeyProvider(tmp_path, SecuritySettings())
        provider.key_file.write_text("garbage")
        with pytest.raises(KeyUnavailableError):
            provider.get_key()
