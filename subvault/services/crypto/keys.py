"""
Key Material

Loads (or creates on first use) the 256-bit key that protects the document
and backup files.

Priority:
1. Environment variable SUBVAULT_MASTER_KEY (base64 encoded, 32 bytes)
2. The OS keyring (Keychain, Secret Service, Windows Credential Locker)
3. A key file with 0600 permissions in the data directory, used only when
   no keyring backend is available

DESIGN DECISION: A key that exists but cannot be read is an error. We never
silently generate a replacement, because that would make every existing
file undecryptable.
"""

import base64
import binascii
import os
import secrets
from pathlib import Path
from typing import Optional

import keyring
import structlog
from keyring.errors import KeyringError

from subvault.config import SecuritySettings, get_settings
from subvault.services.crypto.cipher import KEY_SIZE, KeyUnavailableError

MASTER_KEY_ENV = "SUBVAULT_MASTER_KEY"

logger = structlog.get_logger(__name__)


def generate_key() -> bytes:
    return secrets.token_bytes(KEY_SIZE)


def _decode_key(encoded: str, source: str) -> bytes:
    try:
        key = base64.b64decode(encoded.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise KeyUnavailableError(f"{source} is not valid base64") from e
    if len(key) != KEY_SIZE:
        raise KeyUnavailableError(
            f"{source} must decode to exactly {KEY_SIZE} bytes, got {len(key)}"
        )
    return key


class KeyProvider:
    """
    Resolves the document key once and caches it for the process.
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        settings: Optional[SecuritySettings] = None,
    ):
        all_settings = get_settings()
        self._settings = settings or all_settings.security
        self._data_dir = data_dir or all_settings.store.data_dir
        self._key: Optional[bytes] = None

    @property
    def key_file(self) -> Path:
        return self._data_dir / self._settings.key_filename

    def get_key(self) -> bytes:
        """
        Return the document key, creating one on first use.

        Raises:
            KeyUnavailableError: If a configured key is malformed or no
                                 store can hold a new one
        """
        if self._key is None:
            self._key = self._load()
        return self._key

    def _load(self) -> bytes:
        env_key = os.environ.get(MASTER_KEY_ENV)
        if env_key:
            return _decode_key(env_key, MASTER_KEY_ENV)

        try:
            return self._load_from_keyring()
        except KeyringError as e:
            logger.warning(
                "keyring_unavailable",
                error=type(e).__name__,
                fallback=str(self.key_file),
            )
        return self._load_from_file()

    def _load_from_keyring(self) -> bytes:
        service = self._settings.keyring_service
        username = self._settings.keyring_username

        stored = keyring.get_password(service, username)
        if stored:
            return _decode_key(stored, "Keyring entry")

        key = generate_key()
        keyring.set_password(service, username, base64.b64encode(key).decode())
        logger.info("document_key_created", store="keyring", service=service)
        return key

    def _load_from_file(self) -> bytes:
        path = self.key_file
        if path.exists():
            return _decode_key(path.read_text(), f"Key file {path}")

        key = generate_key()
        try:
            self._data_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "w") as f:
                f.write(base64.b64encode(key).decode())
        except OSError as e:
            raise KeyUnavailableError(
                f"Cannot persist document key to {path}: {e}"
            ) from e
        logger.info("document_key_created", store="file", path=str(path))
        return key
