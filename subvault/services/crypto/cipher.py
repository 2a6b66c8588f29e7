"""
Document Cipher

Authenticated encryption for everything SubVault writes to disk.

Format: 12-byte random nonce || AES-256-GCM ciphertext || 16-byte tag.

DESIGN DECISION: Fail closed. Any authentication failure, truncation or
wrong key raises DecryptionError. A caller never receives plaintext that
did not verify.
"""

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM


KEY_SIZE = 32  # 256 bits for AES-256
NONCE_SIZE = 12  # 96 bits for GCM (recommended)
TAG_SIZE = 16


class CryptoError(Exception):
    """Base exception for encryption errors."""
    pass


class DecryptionError(CryptoError):
    """Ciphertext did not authenticate (tampered, truncated or wrong key)."""
    pass


class KeyUnavailableError(CryptoError):
    """No usable key material could be loaded or created."""
    pass


class CipherService:
    """
    AES-256-GCM over whole byte strings.

    Usage:
        cipher = CipherService(key)
        blob = cipher.encrypt(b"...")
        assert cipher.decrypt(blob) == b"..."
    """

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise KeyUnavailableError(
                f"Key must be exactly {KEY_SIZE} bytes, got {len(key)}"
            )
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: bytes) -> bytes:
        nonce = os.urandom(NONCE_SIZE)
        return nonce + self._aead.encrypt(nonce, plaintext, None)

    def decrypt(self, blob: bytes) -> bytes:
        """
        Decrypt and verify a blob produced by encrypt().

        Raises:
            DecryptionError: If the blob is too short or fails authentication
        """
        if len(blob) < NONCE_SIZE + TAG_SIZE:
            raise DecryptionError(
                f"Ciphertext too short ({len(blob)} bytes)"
            )
        nonce, ciphertext = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
        try:
            return self._aead.decrypt(nonce, ciphertext, None)
        except InvalidTag as e:
            raise DecryptionError("Ciphertext failed authentication") from e
