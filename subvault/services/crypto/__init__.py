"""
Encryption Services Package

AES-256-GCM for the document and backup files, plus key loading.
"""

from subvault.services.crypto.cipher import (
    CipherService,
    CryptoError,
    DecryptionError,
    KeyUnavailableError,
)
from subvault.services.crypto.keys import (
    MASTER_KEY_ENV,
    KeyProvider,
    generate_key,
)

__all__ = [
    "CipherService",
    "CryptoError",
    "DecryptionError",
    "KeyUnavailableError",
    "KeyProvider",
    "MASTER_KEY_ENV",
    "generate_key",
]
