"""Services package."""

from subvault.services.crypto import (
    CipherService,
    CryptoError,
    DecryptionError,
    KeyProvider,
    KeyUnavailableError,
)
from subvault.services.storage import (
    AuditStorageInterface,
    ConcurrentModificationError,
    CorruptDocumentError,
    DocumentStoreInterface,
    EncryptedFileDocumentStore,
    InMemoryAuditStorage,
    InMemoryDocumentStore,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Crypto services
    "CipherService",
    "CryptoError",
    "DecryptionError",
    "KeyProvider",
    "KeyUnavailableError",
    # Storage services
    "AuditStorageInterface",
    "ConcurrentModificationError",
    "CorruptDocumentError",
    "DocumentStoreInterface",
    "EncryptedFileDocumentStore",
    "InMemoryAuditStorage",
    "InMemoryDocumentStore",
    "NotFoundError",
    "StorageError",
]
