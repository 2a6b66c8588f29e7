"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The encrypted file store is the production backend; the in-memory store
backs the tests.
"""

from subvault.services.storage.interface import (
    AuditStorageInterface,
    ConcurrentModificationError,
    CorruptDocumentError,
    DuplicateError,
    DocumentStoreInterface,
    DocumentTransform,
    NotFoundError,
    StorageError,
)
from subvault.services.storage.base import TransactionalDocumentStore
from subvault.services.storage.encrypted_file import (
    EncryptedFileDocumentStore,
    atomic_write_bytes,
)
from subvault.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryDocumentStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "DocumentStoreInterface",
    "DocumentTransform",
    "TransactionalDocumentStore",
    # Exceptions
    "ConcurrentModificationError",
    "CorruptDocumentError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "EncryptedFileDocumentStore",
    "InMemoryAuditStorage",
    "InMemoryDocumentStore",
    "atomic_write_bytes",
]
