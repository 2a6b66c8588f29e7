"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Use an in-memory document for testing
2. Keep the encrypted file format out of business logic
3. Keep repositories decoupled from storage implementation

The interface is intentionally tiny. All data lives in ONE document and
every change is a pure function from the old document to the new one.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable
from uuid import UUID

from subvault.models.audit import AuditEvent
from subvault.models.document import AppDocument

DocumentTransform = Callable[[AppDocument], AppDocument]


class DocumentStoreInterface(ABC):
    """
    Abstract interface for the single-document store.

    Any implementation (encrypted file, in-memory) must implement these
    methods with the same guarantees:
    - update() calls are serialized against each other
    - observers never see a snapshot that was not committed
    """

    @abstractmethod
    async def read(self) -> AppDocument:
        """
        Return the latest committed document.

        A store that has never been written returns an empty document.
        """
        pass

    @abstractmethod
    async def update(self, transform: DocumentTransform) -> AppDocument:
        """
        Atomically replace the document with transform(current).

        Args:
            transform: Pure function of the current document. It may be
                       called more than once if a commit conflicts.

        Returns:
            The committed document (or the current one if nothing changed)

        Raises:
            ConcurrentModificationError: If the commit kept conflicting
            StorageError: If the document cannot be read or written
            Any exception raised by transform, unchanged
        """
        pass

    @abstractmethod
    def watch(self) -> AsyncIterator[AppDocument]:
        """
        Yield the current document, then every committed document.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one save flow).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConcurrentModificationError(StorageError):
    """The document changed between read and commit."""
    pass


class CorruptDocumentError(StorageError):
    """The stored document decrypted but could not be parsed."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert an entity whose id already exists."""
    pass
