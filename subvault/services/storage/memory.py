"""
In-Memory Storage

Process-local implementations of the storage interfaces. Used by the test
suite and anywhere the data should not outlive the process.
"""

from typing import Optional
from uuid import UUID

from subvault.models.audit import AuditEvent
from subvault.models.document import AppDocument
from subvault.services.storage.base import TransactionalDocumentStore
from subvault.services.storage.interface import (
    AuditStorageInterface,
    ConcurrentModificationError,
)


class InMemoryDocumentStore(TransactionalDocumentStore):
    """Keeps the committed document in a plain attribute."""

    def __init__(
        self,
        document: Optional[AppDocument] = None,
        max_commit_attempts: int = 3,
    ):
        super().__init__(max_commit_attempts=max_commit_attempts)
        self._document = document or AppDocument()

    async def _load(self) -> AppDocument:
        return self._document

    async def _commit(self, document: AppDocument, expected_revision: int) -> None:
        if self._document.revision != expected_revision:
            raise ConcurrentModificationError(
                f"Expected revision {expected_revision}, "
                f"found {self._document.revision}"
            )
        self._document = document


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
