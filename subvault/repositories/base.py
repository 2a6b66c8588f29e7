"""
Repository Base

Every write is ONE store.update() call whose transform:
1. Reads the current collection
2. Applies a list-level change (append, replace-by-id, remove-by-id)
3. Writes the collection back stamped with the commit time

Every operation returns a Result. Nothing a repository does raises into
the caller.

Not-found handling on update/delete follows NotFoundPolicy:
- IDEMPOTENT: nothing to change, so nothing is written; Success
- STRICT: Failure(NotFoundError), nothing is written
"""

from datetime import datetime
from typing import Callable, Optional, TypeVar

import structlog

from subvault.config import NotFoundPolicy, get_settings
from subvault.models.document import AppDocument
from subvault.models.result import Failure, InvalidArgumentError, Result, Success
from subvault.models.subscription import utcnow
from subvault.services.storage import (
    DocumentStoreInterface,
    DocumentTransform,
    NotFoundError,
)

T = TypeVar("T")

logger = structlog.get_logger(__name__)


def require_id(value: str, what: str = "id") -> str:
    """
    Raises:
        InvalidArgumentError: If value is blank
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"{what} must not be blank")
    return value


class BaseRepository:
    """Shared plumbing for the document-backed repositories."""

    def __init__(
        self,
        store: DocumentStoreInterface,
        not_found_policy: Optional[NotFoundPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._policy = not_found_policy or get_settings().store.not_found_policy
        self._clock = clock or utcnow

    @property
    def not_found_policy(self) -> NotFoundPolicy:
        return self._policy

    def _now(self) -> datetime:
        return self._clock()

    def _timestamp(self) -> int:
        """Commit time as epoch seconds."""
        return int(self._clock().timestamp())

    def _missing(self, document: AppDocument, kind: str, entity_id: str) -> AppDocument:
        """
        What a transform returns when its target does not exist.

        Raising inside the transform aborts the update before anything
        is committed.
        """
        if self._policy == NotFoundPolicy.STRICT:
            raise NotFoundError(f"{kind} not found: {entity_id}")
        logger.debug("update_target_missing", kind=kind, entity_id=entity_id)
        return document

    async def _write(
        self,
        operation: str,
        transform: DocumentTransform,
    ) -> Result[AppDocument]:
        try:
            return Success(await self._store.update(transform))
        except Exception as e:
            logger.warning(
                "repository_write_failed",
                operation=operation,
                error_type=type(e).__name__,
                error=str(e),
            )
            return Failure(e)

    async def _query(self, select: Callable[[AppDocument], T]) -> Result[T]:
        try:
            return Success(select(await self._store.read()))
        except Exception as e:
            return Failure(e)
