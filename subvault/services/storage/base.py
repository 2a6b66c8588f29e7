"""
Transactional Document Store

Shared update machinery for every DocumentStoreInterface implementation.

How update() works:
1. Take the store lock (one update at a time within this process)
2. Load the committed document and run the transform on it
3. Commit, stating which revision we started from
4. If something else committed in between (another process, a sync tool),
   the backend raises ConcurrentModificationError and tenacity re-runs
   steps 2-3 from a fresh read

Backends only implement _load() and _commit().
"""

import asyncio
from abc import abstractmethod
from typing import AsyncIterator

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random,
)

from subvault.models.document import AppDocument
from subvault.services.storage.interface import (
    ConcurrentModificationError,
    DocumentStoreInterface,
    DocumentTransform,
)

logger = structlog.get_logger(__name__)


class TransactionalDocumentStore(DocumentStoreInterface):
    """
    Serialized read-transform-commit with optimistic conflict retry.
    """

    def __init__(self, max_commit_attempts: int = 3):
        self._lock = asyncio.Lock()
        self._max_commit_attempts = max_commit_attempts
        self._watchers: set[asyncio.Queue] = set()

    @abstractmethod
    async def _load(self) -> AppDocument:
        """Load the committed document from the backend."""
        pass

    @abstractmethod
    async def _commit(self, document: AppDocument, expected_revision: int) -> None:
        """
        Persist `document`.

        Raises:
            ConcurrentModificationError: If the stored revision is no
                                         longer `expected_revision`
        """
        pass

    async def read(self) -> AppDocument:
        return await self._load()

    async def update(self, transform: DocumentTransform) -> AppDocument:
        async with self._lock:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(ConcurrentModificationError),
                stop=stop_after_attempt(self._max_commit_attempts),
                wait=wait_random(min=0, max=0.05),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.info(
                            "document_commit_retry",
                            attempt=attempt.retry_state.attempt_number,
                        )
                    current = await self._load()
                    updated = transform(current)
                    if updated is current or updated == current:
                        return current

                    committed = updated.model_copy(
                        update={"revision": current.revision + 1}
                    )
                    await self._commit(committed, expected_revision=current.revision)
                    self._publish(committed)
                    return committed

    async def watch(self) -> AsyncIterator[AppDocument]:
        queue: asyncio.Queue = asyncio.Queue()
        # Registering under the lock means no commit can slip in between
        # the first snapshot and the first queued one.
        async with self._lock:
            snapshot = await self._load()
            self._watchers.add(queue)
        try:
            yield snapshot
            while True:
                yield await queue.get()
        finally:
            self._watchers.discard(queue)

    def _publish(self, document: AppDocument) -> None:
        for queue in self._watchers:
            queue.put_nowait(document)
