"""
Encrypted File Storage

The on-disk home of the AppDocument.

File format: CipherService blob of the document's JSON encoding. The whole
document is encrypted as one unit; there is no plaintext header.

DESIGN DECISIONS:
1. Writes go to a temp file in the same directory, are fsynced, then
   os.replace()d over the old file. A crash leaves either the old or the
   new document, never half of one.
2. A missing or empty file is a fresh install: the default document.
3. A file that fails to decrypt raises. Returning a default here would let
   the next write destroy the user's data.
"""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Optional

import structlog
from pydantic import ValidationError

from subvault.models.document import AppDocument
from subvault.services.crypto import CipherService
from subvault.services.storage.base import TransactionalDocumentStore
from subvault.services.storage.interface import (
    ConcurrentModificationError,
    CorruptDocumentError,
    StorageError,
)

logger = structlog.get_logger(__name__)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write `data` to `path` via temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class EncryptedFileDocumentStore(TransactionalDocumentStore):
    """
    Document store backed by one encrypted file.

    Usage:
        store = EncryptedFileDocumentStore(path, CipherService(key))
        doc = await store.update(lambda d: d.with_categories(...))
    """

    def __init__(
        self,
        path: Path,
        cipher: CipherService,
        max_commit_attempts: int = 3,
    ):
        super().__init__(max_commit_attempts=max_commit_attempts)
        self._path = Path(path)
        self._cipher = cipher

    @property
    def path(self) -> Path:
        return self._path

    async def _load(self) -> AppDocument:
        return await asyncio.to_thread(self._load_sync)

    async def _commit(self, document: AppDocument, expected_revision: int) -> None:
        await asyncio.to_thread(self._commit_sync, document, expected_revision)

    def _read_bytes(self) -> Optional[bytes]:
        try:
            return self._path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Cannot read {self._path}: {e}") from e

    def _load_sync(self) -> AppDocument:
        blob = self._read_bytes()
        if not blob:
            return AppDocument()

        # DecryptionError propagates as-is
        plaintext = self._cipher.decrypt(blob)
        try:
            return AppDocument.model_validate_json(plaintext)
        except ValidationError as e:
            logger.error(
                "document_parse_failed",
                path=str(self._path),
                error_count=e.error_count(),
            )
            raise CorruptDocumentError(
                f"Stored document at {self._path} is not valid"
            ) from e

    def _commit_sync(self, document: AppDocument, expected_revision: int) -> None:
        on_disk = self._load_sync()
        if on_disk.revision != expected_revision:
            raise ConcurrentModificationError(
                f"Expected revision {expected_revision}, "
                f"found {on_disk.revision} on disk"
            )
        payload = document.model_dump_json().encode("utf-8")
        try:
            atomic_write_bytes(self._path, self._cipher.encrypt(payload))
        except OSError as e:
            raise StorageError(f"Cannot write {self._path}: {e}") from e
        logger.debug(
            "document_committed",
            path=str(self._path),
            revision=document.revision,
        )
