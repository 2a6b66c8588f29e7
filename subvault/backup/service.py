"""
Backup and Restore

DESIGN DECISIONS:
1. A backup is the subscription list as JSON, encrypted with the same
   authenticated cipher as the document. It never leaves the device unless
   the user copies the file.
2. Restore reports WHY it failed with a typed error so the caller can show
   an actionable message:
   - BackupIOError: the file could not be read or written
   - BackupDecryptionError: wrong key, or the file was tampered with
   - CorruptBackupError: decrypted, but not a valid backup document
   - UnsupportedBackupVersionError: a format this build does not read
   - EmptyBackupError: a valid backup with nothing in it
3. The version is checked BEFORE the records are validated. A future format
   is reported as unsupported, not as corrupt.
4. Replace and merge are each ONE store update. A failed restore leaves the
   stored subscriptions exactly as they were.
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from subvault.backup.models import (
    SUPPORTED_VERSIONS,
    BackupData,
    BackupFileInfo,
    BackupSubscription,
    BackupValidation,
    RestoreReport,
)
from subvault.config import BackupSettings, get_settings
from subvault.models.result import Failure, Result, Success
from subvault.repositories import SubscriptionRepository
from subvault.services.crypto import CipherService, DecryptionError
from subvault.services.storage import atomic_write_bytes

logger = structlog.get_logger(__name__)


class BackupError(Exception):
    """Base exception for backup and restore errors."""
    pass


class BackupIOError(BackupError):
    """The backup file could not be read or written."""
    pass


class BackupDecryptionError(BackupError):
    """The backup file did not decrypt with this device's key."""
    pass


class CorruptBackupError(BackupError):
    """The backup decrypted but is not a valid backup document."""
    pass


class UnsupportedBackupVersionError(BackupError):
    """The backup was written in a format version we cannot read."""

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"Backup version {version!r} is not supported")


class EmptyBackupError(BackupError):
    """The backup contains no subscriptions."""
    pass


def _local_now() -> datetime:
    return datetime.now().astimezone()


class BackupService:
    """
    Creates and restores encrypted backup files.

    Usage:
        service = BackupService(subscriptions, cipher)
        created = await service.create_backup(Path("~/Backups").expanduser())
        restored = await service.restore(created.value.path, replace_existing=True)
    """

    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        cipher: CipherService,
        settings: Optional[BackupSettings] = None,
        clock: Callable[[], datetime] = _local_now,
    ):
        self._subscriptions = subscriptions
        self._cipher = cipher
        self._settings = settings or get_settings().backup
        self._clock = clock

    def backup_filename(self, when: datetime) -> str:
        """e.g. subvault_backup_20260131_091500.svb"""
        return (
            f"{self._settings.filename_prefix}_"
            f"{when.strftime('%Y%m%d_%H%M%S')}"
            f"{self._settings.file_extension}"
        )

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create_backup(self, directory: Path) -> Result[BackupFileInfo]:
        """
        Write an encrypted backup of every subscription into `directory`.
        """
        everything = await self._subscriptions.get_all_subscriptions()
        if everything.is_failure:
            return everything

        try:
            now = self._clock()
            backup = BackupData(
                created_at=now,
                subscriptions=[
                    BackupSubscription.from_subscription(s) for s in everything.value
                ],
            )
            blob = self._cipher.encrypt(backup.to_json_bytes())
            path = Path(directory) / self.backup_filename(now)

            try:
                await asyncio.to_thread(atomic_write_bytes, path, blob)
            except OSError as e:
                raise BackupIOError(f"Cannot write backup to {path}: {e}") from e

            info = await asyncio.to_thread(self._stat, path)
            logger.info(
                "backup_created",
                path=str(path),
                subscription_count=len(backup.subscriptions),
            )
            return Success(info.model_copy(
                update={"subscription_count": len(backup.subscriptions)}
            ))
        except Exception as e:
            return Failure(e)

    # =========================================================================
    # RESTORE
    # =========================================================================

    async def _read(self, path: Path) -> bytes:
        try:
            return await asyncio.to_thread(Path(path).read_bytes)
        except OSError as e:
            raise BackupIOError(f"Cannot read backup file {path}: {e}") from e

    def _decode(self, blob: bytes) -> BackupData:
        """
        Decrypt and parse a backup blob.

        Raises:
            BackupDecryptionError, CorruptBackupError,
            UnsupportedBackupVersionError
        """
        try:
            plaintext = self._cipher.decrypt(blob)
        except DecryptionError as e:
            raise BackupDecryptionError(
                "Backup could not be decrypted. It was made on another device "
                "or has been modified."
            ) from e

        try:
            raw = json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorruptBackupError("Backup content is not valid JSON") from e
        if not isinstance(raw, dict):
            raise CorruptBackupError("Backup content is not a JSON object")

        version = raw.get("version")
        if not isinstance(version, str):
            raise CorruptBackupError("Backup has no version tag")
        if version not in SUPPORTED_VERSIONS:
            raise UnsupportedBackupVersionError(version)

        try:
            backup = BackupData.model_validate(raw)
        except ValidationError as e:
            raise CorruptBackupError(
                f"Backup contains {e.error_count()} invalid fields"
            ) from e

        ids = [s.id for s in backup.subscriptions]
        if len(set(ids)) != len(ids):
            raise CorruptBackupError("Backup repeats a subscription id")
        return backup

    async def restore(
        self,
        path: Path,
        replace_existing: bool = False,
    ) -> Result[RestoreReport]:
        """
        Restore subscriptions from a backup file.

        Args:
            path: The backup file
            replace_existing: True replaces the whole subscription list;
                              False merges by id (backup wins on conflicts)
        """
        try:
            backup = self._decode(await self._read(path))
            if not backup.subscriptions:
                raise EmptyBackupError("Backup contains no subscriptions")

            subscriptions = [s.to_subscription() for s in backup.subscriptions]
            if replace_existing:
                written = await self._subscriptions.replace_all(subscriptions)
            else:
                written = await self._subscriptions.merge(subscriptions)
            if written.is_failure:
                return written

            logger.info(
                "backup_restored",
                path=str(path),
                restored_count=len(subscriptions),
                replaced=replace_existing,
            )
            return Success(RestoreReport(
                restored_count=len(subscriptions),
                replaced_existing=replace_existing,
                backup_version=backup.version,
                backup_created_at=backup.created_at,
            ))
        except Exception as e:
            logger.warning(
                "backup_restore_failed",
                path=str(path),
                error_type=type(e).__name__,
            )
            return Failure(e)

    # =========================================================================
    # INSPECTION
    # =========================================================================

    async def validate_backup_file(self, path: Path) -> BackupValidation:
        """
        Check that a file looks like a restorable backup without restoring it.
        """
        path = Path(path)
        extension = self._settings.file_extension
        if path.suffix.lower() != extension:
            return BackupValidation(
                is_valid=False,
                message=f"Invalid file format. Expected {extension} file",
            )
        try:
            backup = self._decode(await self._read(path))
        except BackupError as e:
            return BackupValidation(is_valid=False, message=f"Invalid backup file: {e}")

        return BackupValidation(
            is_valid=True,
            message=f"Valid backup file with {len(backup.subscriptions)} subscriptions",
            subscription_count=len(backup.subscriptions),
        )

    def _stat(self, path: Path) -> BackupFileInfo:
        stat = path.stat()
        return BackupFileInfo(
            name=path.name,
            path=path,
            size=stat.st_size,
            modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    async def get_backup_file_info(self, path: Path) -> Result[BackupFileInfo]:
        """File metadata only. The content is not decrypted."""
        try:
            return Success(await asyncio.to_thread(self._stat, Path(path)))
        except OSError as e:
            return Failure(BackupIOError(f"Cannot inspect {path}: {e}"))
