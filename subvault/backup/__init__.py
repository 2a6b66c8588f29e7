"""Encrypted backup and restore package."""

from subvault.backup.models import (
    BACKUP_VERSION,
    SUPPORTED_VERSIONS,
    BackupData,
    BackupFileInfo,
    BackupSubscription,
    BackupValidation,
    RestoreReport,
)
from subvault.backup.service import (
    BackupDecryptionError,
    BackupError,
    BackupIOError,
    BackupService,
    CorruptBackupError,
    EmptyBackupError,
    UnsupportedBackupVersionError,
)

__all__ = [
    "BACKUP_VERSION",
    "SUPPORTED_VERSIONS",
    "BackupData",
    "BackupDecryptionError",
    "BackupError",
    "BackupFileInfo",
    "BackupIOError",
    "BackupService",
    "BackupSubscription",
    "BackupValidation",
    "CorruptBackupError",
    "EmptyBackupError",
    "RestoreReport",
    "UnsupportedBackupVersionError",
]
