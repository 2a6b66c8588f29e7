"""
Backup File Models

The decrypted content of a backup file is JSON:

    {
      "version": "1.0",
      "createdAt": "2026-01-31T09:15:00+00:00",
      "subscriptions": [ {"id": ..., "nextBillingDate": "2026-02-14", "cost": "9.99", ...} ]
    }

Keys are camelCase, dates are ISO-8601 strings and money is a decimal string.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from subvault.models.subscription import Subscription, utcnow

BACKUP_VERSION = "1.0"
SUPPORTED_VERSIONS = frozenset({BACKUP_VERSION})


class BackupSubscription(Subscription):
    """A Subscription as it is written to a backup file."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @classmethod
    def from_subscription(cls, subscription: Subscription) -> 'BackupSubscription':
        return cls.model_validate(subscription.model_dump())

    def to_subscription(self) -> Subscription:
        return Subscription.model_validate(self.model_dump())


class BackupData(BaseModel):
    """Root object of a backup file."""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    version: str = BACKUP_VERSION
    created_at: datetime = Field(default_factory=utcnow)
    subscriptions: list[BackupSubscription] = Field(default_factory=list)

    def to_json_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")


class BackupFileInfo(BaseModel):
    """Metadata about a backup file on disk."""
    model_config = ConfigDict(frozen=True)

    name: str
    path: Path
    size: int
    modified_at: datetime
    subscription_count: Optional[int] = None


class BackupValidation(BaseModel):
    """Answer to "is this a backup we can restore?"."""
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    message: str
    subscription_count: int = 0


class RestoreReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    restored_count: int
    replaced_existing: bool
    backup_version: str
    backup_created_at: datetime
