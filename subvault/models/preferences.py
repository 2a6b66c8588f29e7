"""
User Preferences

A single record per installation. It is created with defaults on first read
and always replaced wholesale: callers read the record, change what they
need and write the whole thing back.

PRIVACY: analytics_enabled and crash_reporting_enabled are typed
Literal[False]. A record that tries to switch them on fails validation.
"""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from subvault.models.subscription import utcnow


class BackupFrequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    NEVER = "NEVER"


class ThemeMode(str, Enum):
    LIGHT = "LIGHT"
    DARK = "DARK"
    SYSTEM = "SYSTEM"


class UserPreferences(BaseModel):
    """Application-wide user settings."""
    model_config = ConfigDict(frozen=True)

    default_currency: str = Field(default="USD", min_length=3, max_length=3)

    # Display filters
    show_trial_subscriptions: bool = True
    show_cancelled_subscriptions: bool = False

    # Notification defaults
    global_notifications_enabled: bool = True
    default_notification_days: int = Field(default=3, ge=0, le=365)
    notification_sound_enabled: bool = True
    notification_vibration_enabled: bool = True

    # App lock
    require_authentication: bool = False
    auto_lock_enabled: bool = False
    auto_lock_timeout_minutes: int = Field(default=5, ge=1, le=1440)

    # Backup cadence
    backup_enabled: bool = True
    backup_frequency: BackupFrequency = BackupFrequency.WEEKLY

    theme_mode: ThemeMode = ThemeMode.SYSTEM

    # Pinned off
    analytics_enabled: Literal[False] = False
    crash_reporting_enabled: Literal[False] = False

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator('default_currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()
