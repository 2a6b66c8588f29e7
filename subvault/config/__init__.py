"""Configuration package."""

from subvault.config.settings import (
    AppSettings,
    BackupSettings,
    InvalidSettingsError,
    NotFoundPolicy,
    NotificationSettings,
    SecuritySettings,
    Settings,
    StoreSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "BackupSettings",
    "InvalidSettingsError",
    "NotFoundPolicy",
    "NotificationSettings",
    "SecuritySettings",
    "Settings",
    "StoreSettings",
    "get_settings",
    "validate_all_settings",
]
