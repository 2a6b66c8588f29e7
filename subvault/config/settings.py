"""
Configuration Management for SubVault

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every knob that changes behaviour (where the document lives, how strict
the store is about missing ids, when reminders fire) is visible in one place
and validated at startup.
"""

from datetime import tzinfo
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class NotFoundPolicy(str, Enum):
    """
    What update/delete-by-id does when the id is not in the store.

    IDEMPOTENT: succeed without changing anything.
    STRICT: fail with NotFoundError, nothing is written.
    """
    IDEMPOTENT = "idempotent"
    STRICT = "strict"


class StoreSettings(BaseSettings):
    """Encrypted document store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUBVAULT_STORE_",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path.home() / ".subvault",
        description="Directory holding the encrypted document and key file"
    )
    document_filename: str = Field(
        default="appdata.svd",
        description="File name of the encrypted document"
    )
    not_found_policy: NotFoundPolicy = Field(
        default=NotFoundPolicy.IDEMPOTENT,
        description="Behaviour of update/delete when the id does not exist"
    )
    max_commit_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times a transaction is retried on a revision conflict"
    )

    @property
    def document_path(self) -> Path:
        return self.data_dir / self.document_filename


class SecuritySettings(BaseSettings):
    """Key management configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUBVAULT_SECURITY_",
        extra="ignore"
    )

    keyring_service: str = Field(
        default="subvault",
        description="Service name used for the OS keyring entry"
    )
    keyring_username: str = Field(
        default="document_key",
        description="Account name used for the OS keyring entry"
    )
    key_filename: str = Field(
        default="document.key",
        description="Fallback key file (inside data_dir) when no keyring backend exists"
    )


class NotificationSettings(BaseSettings):
    """Local reminder configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUBVAULT_NOTIFICATIONS_",
        extra="ignore"
    )

    notification_hour: int = Field(
        default=9,
        ge=0,
        le=23,
        description="Local hour of day at which reminders fire"
    )
    exact_alarms_enabled: bool = Field(
        default=True,
        description="Whether exact-time alarms may be used (else deferred queue)"
    )
    timezone: Optional[str] = Field(
        default=None,
        description="IANA zone reminders are computed in (unset = system local zone)"
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    def zone(self) -> Optional[tzinfo]:
        return ZoneInfo(self.timezone) if self.timezone else None


class BackupSettings(BaseSettings):
    """Backup file configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUBVAULT_BACKUP_",
        extra="ignore"
    )

    file_extension: str = Field(
        default=".svb",
        description="Extension of encrypted backup files"
    )
    filename_prefix: str = Field(
        default="subvault_backup",
        description="Prefix of generated backup file names"
    )

    @field_validator('file_extension')
    @classmethod
    def validate_extension(cls, v: str) -> str:
        """Extension must start with a dot."""
        if not v.startswith("."):
            raise ValueError(f"Backup file extension must start with '.': {v}")
        return v.lower()


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SUBVAULT_",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )

    default_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Currency used for totals when none is given"
    )

    # Validation thresholds
    max_subscription_cost: float = Field(
        default=10000.0,
        gt=0,
        description="Costs above this are flagged for review (sanity check)"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level = v.upper()
        if level not in allowed:
            raise ValueError(f"Unsupported log level: {v}. Allowed: {sorted(allowed)}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are built on access so a broken section
    # does not prevent the others from loading

    @property
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def security(self) -> SecuritySettings:
        return SecuritySettings()

    @property
    def notifications(self) -> NotificationSettings:
        return NotificationSettings()

    @property
    def backup(self) -> BackupSettings:
        return BackupSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


class InvalidSettingsError(ValueError):
    """One or more settings sections failed validation."""

    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        details = "; ".join(f"{name}: {message}" for name, message in errors.items())
        super().__init__(f"Invalid settings: {details}")


def validate_all_settings(settings: Optional[Settings] = None) -> dict[str, Union[bool, str]]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for the sections that failed.
    Useful for startup checks.
    """
    results = {}

    settings = settings or get_settings()

    for name in ("store", "security", "notifications", "backup", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
