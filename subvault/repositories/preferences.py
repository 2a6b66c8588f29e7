"""
Preferences Repository

UserPreferences is a singleton that is always written whole. The helpers
below are read-modify-write inside one transform, so two helpers running
back to back cannot lose each other's change.
"""

from typing import Any

from subvault.models.document import AppDocument
from subvault.models.preferences import ThemeMode, UserPreferences
from subvault.models.result import Failure, InvalidArgumentError, Result, Success
from subvault.repositories.base import BaseRepository


class PreferencesRepository(BaseRepository):

    def _patch(self, document: AppDocument, **changes: Any) -> AppDocument:
        current = document.preferences or UserPreferences()
        # Validate through the model so pinned fields stay pinned
        updated = UserPreferences.model_validate({
            **current.model_dump(),
            **changes,
            "updated_at": self._now(),
        })
        return document.with_preferences(updated)

    async def _patch_and_write(self, operation: str, **changes: Any) -> Result[UserPreferences]:
        result = await self._write(
            operation,
            lambda document: self._patch(document, **changes),
        )
        if result.is_failure:
            return result
        return Success(result.value.preferences)

    async def get_user_preferences(self) -> Result[UserPreferences]:
        """The stored preferences, or defaults if none were saved yet."""
        return await self._query(
            lambda document: document.preferences or UserPreferences()
        )

    async def update_user_preferences(self, preferences: UserPreferences) -> Result[UserPreferences]:
        """Replace the whole record."""
        result = await self._write(
            "update_user_preferences",
            lambda document: document.with_preferences(preferences),
        )
        return Success(preferences) if result.is_success else result

    async def update_default_currency(self, currency: str) -> Result[UserPreferences]:
        if not isinstance(currency, str) or len(currency.strip()) != 3 or not currency.strip().isalpha():
            return Failure(InvalidArgumentError(f"Currency must be a 3-letter code: {currency!r}"))
        return await self._patch_and_write(
            "update_default_currency",
            default_currency=currency.strip().upper(),
        )

    async def update_theme_mode(self, theme_mode: ThemeMode) -> Result[UserPreferences]:
        return await self._patch_and_write("update_theme_mode", theme_mode=theme_mode)

    async def update_notification_settings(
        self,
        enabled: bool,
        default_days: int,
        sound_enabled: bool,
        vibration_enabled: bool,
    ) -> Result[UserPreferences]:
        return await self._patch_and_write(
            "update_notification_settings",
            global_notifications_enabled=enabled,
            default_notification_days=default_days,
            notification_sound_enabled=sound_enabled,
            notification_vibration_enabled=vibration_enabled,
        )

    async def update_security_settings(
        self,
        require_authentication: bool,
        auto_lock_enabled: bool,
        auto_lock_timeout_minutes: int,
    ) -> Result[UserPreferences]:
        return await self._patch_and_write(
            "update_security_settings",
            require_authentication=require_authentication,
            auto_lock_enabled=auto_lock_enabled,
            auto_lock_timeout_minutes=auto_lock_timeout_minutes,
        )

    async def reset_to_defaults(self) -> Result[UserPreferences]:
        defaults = UserPreferences(created_at=self._now(), updated_at=self._now())
        result = await self._write(
            "reset_to_defaults",
            lambda document: document.with_preferences(defaults),
        )
        return Success(defaults) if result.is_success else result
