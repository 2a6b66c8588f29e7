"""Validation package."""

from subvault.validation.validator import (
    SubscriptionValidationError,
    SubscriptionValidator,
)

__all__ = ["SubscriptionValidationError", "SubscriptionValidator"]
