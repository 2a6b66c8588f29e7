"""
Repositories Package

Typed access to the collections inside the single AppDocument.
"""

from subvault.repositories.base import BaseRepository, require_id
from subvault.repositories.budgets import BudgetRepository, current_spending
from subvault.repositories.categories import CategoryRepository
from subvault.repositories.preferences import PreferencesRepository
from subvault.repositories.subscriptions import SubscriptionRepository

__all__ = [
    "BaseRepository",
    "BudgetRepository",
    "CategoryRepository",
    "PreferencesRepository",
    "SubscriptionRepository",
    "current_spending",
    "require_id",
]
