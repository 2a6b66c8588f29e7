"""
The Application Document

Everything SubVault knows lives in one AppDocument. The storage layer
serializes it, encrypts it as a whole and swaps it atomically.

Each collection carries its own last_updated stamp (epoch seconds).
The subscription list also carries a version counter, bumped on every change.
The document-level revision is owned by the store and is used to detect
concurrent writers.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from subvault.models.preferences import UserPreferences
from subvault.models.subscription import Budget, Category, Subscription

SCHEMA_VERSION = 1


class SubscriptionList(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: tuple[Subscription, ...] = Field(default_factory=tuple)
    last_updated: int = 0
    version: int = 0


class CategoryList(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: tuple[Category, ...] = Field(default_factory=tuple)
    last_updated: int = 0


class BudgetList(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: tuple[Budget, ...] = Field(default_factory=tuple)
    last_updated: int = 0


class AppDocument(BaseModel):
    """Root of the persisted state."""
    model_config = ConfigDict(frozen=True)

    schema_version: int = SCHEMA_VERSION
    revision: int = Field(default=0, ge=0)
    subscriptions: SubscriptionList = Field(default_factory=SubscriptionList)
    categories: CategoryList = Field(default_factory=CategoryList)
    budgets: BudgetList = Field(default_factory=BudgetList)
    preferences: Optional[UserPreferences] = None

    def with_subscriptions(
        self,
        items: list[Subscription],
        timestamp: int,
    ) -> 'AppDocument':
        """New document with the subscription list replaced and stamped."""
        return self.model_copy(update={
            "subscriptions": SubscriptionList(
                items=tuple(items),
                last_updated=timestamp,
                version=self.subscriptions.version + 1,
            )
        })

    def with_categories(
        self,
        items: list[Category],
        timestamp: int,
    ) -> 'AppDocument':
        return self.model_copy(update={
            "categories": CategoryList(items=tuple(items), last_updated=timestamp)
        })

    def with_budgets(
        self,
        items: list[Budget],
        timestamp: int,
    ) -> 'AppDocument':
        return self.model_copy(update={
            "budgets": BudgetList(items=tuple(items), last_updated=timestamp)
        })

    def with_preferences(self, preferences: UserPreferences) -> 'AppDocument':
        return self.model_copy(update={"preferences": preferences})
