"""
Core Data Models for SubVault

These models define the strict schemas for everything kept in the
encrypted document. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and backup
4. Stay immutable, so store transactions can be retried safely

DESIGN DECISION: Models are frozen. A change is always a new copy made with
model_copy(update=...), never an in-place mutation of a stored record.
"""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from subvault.models.billing import (
    FOUR_PLACES,
    BillingPeriod,
    annual_cost,
    monthly_equivalent,
)


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class SubscriptionStatus(str, Enum):
    """
    Subscription lifecycle status.

    NOTE: Transitions are not enforced. Any status may follow any other.
    """
    ACTIVE = "ACTIVE"
    TRIAL = "TRIAL"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


ACTIVE_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL})


# =============================================================================
# SUBSCRIPTION
# =============================================================================

class Subscription(BaseModel):
    """
    A recurring charge the user wants to keep an eye on.

    `category` holds a Category id (or is blank when uncategorized).
    `billing_cycle` only matters for CUSTOM periods, where it is a length in days.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Opaque subscription identifier"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name, e.g. 'Netflix'"
    )
    description: str = Field(default="", max_length=1000)
    cost: Decimal = Field(
        ...,
        ge=0,
        description="Amount charged every billing period"
    )
    currency: str = Field(
        ...,
        min_length=3,
        max_length=3,
        description="ISO 4217 currency code"
    )
    billing_period: BillingPeriod
    billing_cycle: int = Field(
        default=1,
        gt=0,
        description="Cycle length in days (CUSTOM only)"
    )
    start_date: date
    next_billing_date: date
    trial_end_date: Optional[date] = None
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE

    # Reminders
    notifications_enabled: bool = True
    notification_days_before: int = Field(
        default=3,
        ge=0,
        le=365,
        description="Lead days: how long before the date a reminder fires"
    )

    category: str = Field(default="", description="Category id")
    tags: tuple[str, ...] = Field(default_factory=tuple)
    notes: str = Field(default="", max_length=2000)
    website_url: str = ""
    support_email: str = ""

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        if not v.isalpha():
            raise ValueError(f"Currency must be a 3-letter code: {v}")
        return v.upper()

    @model_validator(mode='after')
    def validate_dates(self) -> 'Subscription':
        """Validate date relationships."""
        if self.next_billing_date < self.start_date:
            raise ValueError("Next billing date cannot be before start date")
        return self

    @property
    def is_active(self) -> bool:
        """ACTIVE and TRIAL subscriptions still cost money."""
        return self.status in ACTIVE_STATUSES

    def is_in_trial(self, today: date) -> bool:
        return self.trial_end_date is not None and today < self.trial_end_date

    def monthly_equivalent(self) -> Decimal:
        return monthly_equivalent(self.cost, self.billing_period, self.billing_cycle)

    def annual_cost(self) -> Decimal:
        return annual_cost(self.cost, self.billing_period, self.billing_cycle)


# =============================================================================
# CATEGORY
# =============================================================================

DEFAULT_CATEGORY_NAMES = (
    "Entertainment",
    "Software",
    "News & Media",
    "Education",
    "Health & Fitness",
    "Productivity",
    "Music",
    "Cloud Storage",
    "Gaming",
    "Other",
)

DEFAULT_CATEGORY_COLORS = (
    "#6750A4", "#625B71", "#7D5260", "#1B6F3C", "#F57C00",
    "#D32F2F", "#1976D2", "#7B1FA2", "#388E3C", "#F57C00",
)

DEFAULT_CATEGORY_ICONS = {
    "entertainment": "movie",
    "software": "computer",
    "news & media": "newspaper",
    "education": "school",
    "health & fitness": "fitness_center",
    "productivity": "work",
    "music": "music_note",
    "cloud storage": "cloud",
    "gaming": "sports_esports",
}


class Category(BaseModel):
    """
    A user-defined grouping of subscriptions.

    sort_order defines display order; values need not be contiguous.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(default_factory=new_id, min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(
        default="#625B71",
        pattern=r"^#[0-9A-Fa-f]{6}$",
        description="Hex color code"
    )
    icon: str = Field(default="category", description="Icon key")
    sort_order: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def defaults(cls) -> list['Category']:
        """The starter categories created for a new user."""
        now = utcnow()
        return [
            cls(
                name=name,
                color=DEFAULT_CATEGORY_COLORS[index % len(DEFAULT_CATEGORY_COLORS)],
                icon=DEFAULT_CATEGORY_ICONS.get(name.lower(), "category"),
                sort_order=index,
                created_at=now,
                updated_at=now,
            )
            for index, name in enumerate(DEFAULT_CATEGORY_NAMES)
        ]


# =============================================================================
# BUDGET
# =============================================================================

class Budget(BaseModel):
    """
    A monthly spending limit over a subset of subscriptions.

    Matching rule: an empty allow-list matches everything on its axis, and a
    subscription counts when it matches the category axis OR the
    subscription axis.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(default_factory=new_id, min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    monthly_limit: Decimal = Field(..., ge=0)
    currency: str = Field(..., min_length=3, max_length=3)
    included_categories: tuple[str, ...] = Field(
        default_factory=tuple,
        description="Category ids; empty = all categories"
    )
    included_subscriptions: tuple[str, ...] = Field(
        default_factory=tuple,
        description="Subscription ids; empty = all subscriptions"
    )
    notifications_enabled: bool = True
    notification_threshold: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Fraction of the limit at which to warn"
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()

    def matches(self, subscription: Subscription) -> bool:
        matches_category = (
            not self.included_categories
            or subscription.category in self.included_categories
        )
        matches_subscription = (
            not self.included_subscriptions
            or subscription.id in self.included_subscriptions
        )
        return matches_category or matches_subscription

    def is_threshold_exceeded(self, current_spending: Decimal) -> bool:
        threshold = self.monthly_limit * Decimal(str(self.notification_threshold))
        return current_spending >= threshold

    def is_limit_exceeded(self, current_spending: Decimal) -> bool:
        return current_spending > self.monthly_limit

    def remaining_amount(self, current_spending: Decimal) -> Decimal:
        return max(self.monthly_limit - current_spending, Decimal(0))

    def usage_percentage(self, current_spending: Decimal) -> Decimal:
        """Fraction of the limit used, 4 digits, capped at 1."""
        if self.monthly_limit == 0:
            return Decimal(0)
        usage = (current_spending / self.monthly_limit).quantize(
            FOUR_PLACES, rounding=ROUND_HALF_UP
        )
        return min(usage, Decimal(1))
