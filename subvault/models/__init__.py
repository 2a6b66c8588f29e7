"""
Data Models Package

This package contains all Pydantic models used in SubVault.
All data kept in the encrypted document must conform to these schemas.
"""

from subvault.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from subvault.models.billing import (
    BillingPeriod,
    annual_cost,
    monthly_equivalent,
    parse_money,
)
from subvault.models.document import (
    AppDocument,
    BudgetList,
    CategoryList,
    SubscriptionList,
)
from subvault.models.preferences import (
    BackupFrequency,
    ThemeMode,
    UserPreferences,
)
from subvault.models.result import (
    BatchCollector,
    BatchOutcome,
    Failure,
    InvalidArgumentError,
    Result,
    Success,
)
from subvault.models.subscription import (
    Budget,
    Category,
    Subscription,
    SubscriptionStatus,
)
from subvault.models.validation import (
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Domain models
    "BillingPeriod",
    "Budget",
    "Category",
    "Subscription",
    "SubscriptionStatus",
    "BackupFrequency",
    "ThemeMode",
    "UserPreferences",
    # Document
    "AppDocument",
    "BudgetList",
    "CategoryList",
    "SubscriptionList",
    # Cost normalization
    "annual_cost",
    "monthly_equivalent",
    "parse_money",
    # Results
    "BatchCollector",
    "BatchOutcome",
    "Failure",
    "InvalidArgumentError",
    "Result",
    "Success",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
