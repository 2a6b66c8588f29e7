"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Type checking
- Required field presence
- Format and range validation (currency code, cycle length, lead days)
- Handled by the Subscription model itself; its errors become issues

STAGE 2 - SEMANTIC VALIDATION:
- Next billing date not already in the past
- Trial ending before the subscription started
- Contact details that cannot work (malformed email or URL)
- Absurd amount detection
- This catches logically impossible or suspicious data

WHY TWO STAGES:
1. Separation of concerns (structural vs logical)
2. Better error messages (know exactly what kind of issue)
3. Can skip stage 2 if stage 1 fails

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the user can correct the form.
"""

import re
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

from pydantic import HttpUrl, TypeAdapter, ValidationError

from subvault.config import AppSettings, get_settings
from subvault.models.billing import parse_money
from subvault.models.result import InvalidArgumentError
from subvault.models.subscription import Subscription
from subvault.models.validation import ValidationIssue, ValidationResult

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9+_.-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")

# A billing date this many days old is still accepted (timezone slack)
PAST_DATE_GRACE_DAYS = 1

_url_adapter = TypeAdapter(HttpUrl)


class SubscriptionValidationError(ValueError):
    """A subscription failed validation. Carries the full result."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(
            issue.message for issue in result.issues if issue.severity == "error"
        )
        super().__init__(f"Subscription is invalid: {messages}")


class SubscriptionValidator:
    """
    Validates subscriptions before they are written.

    Usage:
        validator = SubscriptionValidator()
        subscription, result = validator.parse(form_data, today)
        if not result.is_valid:
            print(validator.get_user_friendly_summary(result))
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _schema_issues(self, error: ValidationError) -> list[ValidationIssue]:
        """
        Stage 1: turn model validation errors into issues.
        """
        issues = []
        for detail in error.errors():
            field = ".".join(str(part) for part in detail["loc"]) or "subscription"
            issues.append(ValidationIssue(
                field=field,
                issue_type="missing" if detail["type"] == "missing" else "invalid_value",
                message=f"{field}: {detail['msg']}" if detail["loc"] else detail["msg"],
                severity="error",
            ))
        return issues

    def _validate_semantic(
        self,
        subscription: Subscription,
        today: date,
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation.

        Checks:
        - Stale billing dates
        - Trial/start consistency
        - Email and website format
        - Absurd amounts
        """
        issues = []

        oldest_allowed = today - timedelta(days=PAST_DATE_GRACE_DAYS)
        if subscription.next_billing_date < oldest_allowed:
            issues.append(ValidationIssue(
                field="next_billing_date",
                issue_type="past_date",
                message=f"Next billing date ({subscription.next_billing_date}) is in the past",
                severity="error",
                suggested_fix="Move the next billing date to the upcoming charge",
            ))

        if (
            subscription.trial_end_date is not None
            and subscription.trial_end_date < subscription.start_date
        ):
            issues.append(ValidationIssue(
                field="trial_end_date",
                issue_type="inconsistent",
                message="Trial end date is before the start date",
                severity="error",
                suggested_fix="Please verify both dates",
            ))

        if subscription.support_email and not EMAIL_PATTERN.match(subscription.support_email):
            issues.append(ValidationIssue(
                field="support_email",
                issue_type="invalid_format",
                message=f"Support email ({subscription.support_email}) is not a valid address",
                severity="error",
            ))

        if subscription.website_url:
            try:
                _url_adapter.validate_python(subscription.website_url)
            except ValidationError:
                issues.append(ValidationIssue(
                    field="website_url",
                    issue_type="invalid_format",
                    message=f"Website ({subscription.website_url}) is not a valid http(s) URL",
                    severity="error",
                    suggested_fix="Include the scheme, e.g. https://example.com",
                ))

        max_cost = Decimal(str(self._settings.max_subscription_cost))
        if subscription.cost > max_cost:
            issues.append(ValidationIssue(
                field="cost",
                issue_type="suspicious_value",
                message=f"Cost ({subscription.cost} {subscription.currency}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        return issues

    def validate(self, subscription: Subscription, today: date) -> ValidationResult:
        """Run the semantic checks on an already-built subscription."""
        return ValidationResult(
            subscription_id=subscription.id,
            issues=self._validate_semantic(subscription, today),
        )

    def parse(
        self,
        data: dict[str, Any],
        today: date,
    ) -> tuple[Optional[Subscription], ValidationResult]:
        """
        Run full two-stage validation on raw field values.

        Returns:
            (subscription or None if stage 1 failed, ValidationResult)
        """
        subscription_id = str(data.get("id") or "")
        if data.get("cost") is not None:
            try:
                data = {**data, "cost": parse_money(data["cost"])}
            except InvalidArgumentError as e:
                return None, ValidationResult(
                    subscription_id=subscription_id,
                    issues=[ValidationIssue(
                        field="cost",
                        issue_type="invalid_format",
                        message=str(e),
                        severity="error",
                        suggested_fix="Enter the amount as a number, e.g. 9.99",
                    )],
                )
        try:
            subscription = Subscription.model_validate(data)
        except ValidationError as e:
            return None, ValidationResult(
                subscription_id=subscription_id,
                issues=self._schema_issues(e),
            )
        return subscription, self.validate(subscription, today)

    def ensure_valid(self, subscription: Subscription, today: date) -> ValidationResult:
        """
        Raises:
            SubscriptionValidationError: If any error-level issue is found
        """
        result = self.validate(subscription, today)
        if result.has_errors:
            raise SubscriptionValidationError(result)
        return result

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []
        if result.has_errors:
            lines.append("Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   - {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for issue in result.warnings:
                lines.append(f"   - {issue.message}")

        return "\n".join(lines)
