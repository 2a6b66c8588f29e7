"""
Tests for subscription validation.
"""

import pytest
from datetime import date
from decimal import Decimal

from subvault.config import AppSettings
from subvault.validation import SubscriptionValidationError, SubscriptionValidator


@pytest.fixture
def validator():
    return SubscriptionValidator(AppSettings(max_subscription_cost=500))


def raw_fields(**overrides) -> dict:
    fields = {
        "name": "Netflix",
        "cost": "15.99",
        "currency": "USD",
        "billing_period": "MONTHLY",
        "start_date": "2026-01-01",
        "next_billing_date": "2026-03-15",
    }
    fields.update(overrides)
    return fields


class TestSemanticValidation:
    """Tests for rules checked on a built Subscription."""

    def test_valid_subscription(self, validator, make_subscription, today):
        result = validator.validate(make_subscription(), today)
        assert result.is_valid
        assert result.issues == []

    def test_one_day_grace_for_past_billing_date(self, validator, make_subscription, today):
        yesterday = make_subscription(next_billing_date=date(2026, 3, 9))
        assert validator.validate(yesterday, today).is_valid

        stale = make_subscription(next_billing_date=date(2026, 3, 8))
        result = validator.validate(stale, today)
        assert [i.issue_type for i in result.issues] == ["past_date"]

    def test_trial_end_before_start(self, validator, make_subscription, today):
        sub = make_subscription(trial_end_date=date(2025, 12, 1))
        result = validator.validate(sub, today)
        assert [i.field for i in result.issues] == ["trial_end_date"]

    @pytest.mark.parametrize("email,valid", [
        ("help@example.com", True),
        ("first.last+tag@mail.example.co", True),
        ("not-an-email", False),
        ("a@b", False),
    ])
    def test_support_email(self, validator, make_subscription, today, email, valid):
        result = validator.validate(make_subscription(support_email=email), today)
        assert result.is_valid is valid

    @pytest.mark.parametrize("url,valid", [
        ("https://netflix.com", True),
        ("http://example.com/account", True),
        ("netflix.com", False),
        ("ftp://example.com", False),
    ])
    def test_website_url(self, validator, make_subscription, today, url, valid):
        result = validator.validate(make_subscription(website_url=url), today)
        assert result.is_valid is valid

    def test_high_cost_is_only_a_warning(self, validator, make_subscription, today):
        result = validator.validate(make_subscription(cost=Decimal("999")), today)
        assert result.is_valid
        assert [w.field for w in result.warnings] == ["cost"]

    def test_ensure_valid_raises_with_result(self, validator, make_subscription, today):
        stale = make_subscription(next_billing_date=date(2026, 1, 15))
        with pytest.raises(SubscriptionValidationError) as exc_info:
            validator.ensure_valid(stale, today)
        assert exc_info.value.result.error_count == 1
        assert "in the past" in str(exc_info.value)


class TestParse:
    """Tests for parsing raw form fields."""

    def test_parse_valid_fields(self, validator, today):
        subscription, result = validator.parse(raw_fields(), today)
        assert subscription is not None
        assert subscription.cost == Decimal("15.99")
        assert result.is_valid

    @pytest.mark.parametrize("field,value", [
        ("name", "  "),
        ("cost", "-1"),
        ("currency", "DOLLARS"),
        ("billing_cycle", 0),
        ("notification_days_before", 400),
    ])
    def test_schema_errors(self, validator, today, field, value):
        subscription, result = validator.parse(raw_fields(**{field: value}), today)
        assert subscription is None
        assert result.has_errors
        assert any(i.field == field for i in result.issues)

    @pytest.mark.parametrize("cost", ["9,99", "ten", "NaN", 9.99])
    def test_malformed_cost(self, validator, today, cost):
        subscription, result = validator.parse(raw_fields(cost=cost), today)
        assert subscription is None
        assert [(i.field, i.issue_type) for i in result.issues] == [("cost", "invalid_format")]

    def test_cost_whitespace_is_tolerated(self, validator, today):
        subscription, _ = validator.parse(raw_fields(cost=" 4.50 "), today)
        assert subscription.cost == Decimal("4.50")

    def test_missing_required_field(self, validator, today):
        fields = raw_fields()
        del fields["name"]
        _, result = validator.parse(fields, today)
        assert [i.issue_type for i in result.issues] == ["missing"]


class TestSummary:

    def test_all_good(self, validator, make_subscription, today):
        result = validator.validate(make_subscription(), today)
        assert validator.get_user_friendly_summary(result) == "All checks passed."

    def test_errors_and_warnings(self, validator, make_subscription, today):
        sub = make_subscription(
            cost=Decimal("999"),
            next_billing_date=date(2026, 1, 15),
        )
        summary = validator.get_user_friendly_summary(validator.validate(sub, today))
        assert "Please fix the following:" in summary
        assert "Please verify the following:" in summary
