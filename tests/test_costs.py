"""
Tests for cost normalization and cost analytics.
"""

import pytest
from datetime import date
from decimal import Decimal

from subvault.models import (
    AppDocument,
    BillingPeriod,
    InvalidArgumentError,
    SubscriptionStatus,
    annual_cost,
    monthly_equivalent,
    parse_money,
)
from subvault.queries import (
    CostAnalytics,
    average_monthly_cost,
    cost_savings,
    cost_trend,
    costs_by_billing_period,
    costs_by_category,
    projected_annual_cost,
    total_monthly_cost,
    total_yearly_cost,
    upcoming_costs,
)
from subvault.services.storage import InMemoryDocumentStore


class TestMonthlyEquivalent:
    """Tests for the monthly normalization table."""

    @pytest.mark.parametrize("period,cost,expected", [
        (BillingPeriod.DAILY, "1.00", "30.00"),
        (BillingPeriod.WEEKLY, "10", "43.30"),
        (BillingPeriod.MONTHLY, "15.99", "15.99"),
        (BillingPeriod.QUARTERLY, "10", "3.3333"),
        (BillingPeriod.SEMI_ANNUALLY, "10", "1.6667"),
        (BillingPeriod.ANNUALLY, "100", "8.3333"),
    ])
    def test_fixed_periods(self, period, cost, expected):
        assert monthly_equivalent(Decimal(cost), period) == Decimal(expected)

    def test_custom_divides_by_cycle(self):
        """CUSTOM treats the cycle length as the monthly divisor."""
        assert monthly_equivalent(Decimal("30"), BillingPeriod.CUSTOM, 30) == Decimal("1.0000")
        assert monthly_equivalent(Decimal("10"), BillingPeriod.CUSTOM, 3) == Decimal("3.3333")

    def test_custom_rejects_non_positive_cycle(self):
        with pytest.raises(InvalidArgumentError):
            monthly_equivalent(Decimal("10"), BillingPeriod.CUSTOM, 0)
        with pytest.raises(InvalidArgumentError):
            annual_cost(Decimal("10"), BillingPeriod.CUSTOM, -5)

    def test_rounds_half_up(self):
        # 0.0006 / 12 = 0.00005 exactly
        assert monthly_equivalent(Decimal("0.0006"), BillingPeriod.ANNUALLY) == Decimal("0.0001")


class TestAnnualCost:
    """Tests for the annual normalization table."""

    @pytest.mark.parametrize("period,expected", [
        (BillingPeriod.DAILY, "3650"),
        (BillingPeriod.WEEKLY, "520"),
        (BillingPeriod.MONTHLY, "120"),
        (BillingPeriod.QUARTERLY, "40"),
        (BillingPeriod.SEMI_ANNUALLY, "20"),
        (BillingPeriod.ANNUALLY, "10"),
    ])
    def test_fixed_periods(self, period, expected):
        assert annual_cost(Decimal("10"), period) == Decimal(expected)

    def test_custom_uses_days_per_year(self):
        assert annual_cost(Decimal("30"), BillingPeriod.CUSTOM, 30) == Decimal("365.0000")
        assert annual_cost(Decimal("1"), BillingPeriod.CUSTOM, 7) == Decimal("52.1429")


class TestParseMoney:

    def test_parses_strings(self):
        assert parse_money(" 9.99 ") == Decimal("9.99")
        assert parse_money(5) == Decimal(5)

    @pytest.mark.parametrize("value", [9.99, True, "abc", "NaN", "Infinity"])
    def test_rejects_unusable_values(self, value):
        with pytest.raises(InvalidArgumentError):
            parse_money(value)


@pytest.fixture
def portfolio(make_subscription):
    return [
        make_subscription(id="netflix", category="entertainment"),
        make_subscription(
            id="cloud",
            name="Cloud",
            cost=Decimal("120"),
            billing_period=BillingPeriod.ANNUALLY,
            category="",
            next_billing_date=date(2026, 3, 12),
        ),
        make_subscription(
            id="gym",
            name="Gym",
            cost=Decimal("40"),
            status=SubscriptionStatus.CANCELLED,
            category="health",
        ),
        make_subscription(
            id="paper",
            name="Paper",
            cost=Decimal("8"),
            currency="EUR",
        ),
    ]


class TestCostQueries:
    """Pure aggregate functions over a fixed set of subscriptions."""

    def test_total_monthly_cost(self, portfolio):
        assert total_monthly_cost(portfolio, "USD") == Decimal("25.99")
        assert total_monthly_cost(portfolio, "eur") == Decimal("8")

    def test_total_yearly_cost(self, portfolio):
        assert total_yearly_cost(portfolio, "USD") == Decimal("311.88")

    def test_costs_by_category(self, portfolio):
        assert costs_by_category(portfolio, "USD") == {
            "entertainment": Decimal("15.99"),
            "Other": Decimal("10.0000"),
        }

    def test_costs_by_billing_period_uses_raw_cost(self, portfolio):
        assert costs_by_billing_period(portfolio, "USD") == {
            BillingPeriod.MONTHLY: Decimal("15.99"),
            BillingPeriod.ANNUALLY: Decimal("120"),
        }

    def test_upcoming_costs(self, portfolio, make_subscription, today):
        overdue = make_subscription(id="late", next_billing_date=date(2026, 3, 5))
        upcoming = upcoming_costs(portfolio + [overdue], "USD", today, days=3)

        assert [u.subscription_id for u in upcoming] == ["late", "cloud"]
        assert upcoming[0].days_until_billing == -5
        assert upcoming[1].days_until_billing == 2
        assert upcoming[1].amount == Decimal("120")

    def test_upcoming_costs_rejects_bad_window(self, portfolio, today):
        with pytest.raises(InvalidArgumentError):
            upcoming_costs(portfolio, "USD", today, days=0)

    def test_cost_trend(self, make_subscription, today):
        subs = [
            make_subscription(id="old", cost=Decimal("10"), start_date=date(2025, 12, 1)),
            make_subscription(id="new", cost=Decimal("5"), start_date=date(2026, 2, 15)),
        ]
        trend = cost_trend(subs, "USD", today, months=3)

        assert [m.month for m in trend] == [
            date(2026, 1, 1),
            date(2026, 2, 1),
            date(2026, 3, 1),
        ]
        assert [m.total_cost for m in trend] == [Decimal("10"), Decimal("15"), Decimal("15")]
        assert [m.subscription_count for m in trend] == [1, 2, 2]

    def test_cost_trend_crosses_year_boundary(self, make_subscription):
        trend = cost_trend([make_subscription()], "USD", date(2026, 1, 20), months=2)
        assert [m.month for m in trend] == [date(2025, 12, 1), date(2026, 1, 1)]

    def test_average_monthly_cost(self, make_subscription, today):
        subs = [
            make_subscription(id="old", cost=Decimal("10"), start_date=date(2025, 12, 1)),
            make_subscription(id="new", cost=Decimal("5"), start_date=date(2026, 2, 15)),
        ]
        # (10 + 15 + 15) / 3 = 13.333...
        assert average_monthly_cost(subs, "USD", today, months=3) == Decimal("13.33")

    def test_cost_savings(self, portfolio):
        assert cost_savings(portfolio, "USD") == Decimal("40")

    def test_projected_annual_cost(self, portfolio):
        assert projected_annual_cost(portfolio, "USD") == Decimal("311.88")


class TestCostAnalytics:
    """CostAnalytics runs the same queries against the store."""

    @pytest.mark.asyncio
    async def test_total_monthly_cost_from_store(self, portfolio):
        store = InMemoryDocumentStore(AppDocument().with_subscriptions(portfolio, 1))
        analytics = CostAnalytics(store)

        result = await analytics.total_monthly_cost("USD")
        assert result.is_success
        assert result.value == Decimal("25.99")

    @pytest.mark.asyncio
    async def test_upcoming_costs_uses_injected_today(self, portfolio, today):
        store = InMemoryDocumentStore(AppDocument().with_subscriptions(portfolio, 1))
        analytics = CostAnalytics(store, today=lambda: today)

        result = await analytics.upcoming_costs(days=3)
        assert [u.subscription_id for u in result.value] == ["cloud"]

    @pytest.mark.asyncio
    async def test_bad_window_is_failure(self, store):
        result = await CostAnalytics(store).upcoming_costs(days=-1)
        assert result.is_failure
        assert isinstance(result.error, InvalidArgumentError)

    @pytest.mark.asyncio
    async def test_empty_store_totals_zero(self, store):
        result = await CostAnalytics(store).total_yearly_cost()
        assert result.value == Decimal(0)
