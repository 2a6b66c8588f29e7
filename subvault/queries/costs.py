"""
Cost Analytics

DESIGN DECISION: Analytics are DETERMINISTIC and only ever sum the stored
records. Nothing is estimated or converted: a subscription billed in another
currency contributes zero to a total in this currency.

The module-level functions are pure (subscriptions in, numbers out).
CostAnalytics runs them against the current document and wraps the answer
in a Result, like every other store-facing operation.
"""

import calendar
from collections import defaultdict
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

from subvault.models.billing import BillingPeriod
from subvault.models.result import Failure, InvalidArgumentError, Result, Success
from subvault.models.subscription import Subscription, SubscriptionStatus
from subvault.services.storage import DocumentStoreInterface

T = TypeVar("T")

UNCATEGORIZED = "Other"
TWO_PLACES = Decimal("0.01")


class UpcomingCost(BaseModel):
    """One charge expected within the lookahead window."""
    model_config = ConfigDict(frozen=True)

    subscription_id: str
    subscription_name: str
    amount: Decimal
    currency: str
    billing_date: date
    days_until_billing: int


class MonthlyCost(BaseModel):
    model_config = ConfigDict(frozen=True)

    month: date  # first day of the month
    total_cost: Decimal
    subscription_count: int


def _in_currency(subscriptions: Iterable[Subscription], currency: str) -> list[Subscription]:
    currency = currency.upper()
    return [s for s in subscriptions if s.currency == currency]


def _active(subscriptions: Iterable[Subscription]) -> list[Subscription]:
    return [s for s in subscriptions if s.is_active]


def total_monthly_cost(subscriptions: Iterable[Subscription], currency: str) -> Decimal:
    """Sum of monthly equivalents of active subscriptions in `currency`."""
    return sum(
        (s.monthly_equivalent() for s in _in_currency(_active(subscriptions), currency)),
        Decimal(0),
    )


def total_yearly_cost(subscriptions: Iterable[Subscription], currency: str) -> Decimal:
    return sum(
        (s.annual_cost() for s in _in_currency(_active(subscriptions), currency)),
        Decimal(0),
    )


def costs_by_category(
    subscriptions: Iterable[Subscription],
    currency: str,
) -> dict[str, Decimal]:
    """Monthly cost per category id. Uncategorized goes under "Other"."""
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for s in _in_currency(_active(subscriptions), currency):
        totals[s.category or UNCATEGORIZED] += s.monthly_equivalent()
    return dict(totals)


def costs_by_billing_period(
    subscriptions: Iterable[Subscription],
    currency: str,
) -> dict[BillingPeriod, Decimal]:
    """Raw (not normalized) cost per billing period."""
    totals: dict[BillingPeriod, Decimal] = defaultdict(Decimal)
    for s in _in_currency(_active(subscriptions), currency):
        totals[s.billing_period] += s.cost
    return dict(totals)


def upcoming_costs(
    subscriptions: Iterable[Subscription],
    currency: str,
    today: date,
    days: int = 30,
) -> list[UpcomingCost]:
    """
    Charges due on or before today + days.

    Overdue charges are included with a negative days_until_billing.
    """
    if days <= 0:
        raise InvalidArgumentError(f"days must be positive, got {days}")
    horizon = date.fromordinal(today.toordinal() + days)

    due = [
        s for s in _in_currency(_active(subscriptions), currency)
        if s.next_billing_date <= horizon
    ]
    due.sort(key=lambda s: (s.next_billing_date, s.id))
    return [
        UpcomingCost(
            subscription_id=s.id,
            subscription_name=s.name,
            amount=s.cost,
            currency=s.currency,
            billing_date=s.next_billing_date,
            days_until_billing=(s.next_billing_date - today).days,
        )
        for s in due
    ]


def _shift_month(month_start: date, offset: int) -> date:
    index = month_start.year * 12 + (month_start.month - 1) + offset
    return date(index // 12, index % 12 + 1, 1)


def cost_trend(
    subscriptions: Iterable[Subscription],
    currency: str,
    today: date,
    months: int = 12,
) -> list[MonthlyCost]:
    """
    Monthly totals for the last `months` months, oldest first.

    A subscription counts toward a month when it is active now and had
    started by the end of that month.
    """
    if months <= 0:
        raise InvalidArgumentError(f"months must be positive, got {months}")

    candidates = _in_currency(_active(subscriptions), currency)
    first = _shift_month(date(today.year, today.month, 1), -(months - 1))

    trend = []
    for offset in range(months):
        month_start = _shift_month(first, offset)
        last_day = calendar.monthrange(month_start.year, month_start.month)[1]
        month_end = month_start.replace(day=last_day)

        running = [s for s in candidates if s.start_date <= month_end]
        trend.append(MonthlyCost(
            month=month_start,
            total_cost=sum((s.monthly_equivalent() for s in running), Decimal(0)),
            subscription_count=len(running),
        ))
    return trend


def average_monthly_cost(
    subscriptions: Iterable[Subscription],
    currency: str,
    today: date,
    months: int = 12,
) -> Decimal:
    """Mean of the cost trend, 2 decimal places, half-up."""
    trend = cost_trend(subscriptions, currency, today, months)
    total = sum((m.total_cost for m in trend), Decimal(0))
    return (total / len(trend)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def cost_savings(subscriptions: Iterable[Subscription], currency: str) -> Decimal:
    """Monthly amount no longer spent thanks to cancelled subscriptions."""
    return sum(
        (
            s.monthly_equivalent()
            for s in _in_currency(subscriptions, currency)
            if s.status == SubscriptionStatus.CANCELLED
        ),
        Decimal(0),
    )


def projected_annual_cost(subscriptions: Iterable[Subscription], currency: str) -> Decimal:
    return total_monthly_cost(subscriptions, currency) * 12


class CostAnalytics:
    """
    Runs the cost queries against the stored subscriptions.

    Usage:
        analytics = CostAnalytics(store)
        result = await analytics.total_monthly_cost("USD")
        if result.is_success:
            print(result.value)
    """

    def __init__(
        self,
        store: DocumentStoreInterface,
        today: Optional[Callable[[], date]] = None,
    ):
        self._store = store
        self._today = today or date.today

    async def _run(self, query: Callable[[list[Subscription]], T]) -> Result[T]:
        try:
            document = await self._store.read()
            return Success(query(list(document.subscriptions.items)))
        except Exception as e:
            return Failure(e)

    async def total_monthly_cost(self, currency: str = "USD") -> Result[Decimal]:
        return await self._run(lambda subs: total_monthly_cost(subs, currency))

    async def total_yearly_cost(self, currency: str = "USD") -> Result[Decimal]:
        return await self._run(lambda subs: total_yearly_cost(subs, currency))

    async def costs_by_category(self, currency: str = "USD") -> Result[dict[str, Decimal]]:
        return await self._run(lambda subs: costs_by_category(subs, currency))

    async def costs_by_billing_period(
        self,
        currency: str = "USD",
    ) -> Result[dict[BillingPeriod, Decimal]]:
        return await self._run(lambda subs: costs_by_billing_period(subs, currency))

    async def upcoming_costs(
        self,
        days: int = 30,
        currency: str = "USD",
    ) -> Result[list[UpcomingCost]]:
        today = self._today()
        return await self._run(lambda subs: upcoming_costs(subs, currency, today, days))

    async def cost_trend(
        self,
        months: int = 12,
        currency: str = "USD",
    ) -> Result[list[MonthlyCost]]:
        today = self._today()
        return await self._run(lambda subs: cost_trend(subs, currency, today, months))

    async def average_monthly_cost(
        self,
        months: int = 12,
        currency: str = "USD",
    ) -> Result[Decimal]:
        today = self._today()
        return await self._run(
            lambda subs: average_monthly_cost(subs, currency, today, months)
        )

    async def cost_savings(self, currency: str = "USD") -> Result[Decimal]:
        return await self._run(lambda subs: cost_savings(subs, currency))

    async def projected_annual_cost(self, currency: str = "USD") -> Result[Decimal]:
        return await self._run(lambda subs: projected_annual_cost(subs, currency))
