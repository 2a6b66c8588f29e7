"""
Billing Periods and Cost Normalization

Converts a subscription's price and billing period into monthly and annual
equivalents using fixed period-length assumptions.

DESIGN DECISION: Money is Decimal everywhere, never float.
Every division is quantized to 4 fractional digits with ROUND_HALF_UP so the
same inputs always give the same output on every platform.

KNOWN QUIRK: CUSTOM divides the cost by the cycle length (which is in days)
for the monthly figure, as if the cycle were a number of months. The annual
figure treats it as days (365 / cycle). This is kept as-is until the
product decision is made; see DESIGN.md.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Union

from subvault.models.result import InvalidArgumentError

FOUR_PLACES = Decimal("0.0001")

WEEKS_PER_MONTH = Decimal("4.33")
DAYS_PER_MONTH = Decimal(30)
DAYS_PER_YEAR = Decimal(365)
WEEKS_PER_YEAR = Decimal(52)


class BillingPeriod(str, Enum):
    """How often a subscription charges."""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    SEMI_ANNUALLY = "SEMI_ANNUALLY"
    ANNUALLY = "ANNUALLY"
    CUSTOM = "CUSTOM"  # cycle length in days


def parse_money(value: Union[str, int, Decimal]) -> Decimal:
    """
    Parse a currency amount into a Decimal.

    Floats are refused: they already lost precision.

    Raises:
        InvalidArgumentError: For floats, malformed or non-finite strings
    """
    if isinstance(value, (bool, float)):
        raise InvalidArgumentError(f"Money must be a decimal string, not {type(value).__name__}")
    try:
        amount = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except InvalidOperation:
        raise InvalidArgumentError(f"Malformed decimal amount: {value!r}")
    if not amount.is_finite():
        raise InvalidArgumentError(f"Amount must be finite: {value!r}")
    return amount


def _divide(amount: Decimal, divisor: Union[int, Decimal]) -> Decimal:
    return (amount / Decimal(divisor)).quantize(FOUR_PLACES, rounding=ROUND_HALF_UP)


def _check_cycle(billing_cycle: int) -> None:
    if billing_cycle <= 0:
        raise InvalidArgumentError(
            f"Custom billing cycle must be a positive number of days, got {billing_cycle}"
        )


def monthly_equivalent(
    cost: Decimal,
    billing_period: BillingPeriod,
    billing_cycle: int = 1,
) -> Decimal:
    """Monthly cost equivalent of one charge of `cost` every period."""
    if billing_period == BillingPeriod.DAILY:
        return cost * DAYS_PER_MONTH
    elif billing_period == BillingPeriod.WEEKLY:
        return cost * WEEKS_PER_MONTH
    elif billing_period == BillingPeriod.MONTHLY:
        return cost
    elif billing_period == BillingPeriod.QUARTERLY:
        return _divide(cost, 3)
    elif billing_period == BillingPeriod.SEMI_ANNUALLY:
        return _divide(cost, 6)
    elif billing_period == BillingPeriod.ANNUALLY:
        return _divide(cost, 12)
    elif billing_period == BillingPeriod.CUSTOM:
        _check_cycle(billing_cycle)
        return _divide(cost, billing_cycle)
    raise InvalidArgumentError(f"Unknown billing period: {billing_period}")


def annual_cost(
    cost: Decimal,
    billing_period: BillingPeriod,
    billing_cycle: int = 1,
) -> Decimal:
    """Annual cost of one charge of `cost` every period."""
    if billing_period == BillingPeriod.DAILY:
        return cost * DAYS_PER_YEAR
    elif billing_period == BillingPeriod.WEEKLY:
        return cost * WEEKS_PER_YEAR
    elif billing_period == BillingPeriod.MONTHLY:
        return cost * 12
    elif billing_period == BillingPeriod.QUARTERLY:
        return cost * 4
    elif billing_period == BillingPeriod.SEMI_ANNUALLY:
        return cost * 2
    elif billing_period == BillingPeriod.ANNUALLY:
        return cost
    elif billing_period == BillingPeriod.CUSTOM:
        _check_cycle(billing_cycle)
        return _divide(cost * DAYS_PER_YEAR, billing_cycle)
    raise InvalidArgumentError(f"Unknown billing period: {billing_period}")
