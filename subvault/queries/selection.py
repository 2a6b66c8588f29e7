"""
Renewal and Trial Selection

Picks the active subscriptions whose next billing date (or trial end date)
falls inside a lookahead window.

Window: [today, today + days], both ends inclusive.
Order: by the date, then by subscription id, so equal dates always come
back in the same order.
"""

from datetime import date, timedelta
from typing import Callable, Iterable, Optional

from subvault.models.result import InvalidArgumentError
from subvault.models.subscription import Subscription


def validate_window(days: int) -> None:
    """
    Raises:
        InvalidArgumentError: If days is not a positive integer
    """
    if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
        raise InvalidArgumentError(f"Lookahead window must be a positive number of days, got {days!r}")


def _select(
    subscriptions: Iterable[Subscription],
    today: date,
    days: int,
    date_of: Callable[[Subscription], Optional[date]],
) -> list[Subscription]:
    validate_window(days)
    horizon = today + timedelta(days=days)

    selected = []
    for subscription in subscriptions:
        if not subscription.is_active:
            continue
        target = date_of(subscription)
        if target is not None and today <= target <= horizon:
            selected.append(subscription)

    selected.sort(key=lambda s: (date_of(s), s.id))
    return selected


def select_upcoming_renewals(
    subscriptions: Iterable[Subscription],
    today: date,
    days: int,
) -> list[Subscription]:
    """
    Active subscriptions billing within the next `days` days.

    Raises:
        InvalidArgumentError: If days is not a positive integer
    """
    return _select(subscriptions, today, days, lambda s: s.next_billing_date)


def select_ending_trials(
    subscriptions: Iterable[Subscription],
    today: date,
    days: int,
) -> list[Subscription]:
    """
    Active subscriptions whose trial ends within the next `days` days.

    Subscriptions without a trial end date are skipped.

    Raises:
        InvalidArgumentError: If days is not a positive integer
    """
    return _select(subscriptions, today, days, lambda s: s.trial_end_date)
