"""
Notification Service

Batch operations over the stored subscriptions. A batch keeps going past
individual failures and only fails as a whole when nothing succeeded.
"""

from datetime import date
from typing import Callable, Optional

from subvault.models.result import (
    BatchCollector,
    BatchOutcome,
    Failure,
    Result,
    Success,
)
from subvault.models.subscription import Subscription
from subvault.notifications.scheduler import NotificationScheduler
from subvault.queries.selection import validate_window
from subvault.repositories import SubscriptionRepository


class NotificationService:
    """
    Usage:
        service = NotificationService(scheduler, subscriptions)
        outcome = await service.schedule_all()
    """

    def __init__(
        self,
        scheduler: NotificationScheduler,
        subscriptions: SubscriptionRepository,
        today: Optional[Callable[[], date]] = None,
    ):
        self._scheduler = scheduler
        self._subscriptions = subscriptions
        self._today = today or date.today

    @property
    def scheduler(self) -> NotificationScheduler:
        return self._scheduler

    async def schedule_notifications(self, subscription: Subscription) -> Result[None]:
        """Renewal reminder, plus the trial reminder when there is a trial."""
        if not subscription.notifications_enabled:
            return Success(None)

        renewal = await self._scheduler.schedule_renewal(subscription)
        if renewal.is_failure:
            return renewal

        if subscription.trial_end_date is not None:
            trial = await self._scheduler.schedule_trial_ending(subscription)
            if trial.is_failure:
                return trial

        return Success(None)

    async def cancel_notifications(self, subscription_id: str) -> Result[None]:
        return await self._scheduler.cancel(subscription_id)

    async def reschedule_notifications(self, subscription: Subscription) -> Result[None]:
        return await self._scheduler.reschedule(subscription)

    async def _schedule_each(self, subscriptions: list[Subscription]) -> Result[BatchOutcome]:
        batch = BatchCollector()
        for subscription in subscriptions:
            batch.add(await self.schedule_notifications(subscription))
        return batch.result()

    async def schedule_all(self) -> Result[BatchOutcome]:
        """Schedule reminders for every active subscription."""
        active = await self._subscriptions.get_active_subscriptions()
        if active.is_failure:
            return active
        return await self._schedule_each(active.value)

    async def cancel_all(self) -> Result[BatchOutcome]:
        """Cancel reminders for every stored subscription, active or not."""
        everything = await self._subscriptions.get_all_subscriptions()
        if everything.is_failure:
            return everything

        batch = BatchCollector()
        for subscription in everything.value:
            batch.add(await self._scheduler.cancel(subscription.id))
        return batch.result()

    async def schedule_upcoming_renewals(self, days: int = 7) -> Result[BatchOutcome]:
        try:
            validate_window(days)
        except Exception as e:
            return Failure(e)

        upcoming = await self._subscriptions.get_upcoming_renewals(days, self._today())
        if upcoming.is_failure:
            return upcoming
        return await self._schedule_each(upcoming.value)

    async def schedule_ending_trials(self, days: int = 7) -> Result[BatchOutcome]:
        try:
            validate_window(days)
        except Exception as e:
            return Failure(e)

        ending = await self._subscriptions.get_ending_trials(days, self._today())
        if ending.is_failure:
            return ending
        return await self._schedule_each(ending.value)
