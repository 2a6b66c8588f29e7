"""
Notification Scheduler

Turns a subscription into zero, one or two pending reminders:
- RENEWAL: `notification_days_before` days before next_billing_date
- TRIAL_ENDING: the same lead time before trial_end_date

Each reminder fires at 09:00 local time (configurable) and is keyed by
(subscription_id, kind), so scheduling the same key twice replaces the
earlier registration, whichever strategy held it.

Two delivery strategies:
- ExactAlarmStrategy: an event-loop timer at the precise time
- DeferredQueueStrategy: a best-effort delayed job (sleep, then deliver)

Which one is used is decided on every schedule call by asking the
capability check. The answer is never cached, because the user can revoke
or grant the permission at any time.

DESIGN DECISIONS:
1. A reminder whose time has already passed is skipped, not fired late.
   That is a successful no-op, not an error.
2. cancel() clears both kinds from BOTH strategies, whichever one
   originally scheduled them.
3. Nothing raises into the caller. Every operation returns a Result.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Callable, Optional

import structlog
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from subvault.audit import AuditLogger
from subvault.config import NotificationSettings, get_settings
from subvault.models.result import Failure, Result, Success
from subvault.models.subscription import Subscription
from subvault.repositories.base import require_id

logger = structlog.get_logger(__name__)


class NotificationKind(str, Enum):
    RENEWAL = "RENEWAL"
    TRIAL_ENDING = "TRIAL_ENDING"


NotificationKey = tuple[str, NotificationKind]


class NotificationPayload(BaseModel):
    """
    What the presentation layer receives when a reminder fires.

    Serializes as {subscriptionId, subscriptionName, kind}.
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    subscription_id: str
    subscription_name: str
    kind: NotificationKind

    @property
    def key(self) -> NotificationKey:
        return (self.subscription_id, self.kind)


def local_now() -> datetime:
    """Timezone-aware current local time."""
    return datetime.now().astimezone()


def compute_fire_time(
    target_date: date,
    lead_days: int,
    hour: int = 9,
    tz: Optional[tzinfo] = None,
) -> datetime:
    """
    `lead_days` before `target_date`, at `hour`:00 wall-clock time in `tz`.

    Without `tz` the system local zone is used, with the UTC offset that
    applies on the fire date (not today's offset).
    """
    wall_clock = datetime.combine(target_date - timedelta(days=lead_days), time(hour=hour))
    if tz is None:
        return wall_clock.astimezone()
    return wall_clock.replace(tzinfo=tz)


# =============================================================================
# PRESENTATION
# =============================================================================

class NotificationPresenter(ABC):
    """Shows a reminder to the user. Lives outside the core."""

    @abstractmethod
    async def present(self, payload: NotificationPayload) -> None:
        pass


class LoggingNotificationPresenter(NotificationPresenter):
    """Default presenter: writes the reminder to the log."""

    async def present(self, payload: NotificationPayload) -> None:
        logger.info("notification_presented", **payload.model_dump(by_alias=True, mode="json"))


# =============================================================================
# STRATEGIES
# =============================================================================

class SchedulingStrategy(ABC):
    """One way of getting a payload to the presenter at a given time."""

    name: str = "strategy"

    @abstractmethod
    async def schedule(
        self,
        key: NotificationKey,
        fire_at: datetime,
        payload: NotificationPayload,
    ) -> None:
        """Register `payload` for delivery at `fire_at`, replacing any earlier one."""
        pass

    @abstractmethod
    async def cancel(self, key: NotificationKey) -> None:
        """Drop the registration for `key`. Unknown keys are ignored."""
        pass

    @abstractmethod
    def is_scheduled(self, key: NotificationKey) -> bool:
        pass


class _InProcessStrategy(SchedulingStrategy):
    """Shared bookkeeping for the two asyncio-based strategies."""

    def __init__(
        self,
        presenter: NotificationPresenter,
        clock: Callable[[], datetime] = local_now,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._presenter = presenter
        self._clock = clock
        self._audit_logger = audit_logger
        self._pending: dict[NotificationKey, object] = {}

    def _delay_seconds(self, fire_at: datetime) -> float:
        return max((fire_at - self._clock()).total_seconds(), 0.0)

    async def _deliver(self, key: NotificationKey, payload: NotificationPayload) -> None:
        self._pending.pop(key, None)
        try:
            await self._presenter.present(payload)
        except Exception as e:
            logger.error(
                "notification_delivery_failed",
                subscription_id=payload.subscription_id,
                kind=payload.kind.value,
                strategy=self.name,
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_notification_failed(
                    subscription_id=payload.subscription_id,
                    error_message=str(e),
                )
            return

        if self._audit_logger:
            await self._audit_logger.log_notification_fired(
                payload.subscription_id, payload.kind.value
            )

    def is_scheduled(self, key: NotificationKey) -> bool:
        return key in self._pending

    def scheduled_keys(self) -> set[NotificationKey]:
        return set(self._pending)


class ExactAlarmStrategy(_InProcessStrategy):
    """
    Event-loop timer registered for the precise fire time.
    """

    name = "exact_alarm"

    def __init__(
        self,
        presenter: NotificationPresenter,
        clock: Callable[[], datetime] = local_now,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(presenter, clock, audit_logger)
        self._firing: set[asyncio.Task] = set()

    def _fire(self, key: NotificationKey, payload: NotificationPayload) -> None:
        task = asyncio.get_running_loop().create_task(self._deliver(key, payload))
        self._firing.add(task)
        task.add_done_callback(self._firing.discard)

    async def schedule(
        self,
        key: NotificationKey,
        fire_at: datetime,
        payload: NotificationPayload,
    ) -> None:
        await self.cancel(key)
        loop = asyncio.get_running_loop()
        handle = loop.call_at(
            loop.time() + self._delay_seconds(fire_at),
            self._fire,
            key,
            payload,
        )
        self._pending[key] = handle

    async def cancel(self, key: NotificationKey) -> None:
        handle = self._pending.pop(key, None)
        if handle is not None:
            handle.cancel()


class DeferredQueueStrategy(_InProcessStrategy):
    """
    Best-effort delayed job: a task that sleeps for fire_at - now and then
    delivers. Timing drifts if the process is suspended.
    """

    name = "deferred_queue"

    async def _run(
        self,
        key: NotificationKey,
        delay: float,
        payload: NotificationPayload,
    ) -> None:
        await asyncio.sleep(delay)
        await self._deliver(key, payload)

    async def schedule(
        self,
        key: NotificationKey,
        fire_at: datetime,
        payload: NotificationPayload,
    ) -> None:
        await self.cancel(key)
        delay = self._delay_seconds(fire_at)
        self._pending[key] = asyncio.create_task(self._run(key, delay, payload))

    async def cancel(self, key: NotificationKey) -> None:
        task = self._pending.pop(key, None)
        if task is not None:
            task.cancel()


# =============================================================================
# SCHEDULER
# =============================================================================

class NotificationScheduler:
    """
    Schedules and cancels subscription reminders.

    Usage:
        scheduler = NotificationScheduler(presenter=MyPresenter())
        result = await scheduler.schedule_renewal(subscription)
        # Success(fire_at) if scheduled, Success(None) if nothing to do
    """

    def __init__(
        self,
        presenter: Optional[NotificationPresenter] = None,
        exact: Optional[SchedulingStrategy] = None,
        deferred: Optional[SchedulingStrategy] = None,
        can_schedule_exact: Optional[Callable[[], bool]] = None,
        clock: Callable[[], datetime] = local_now,
        settings: Optional[NotificationSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        presenter = presenter or LoggingNotificationPresenter()
        self._settings = settings or get_settings().notifications
        self._exact = exact or ExactAlarmStrategy(presenter, clock, audit_logger)
        self._deferred = deferred or DeferredQueueStrategy(presenter, clock, audit_logger)
        self._can_schedule_exact = can_schedule_exact or (
            lambda: self._settings.exact_alarms_enabled
        )
        self._clock = clock
        self._audit_logger = audit_logger

    @property
    def strategies(self) -> tuple[SchedulingStrategy, SchedulingStrategy]:
        return (self._exact, self._deferred)

    def _pick_strategy(self) -> SchedulingStrategy:
        return self._exact if self._can_schedule_exact() else self._deferred

    async def _schedule(
        self,
        subscription: Subscription,
        kind: NotificationKind,
        target_date: Optional[date],
    ) -> Result[Optional[datetime]]:
        try:
            if not subscription.notifications_enabled:
                await self._skipped(subscription, kind, "notifications disabled")
                return Success(None)
            if target_date is None:
                return Success(None)

            now = self._clock()
            fire_at = compute_fire_time(
                target_date,
                subscription.notification_days_before,
                hour=self._settings.notification_hour,
                tz=self._settings.zone(),
            )
            if fire_at < now:
                await self._skipped(subscription, kind, "fire time already passed")
                return Success(None)

            strategy = self._pick_strategy()
            payload = NotificationPayload(
                subscription_id=subscription.id,
                subscription_name=subscription.name,
                kind=kind,
            )
            # A key lives in at most one strategy
            for other in self.strategies:
                if other is not strategy:
                    await other.cancel(payload.key)
            await strategy.schedule(payload.key, fire_at, payload)

            if self._audit_logger:
                await self._audit_logger.log_notification_scheduled(
                    subscription_id=subscription.id,
                    kind=kind.value,
                    fire_at=fire_at,
                    strategy=strategy.name,
                )
            return Success(fire_at)
        except Exception as e:
            logger.warning(
                "notification_schedule_failed",
                subscription_id=subscription.id,
                kind=kind.value,
                error=str(e),
            )
            return Failure(e)

    async def _skipped(
        self,
        subscription: Subscription,
        kind: NotificationKind,
        reason: str,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_notification_skipped(
                subscription_id=subscription.id,
                kind=kind.value,
                reason=reason,
            )

    async def schedule_renewal(self, subscription: Subscription) -> Result[Optional[datetime]]:
        return await self._schedule(
            subscription,
            NotificationKind.RENEWAL,
            subscription.next_billing_date,
        )

    async def schedule_trial_ending(self, subscription: Subscription) -> Result[Optional[datetime]]:
        """Success(None) when the subscription has no trial end date."""
        return await self._schedule(
            subscription,
            NotificationKind.TRIAL_ENDING,
            subscription.trial_end_date,
        )

    async def cancel(self, subscription_id: str) -> Result[None]:
        """
        Remove every reminder for the subscription, from both strategies.

        Safe to call when nothing is scheduled.
        """
        try:
            require_id(subscription_id, "subscription id")
            for kind in NotificationKind:
                for strategy in self.strategies:
                    await strategy.cancel((subscription_id, kind))
            if self._audit_logger:
                await self._audit_logger.log_notifications_cancelled(subscription_id)
            return Success(None)
        except Exception as e:
            return Failure(e)

    async def reschedule(self, subscription: Subscription) -> Result[None]:
        """
        Cancel, then schedule from the current subscription data.

        The cancel step always completes before anything new is scheduled.
        """
        cancelled = await self.cancel(subscription.id)
        if cancelled.is_failure:
            return cancelled

        for result in (
            await self.schedule_renewal(subscription),
            await self.schedule_trial_ending(subscription),
        ):
            if result.is_failure:
                return result
        return Success(None)

    def is_scheduled(self, subscription_id: str, kind: NotificationKind) -> bool:
        return any(s.is_scheduled((subscription_id, kind)) for s in self.strategies)
