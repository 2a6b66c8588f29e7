"""Notification scheduling package."""

from subvault.notifications.scheduler import (
    DeferredQueueStrategy,
    ExactAlarmStrategy,
    LoggingNotificationPresenter,
    NotificationKey,
    NotificationKind,
    NotificationPayload,
    NotificationPresenter,
    NotificationScheduler,
    SchedulingStrategy,
    compute_fire_time,
    local_now,
)
from subvault.notifications.service import NotificationService

__all__ = [
    "DeferredQueueStrategy",
    "ExactAlarmStrategy",
    "LoggingNotificationPresenter",
    "NotificationKey",
    "NotificationKind",
    "NotificationPayload",
    "NotificationPresenter",
    "NotificationScheduler",
    "NotificationService",
    "SchedulingStrategy",
    "compute_fire_time",
    "local_now",
]
