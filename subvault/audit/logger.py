"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability of changes to the user's data
2. Debugging capability for reminders and restores
3. A history the user can inspect locally

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
- Never sends anything off the device
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

import structlog

from subvault.models.audit import AuditEvent, AuditEventBuilder
from subvault.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. A local audit store, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("subvault.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_subscription_saved(
        self,
        subscription_id: str,
        name: str,
        created: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a subscription insert or update."""
        if created:
            event = AuditEventBuilder.subscription_created(
                subscription_id=subscription_id,
                name=name,
                correlation_id=correlation_id,
            )
        else:
            event = AuditEventBuilder.subscription_updated(
                subscription_id=subscription_id,
                name=name,
                correlation_id=correlation_id,
            )
        await self.log(event)

    async def log_subscription_deleted(
        self,
        subscription_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.subscription_deleted(
            subscription_id=subscription_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_status_changed(
        self,
        subscription_id: str,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.status_changed(
            subscription_id=subscription_id,
            status=status,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        subscription_id: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log validation failure."""
        event = AuditEventBuilder.validation_failed(
            subscription_id=subscription_id,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_notification_scheduled(
        self,
        subscription_id: str,
        kind: str,
        fire_at: datetime,
        strategy: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.notification_scheduled(
            subscription_id=subscription_id,
            kind=kind,
            fire_at=fire_at,
            strategy=strategy,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_notification_skipped(
        self,
        subscription_id: str,
        kind: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.notification_skipped(
            subscription_id=subscription_id,
            kind=kind,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_notifications_cancelled(
        self,
        subscription_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.notifications_cancelled(
            subscription_id=subscription_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_notification_fired(self, subscription_id: str, kind: str) -> None:
        await self.log(AuditEventBuilder.notification_fired(subscription_id, kind))

    async def log_notification_failed(
        self,
        subscription_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.notification_failed(
            subscription_id=subscription_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_backup_created(
        self,
        filename: str,
        subscription_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a successfully written backup file."""
        event = AuditEventBuilder.backup_created(
            filename=filename,
            subscription_count=subscription_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_backup_restored(
        self,
        filename: str,
        restored_count: int,
        replaced: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.backup_restored(
            filename=filename,
            restored_count=restored_count,
            replaced=replaced,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_backup_failed(
        self,
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.backup_failed(
            error_code=type(error).__name__,
            error_message=str(error),
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_restore_failed(
        self,
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected restore. The error class name is the code."""
        event = AuditEventBuilder.restore_failed(
            error_code=type(error).__name__,
            error_message=str(error),
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., saving a subscription).
    Pass it through all subsequent operations.
    """
    return uuid4()
