"""
Main Orchestrator for SubVault

This module ties together all the components and defines the
end-to-end flows for:
1. Subscription changes (validate → persist → keep reminders in sync)
2. Backups (encrypt → write, read → decrypt → restore → reschedule)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written that failed validation
- Reminders always follow the stored data, never the other way round
- Every step is audited

A reminder that cannot be scheduled does not undo a successful write. The
failure is audited and the flow still returns the stored subscription.
"""

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Callable, Optional
from uuid import UUID

import structlog

from subvault.audit import AuditLogger, create_correlation_id
from subvault.backup import BackupFileInfo, BackupService, RestoreReport
from subvault.config import (
    InvalidSettingsError,
    Settings,
    get_settings,
    validate_all_settings,
)
from subvault.models.result import (
    BatchCollector,
    BatchOutcome,
    Failure,
    InvalidArgumentError,
    Result,
    Success,
)
from subvault.models.subscription import (
    ACTIVE_STATUSES,
    Subscription,
    SubscriptionStatus,
    new_id,
    utcnow,
)
from subvault.models.validation import ValidationResult
from subvault.notifications import (
    NotificationPresenter,
    NotificationScheduler,
    NotificationService,
)
from subvault.queries import CostAnalytics
from subvault.repositories import (
    BudgetRepository,
    CategoryRepository,
    PreferencesRepository,
    SubscriptionRepository,
)
from subvault.services.crypto import CipherService, KeyProvider
from subvault.services.storage import (
    EncryptedFileDocumentStore,
    InMemoryAuditStorage,
)
from subvault.validation import SubscriptionValidationError, SubscriptionValidator

logger = structlog.get_logger(__name__)


class SubscriptionFlow:
    """
    Orchestrates every change to a subscription.

    Flow (create):
    1. Validate → schema and semantic checks
    2. Stamp → fresh id, created_at/updated_at
    3. Save → one store transaction
    4. Remind → schedule renewal and trial reminders (active only)

    Update and status changes follow the same shape, ending with a
    reschedule (or a cancel when the subscription stops being active).
    """

    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        notifications: NotificationService,
        validator: Optional[SubscriptionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self._subscriptions = subscriptions
        self._notifications = notifications
        self._validator = validator or SubscriptionValidator()
        self._audit_logger = audit_logger
        self._today = today or date.today

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _reject(
        self,
        subscription_id: str,
        result: ValidationResult,
        correlation_id: UUID,
    ) -> Failure:
        if self._audit_logger:
            issues = [
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in result.issues
                if i.severity == "error"
            ]
            await self._audit_logger.log_validation_failed(
                subscription_id=subscription_id,
                issues=issues,
                correlation_id=correlation_id,
            )
        return Failure(SubscriptionValidationError(result))

    async def _storage_failed(
        self,
        operation: str,
        result: Failure,
        correlation_id: UUID,
    ) -> Failure:
        if self._audit_logger:
            await self._audit_logger.log_storage_error(
                operation=operation,
                error_message=str(result.error),
                correlation_id=correlation_id,
            )
        return result

    async def _sync_reminders(
        self,
        subscription_id: str,
        correlation_id: UUID,
    ) -> None:
        """
        Bring the reminders for one subscription in line with what is stored.

        A missing or inactive subscription ends up with no reminders.
        """
        stored = await self._subscriptions.get_subscription_by_id(subscription_id)
        if stored.is_failure:
            outcome = stored
        elif stored.value is None or not stored.value.is_active:
            outcome = await self._notifications.cancel_notifications(subscription_id)
        else:
            outcome = await self._notifications.reschedule_notifications(stored.value)

        if outcome.is_failure and self._audit_logger:
            await self._audit_logger.log_notification_failed(
                subscription_id=subscription_id,
                error_message=str(outcome.error),
                correlation_id=correlation_id,
            )

    # =========================================================================
    # FLOWS
    # =========================================================================

    async def create(
        self,
        data: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Result[Subscription]:
        """
        Create a subscription from raw field values.

        Any id or timestamps in `data` are replaced.

        Returns:
            Success(saved subscription), or Failure(SubscriptionValidationError)
            carrying every issue found
        """
        correlation_id = correlation_id or create_correlation_id()

        now = utcnow()
        fields = {**data, "id": new_id(), "created_at": now, "updated_at": now}
        subscription, validation = self._validator.parse(fields, self._today())
        if subscription is None or validation.has_errors:
            return await self._reject(fields["id"], validation, correlation_id)

        saved = await self._subscriptions.add_subscription(subscription)
        if saved.is_failure:
            return await self._storage_failed("create", saved, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_subscription_saved(
                subscription_id=subscription.id,
                name=subscription.name,
                created=True,
                correlation_id=correlation_id,
            )

        if subscription.is_active:
            scheduled = await self._notifications.schedule_notifications(subscription)
            if scheduled.is_failure and self._audit_logger:
                await self._audit_logger.log_notification_failed(
                    subscription_id=subscription.id,
                    error_message=str(scheduled.error),
                    correlation_id=correlation_id,
                )

        return Success(subscription)

    async def update(
        self,
        subscription: Subscription,
        correlation_id: Optional[UUID] = None,
    ) -> Result[Subscription]:
        """Validate, stamp updated_at, save and reschedule."""
        correlation_id = correlation_id or create_correlation_id()

        validation = self._validator.validate(subscription, self._today())
        if validation.has_errors:
            return await self._reject(subscription.id, validation, correlation_id)

        stamped = subscription.model_copy(update={"updated_at": utcnow()})
        saved = await self._subscriptions.update_subscription(stamped)
        if saved.is_failure:
            return await self._storage_failed("update", saved, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_subscription_saved(
                subscription_id=stamped.id,
                name=stamped.name,
                created=False,
                correlation_id=correlation_id,
            )

        await self._sync_reminders(stamped.id, correlation_id)
        return Success(stamped)

    async def delete(
        self,
        subscription_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Result[None]:
        """Delete the subscription and drop its reminders."""
        correlation_id = correlation_id or create_correlation_id()

        deleted = await self._subscriptions.delete_subscription(subscription_id)
        if deleted.is_failure:
            return await self._storage_failed("delete", deleted, correlation_id)

        await self._notifications.cancel_notifications(subscription_id)

        if self._audit_logger:
            await self._audit_logger.log_subscription_deleted(
                subscription_id=subscription_id,
                correlation_id=correlation_id,
            )
        return Success(None)

    async def delete_many(
        self,
        subscription_ids: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> Result[BatchOutcome]:
        """
        Delete several subscriptions, continuing past individual failures.

        Fails as a whole only when every deletion failed.
        """
        correlation_id = correlation_id or create_correlation_id()

        batch = BatchCollector()
        for subscription_id in subscription_ids:
            batch.add(await self.delete(subscription_id, correlation_id))
        return batch.result()

    async def update_billing_date(
        self,
        subscription_id: str,
        next_billing_date: date,
        correlation_id: Optional[UUID] = None,
    ) -> Result[None]:
        """Move the next charge. A date before today is rejected."""
        correlation_id = correlation_id or create_correlation_id()

        if next_billing_date < self._today():
            return Failure(InvalidArgumentError(
                f"Next billing date {next_billing_date} is in the past"
            ))

        updated = await self._subscriptions.update_billing_date(
            subscription_id, next_billing_date
        )
        if updated.is_failure:
            return await self._storage_failed("update_billing_date", updated, correlation_id)

        await self._sync_reminders(subscription_id, correlation_id)
        return Success(None)

    async def update_status(
        self,
        subscription_id: str,
        status: SubscriptionStatus,
        correlation_id: Optional[UUID] = None,
    ) -> Result[None]:
        """
        Change the status.

        Leaving ACTIVE/TRIAL cancels the reminders; entering them
        schedules reminders again.
        """
        correlation_id = correlation_id or create_correlation_id()

        updated = await self._subscriptions.update_status(subscription_id, status)
        if updated.is_failure:
            return await self._storage_failed("update_status", updated, correlation_id)

        if status in ACTIVE_STATUSES:
            await self._sync_reminders(subscription_id, correlation_id)
        else:
            await self._notifications.cancel_notifications(subscription_id)

        if self._audit_logger:
            await self._audit_logger.log_status_changed(
                subscription_id=subscription_id,
                status=status.value,
                correlation_id=correlation_id,
            )
        return Success(None)

    async def cancel(self, subscription_id: str) -> Result[None]:
        return await self.update_status(subscription_id, SubscriptionStatus.CANCELLED)

    async def pause(self, subscription_id: str) -> Result[None]:
        return await self.update_status(subscription_id, SubscriptionStatus.PAUSED)

    async def reactivate(self, subscription_id: str) -> Result[None]:
        return await self.update_status(subscription_id, SubscriptionStatus.ACTIVE)


class BackupFlow:
    """
    Orchestrates backup creation and restore.

    After a successful restore the reminders of the previous data are
    cancelled and every active restored subscription is scheduled again.
    """

    def __init__(
        self,
        backups: BackupService,
        subscriptions: SubscriptionRepository,
        notifications: NotificationService,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._backups = backups
        self._subscriptions = subscriptions
        self._notifications = notifications
        self._audit_logger = audit_logger

    async def create_backup(
        self,
        directory: Path,
        correlation_id: Optional[UUID] = None,
    ) -> Result[BackupFileInfo]:
        correlation_id = correlation_id or create_correlation_id()

        created = await self._backups.create_backup(directory)
        if self._audit_logger:
            if created.is_success:
                await self._audit_logger.log_backup_created(
                    filename=created.value.name,
                    subscription_count=created.value.subscription_count or 0,
                    correlation_id=correlation_id,
                )
            else:
                await self._audit_logger.log_backup_failed(
                    created.error,
                    correlation_id=correlation_id,
                )
        return created

    async def restore(
        self,
        path: Path,
        replace_existing: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> Result[RestoreReport]:
        """
        Restore a backup, then bring the reminders in line with it.

        A failed restore leaves both the data and the reminders untouched.
        """
        correlation_id = correlation_id or create_correlation_id()

        before = await self._subscriptions.get_all_subscriptions()
        if before.is_failure:
            return before

        restored = await self._backups.restore(path, replace_existing=replace_existing)
        if restored.is_failure:
            if self._audit_logger:
                await self._audit_logger.log_restore_failed(
                    restored.error,
                    correlation_id=correlation_id,
                )
            return restored

        for subscription in before.value:
            await self._notifications.cancel_notifications(subscription.id)
        rescheduled = await self._notifications.schedule_all()

        if self._audit_logger:
            await self._audit_logger.log_backup_restored(
                filename=Path(path).name,
                restored_count=restored.value.restored_count,
                replaced=replace_existing,
                correlation_id=correlation_id,
            )
            if rescheduled.is_failure:
                await self._audit_logger.log_error(
                    error_type=type(rescheduled.error).__name__,
                    error_message=str(rescheduled.error),
                    details={"step": "reschedule_after_restore"},
                    correlation_id=correlation_id,
                )

        return restored


@dataclass
class AppComponents:
    """Everything a front end needs, wired to one encrypted document."""

    store: EncryptedFileDocumentStore
    subscriptions: SubscriptionRepository
    categories: CategoryRepository
    budgets: BudgetRepository
    preferences: PreferencesRepository
    analytics: CostAnalytics
    notifications: NotificationService
    backups: BackupService
    subscription_flow: SubscriptionFlow
    backup_flow: BackupFlow
    audit_logger: AuditLogger

    async def start(self) -> None:
        """
        First-run setup and reminder recovery.

        Seeds the default categories into an empty document and schedules
        reminders for every active subscription (in-process timers do not
        survive a restart).
        """
        seeded = await self.categories.initialize_default_categories()
        if seeded.is_failure:
            await self.audit_logger.log_storage_error(
                operation="initialize_default_categories",
                error_message=str(seeded.error),
            )
        await self.notifications.schedule_all()


def create_app_components(
    settings: Optional[Settings] = None,
    presenter: Optional[NotificationPresenter] = None,
    can_schedule_exact: Optional[Callable[[], bool]] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use (defaults to get_settings())
        presenter: Where fired reminders go (defaults to the log)
        can_schedule_exact: Live check for exact-alarm permission

    Raises:
        InvalidSettingsError: If any settings section fails validation
        KeyUnavailableError: If no document key can be loaded or created
    """
    settings = settings or get_settings()
    status = validate_all_settings(settings)
    failed = {
        name: status[f"{name}_error"]
        for name, ok in status.items()
        if ok is False
    }
    if failed:
        logger.error("settings_invalid", sections=sorted(failed))
        raise InvalidSettingsError(failed)
    store_settings = settings.store

    key = KeyProvider(store_settings.data_dir, settings.security).get_key()
    store = EncryptedFileDocumentStore(
        store_settings.document_path,
        CipherService(key),
        max_commit_attempts=store_settings.max_commit_attempts,
    )

    # Local-only audit trail for this session
    audit_logger = AuditLogger(InMemoryAuditStorage())

    policy = store_settings.not_found_policy
    subscriptions = SubscriptionRepository(store, policy)
    scheduler = NotificationScheduler(
        presenter=presenter,
        can_schedule_exact=can_schedule_exact,
        settings=settings.notifications,
        audit_logger=audit_logger,
    )
    notifications = NotificationService(scheduler, subscriptions)
    backups = BackupService(subscriptions, CipherService(key), settings.backup)

    return AppComponents(
        store=store,
        subscriptions=subscriptions,
        categories=CategoryRepository(store, policy),
        budgets=BudgetRepository(store, policy),
        preferences=PreferencesRepository(store, policy),
        analytics=CostAnalytics(store),
        notifications=notifications,
        backups=backups,
        subscription_flow=SubscriptionFlow(
            subscriptions,
            notifications,
            validator=SubscriptionValidator(settings.app),
            audit_logger=audit_logger,
        ),
        backup_flow=BackupFlow(backups, subscriptions, notifications, audit_logger),
        audit_logger=audit_logger,
    )
