"""
Integration tests for the orchestrated flows.

Everything runs against the in-memory store with a fixed clock, except
TestCreateAppComponents which wires the real encrypted file store into
tmp_path.
"""

import base64
from datetime import date, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio

from subvault.backup import BackupService, UnsupportedBackupVersionError
from subvault.config import (
    AppSettings,
    BackupSettings,
    InvalidSettingsError,
    NotFoundPolicy,
    Settings,
    validate_all_settings,
)
from subvault.models import AuditEventType, InvalidArgumentError, SubscriptionStatus
from subvault.notifications import NotificationKind, NotificationScheduler, NotificationService
from subvault.orchestrator import BackupFlow, SubscriptionFlow, create_app_components
from subvault.repositories import SubscriptionRepository
from subvault.services.crypto import MASTER_KEY_ENV, generate_key
from subvault.services.storage import NotFoundError
from subvault.validation import SubscriptionValidationError, SubscriptionValidator


def form(**overrides) -> dict:
    fields = {
        "name": "Netflix",
        "cost": "15.99",
        "currency": "usd",
        "billing_period": "MONTHLY",
        "start_date": "2026-01-01",
        "next_billing_date": "2026-03-15",
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def subscriptions(store, idempotent):
    return SubscriptionRepository(store, idempotent)


@pytest_asyncio.fixture
async def scheduler(presenter, clock, notification_settings, audit_logger):
    scheduler = NotificationScheduler(
        presenter=presenter,
        clock=clock,
        settings=notification_settings,
        audit_logger=audit_logger,
    )
    yield scheduler
    for strategy in scheduler.strategies:
        for key in strategy.scheduled_keys():
            await strategy.cancel(key)


@pytest.fixture
def notifications(scheduler, subscriptions, today):
    return NotificationService(scheduler, subscriptions, today=lambda: today)


@pytest.fixture
def flow(subscriptions, notifications, audit_logger, today):
    return SubscriptionFlow(
        subscriptions,
        notifications,
        validator=SubscriptionValidator(AppSettings()),
        audit_logger=audit_logger,
        today=lambda: today,
    )


async def event_types(audit_storage) -> list[AuditEventType]:
    return [e.event_type for e in reversed(await audit_storage.get_recent_events())]


class TestSubscriptionFlow:
    """Tests for the create, update, delete and status flows."""

    @pytest.mark.asyncio
    async def test_create_validates_saves_and_schedules(self, flow, subscriptions, scheduler, audit_storage):
        result = await flow.create(form(id="ignored"))

        created = result.value
        assert created.id != "ignored"
        assert created.currency == "USD"
        assert (await subscriptions.get_subscription_by_id(created.id)).value == created
        assert scheduler.is_scheduled(created.id, NotificationKind.RENEWAL)

        types = await event_types(audit_storage)
        assert AuditEventType.SUBSCRIPTION_CREATED in types
        assert AuditEventType.NOTIFICATION_SCHEDULED in types

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["CANCELLED", "PAUSED", "EXPIRED"])
    async def test_create_inactive_schedules_nothing(self, flow, subscriptions, scheduler, status):
        result = await flow.create(form(status=status, trial_end_date="2026-03-20"))

        created = result.value
        assert (await subscriptions.get_subscription_by_id(created.id)).value.status.value == status
        for kind in NotificationKind:
            assert not scheduler.is_scheduled(created.id, kind)

    @pytest.mark.asyncio
    async def test_create_trial_schedules_both(self, flow, scheduler):
        created = (await flow.create(form(status="TRIAL", trial_end_date="2026-03-20"))).value
        for kind in NotificationKind:
            assert scheduler.is_scheduled(created.id, kind)

    @pytest.mark.asyncio
    async def test_create_rejects_invalid_form(self, flow, subscriptions, audit_storage):
        result = await flow.create(form(name="", next_billing_date="2026-01-20"))

        assert isinstance(result.error, SubscriptionValidationError)
        assert (await subscriptions.get_all_subscriptions()).value == []
        assert await event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    @pytest.mark.asyncio
    async def test_create_rejects_stale_billing_date(self, flow, subscriptions):
        result = await flow.create(form(next_billing_date="2026-03-01"))

        assert isinstance(result.error, SubscriptionValidationError)
        assert result.error.result.issues[0].issue_type == "past_date"
        assert (await subscriptions.get_all_subscriptions()).value == []

    @pytest.mark.asyncio
    async def test_update_reschedules(self, flow, scheduler, subscriptions):
        created = (await flow.create(form())).value

        updated = await flow.update(created.model_copy(update={"trial_end_date": date(2026, 3, 20)}))

        assert updated.value.updated_at >= created.updated_at
        assert scheduler.is_scheduled(created.id, NotificationKind.TRIAL_ENDING)
        assert (await subscriptions.get_subscription_by_id(created.id)).value.trial_end_date == date(2026, 3, 20)

    @pytest.mark.asyncio
    async def test_update_of_missing_subscription_schedules_nothing(self, flow, scheduler, make_subscription):
        ghost = make_subscription(id="ghost")
        assert (await flow.update(ghost)).is_success
        assert not scheduler.is_scheduled("ghost", NotificationKind.RENEWAL)

    @pytest.mark.asyncio
    async def test_delete_cancels_reminders(self, flow, scheduler, subscriptions, audit_storage):
        created = (await flow.create(form())).value

        assert (await flow.delete(created.id)).is_success
        assert not scheduler.is_scheduled(created.id, NotificationKind.RENEWAL)
        assert (await subscriptions.get_all_subscriptions()).value == []
        assert AuditEventType.SUBSCRIPTION_DELETED in await event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_delete_many_reports_batch(self, flow):
        a = (await flow.create(form(name="A"))).value
        b = (await flow.create(form(name="B"))).value

        outcome = await flow.delete_many([a.id, "", b.id])
        assert outcome.value.succeeded == 2
        assert outcome.value.failed == 1
        assert isinstance(outcome.value.last_error, InvalidArgumentError)

    @pytest.mark.asyncio
    async def test_update_billing_date(self, flow, scheduler, subscriptions, today):
        created = (await flow.create(form())).value

        assert (await flow.update_billing_date(created.id, date(2026, 4, 15))).is_success
        stored = (await subscriptions.get_subscription_by_id(created.id)).value
        assert stored.next_billing_date == date(2026, 4, 15)
        assert scheduler.is_scheduled(created.id, NotificationKind.RENEWAL)

        rejected = await flow.update_billing_date(created.id, today - timedelta(days=1))
        assert isinstance(rejected.error, InvalidArgumentError)

    @pytest.mark.asyncio
    async def test_pause_and_reactivate(self, flow, scheduler, subscriptions, audit_storage):
        created = (await flow.create(form())).value

        await flow.pause(created.id)
        assert not scheduler.is_scheduled(created.id, NotificationKind.RENEWAL)
        assert (await subscriptions.get_subscription_by_id(created.id)).value.status == SubscriptionStatus.PAUSED

        await flow.reactivate(created.id)
        assert scheduler.is_scheduled(created.id, NotificationKind.RENEWAL)
        assert AuditEventType.SUBSCRIPTION_STATUS_CHANGED in await event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_cancel(self, flow, scheduler, subscriptions):
        created = (await flow.create(form())).value
        await flow.cancel(created.id)

        stored = (await subscriptions.get_subscription_by_id(created.id)).value
        assert stored.status == SubscriptionStatus.CANCELLED
        assert not scheduler.is_scheduled(created.id, NotificationKind.RENEWAL)

    @pytest.mark.asyncio
    async def test_strict_policy_surfaces_not_found(self, store, notifications, audit_logger, today, audit_storage):
        strict = SubscriptionFlow(
            SubscriptionRepository(store, NotFoundPolicy.STRICT),
            notifications,
            validator=SubscriptionValidator(AppSettings()),
            audit_logger=audit_logger,
            today=lambda: today,
        )
        result = await strict.delete("ghost")
        assert isinstance(result.error, NotFoundError)
        assert AuditEventType.STORAGE_ERROR in await event_types(audit_storage)


class TestBackupFlow:
    """Tests for backup and restore with reminder resync."""

    @pytest.fixture
    def backup_flow(self, subscriptions, notifications, cipher, audit_logger):
        backups = BackupService(subscriptions, cipher, BackupSettings())
        return BackupFlow(backups, subscriptions, notifications, audit_logger)

    @pytest.mark.asyncio
    async def test_restore_reschedules(self, flow, backup_flow, scheduler, tmp_path, audit_storage):
        kept = (await flow.create(form(name="Kept"))).value
        created = await backup_flow.create_backup(tmp_path)
        assert created.is_success

        dropped = (await flow.create(form(name="Dropped"))).value
        report = await backup_flow.restore(created.value.path, replace_existing=True)

        assert report.value.restored_count == 1
        assert scheduler.is_scheduled(kept.id, NotificationKind.RENEWAL)
        assert not scheduler.is_scheduled(dropped.id, NotificationKind.RENEWAL)

        types = await event_types(audit_storage)
        assert AuditEventType.BACKUP_CREATED in types
        assert AuditEventType.BACKUP_RESTORED in types

    @pytest.mark.asyncio
    async def test_failed_restore_keeps_reminders(self, flow, backup_flow, scheduler, cipher, tmp_path, audit_storage):
        existing = (await flow.create(form())).value
        path = tmp_path / "future.svb"
        path.write_bytes(cipher.encrypt(b'{"version": "9.9", "subscriptions": []}'))

        result = await backup_flow.restore(path, replace_existing=True)

        assert isinstance(result.error, UnsupportedBackupVersionError)
        assert scheduler.is_scheduled(existing.id, NotificationKind.RENEWAL)
        events = await audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.RESTORE_FAILED
        assert events[0].error_code == "UnsupportedBackupVersionError"


class TestCreateAppComponents:

    @pytest.mark.asyncio
    async def test_wires_encrypted_store(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SUBVAULT_STORE_DATA_DIR", str(tmp_path))
        monkeypatch.setenv(MASTER_KEY_ENV, base64.b64encode(generate_key()).decode())

        components = create_app_components(Settings())
        await components.start()

        categories = (await components.categories.get_all_categories()).value
        assert len(categories) == 10

        next_charge = date.today() + timedelta(days=30)
        created = await components.subscription_flow.create(form(
            start_date=date.today().isoformat(),
            next_billing_date=next_charge.isoformat(),
            category=categories[0].id,
        ))
        assert created.is_success
        assert components.store.path == tmp_path / "appdata.svd"
        assert components.store.path.exists()

        monthly = await components.analytics.total_monthly_cost("USD")
        assert monthly.value == Decimal("15.99")

        await components.notifications.cancel_all()

    def test_rejects_invalid_settings_sections(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SUBVAULT_STORE_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("SUBVAULT_NOTIFICATIONS_NOTIFICATION_HOUR", "30")
        monkeypatch.setenv("SUBVAULT_NOTIFICATIONS_TIMEZONE", "Mars/Olympus_Mons")

        status = validate_all_settings(Settings())
        assert status["store"] is True
        assert status["notifications"] is False

        with pytest.raises(InvalidSettingsError) as exc_info:
            create_app_components(Settings())
        assert list(exc_info.value.errors) == ["notifications"]
        assert not (tmp_path / "appdata.svd").exists()
