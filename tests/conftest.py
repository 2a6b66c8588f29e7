"""
Shared test fixtures for SubVault.

- A fixed "today" so date-window tests never depend on the real calendar
- A subscription factory with sensible defaults
- In-memory store and audit storage
- A cipher with a throwaway key
- A controllable clock and a recording presenter for reminders
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from subvault.audit import AuditLogger
from subvault.config import NotFoundPolicy, NotificationSettings
from subvault.models import BillingPeriod, Subscription
from subvault.notifications import NotificationPayload, NotificationPresenter
from subvault.services.crypto import CipherService, generate_key
from subvault.services.storage import InMemoryAuditStorage, InMemoryDocumentStore

TODAY = date(2026, 3, 10)


def build_subscription(**overrides) -> Subscription:
    fields = dict(
        name="Netflix",
        cost=Decimal("15.99"),
        currency="USD",
        billing_period=BillingPeriod.MONTHLY,
        start_date=date(2026, 1, 1),
        next_billing_date=date(2026, 3, 15),
    )
    fields.update(overrides)
    return Subscription(**fields)


class FakeClock:
    """Timezone-aware clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingPresenter(NotificationPresenter):
    """Remembers every payload it was asked to show."""

    def __init__(self):
        self.presented: list[NotificationPayload] = []

    async def present(self, payload: NotificationPayload) -> None:
        self.presented.append(payload)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def make_subscription():
    return build_subscription


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def cipher() -> CipherService:
    return CipherService(generate_key())


@pytest.fixture
def idempotent() -> NotFoundPolicy:
    return NotFoundPolicy.IDEMPOTENT


@pytest.fixture
def make_clock():
    return FakeClock


@pytest.fixture
def clock() -> FakeClock:
    # 08:00 UTC on TODAY
    return FakeClock(datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def presenter() -> RecordingPresenter:
    return RecordingPresenter()


@pytest.fixture
def notification_settings() -> NotificationSettings:
    return NotificationSettings(notification_hour=9, exact_alarms_enabled=True, timezone="UTC")
