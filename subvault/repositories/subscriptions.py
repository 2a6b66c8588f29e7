"""
Subscription Repository

Reads and writes the subscription list of the AppDocument. Every committed
change stamps the list's last_updated and bumps its version.
"""

from collections import defaultdict
from datetime import date
from typing import Callable, Optional

from subvault.models.document import AppDocument
from subvault.models.result import Failure, Result, Success
from subvault.models.subscription import Subscription, SubscriptionStatus
from subvault.queries.selection import (
    select_ending_trials,
    select_upcoming_renewals,
    validate_window,
)
from subvault.repositories.base import BaseRepository, require_id
from subvault.services.storage import DuplicateError


class SubscriptionRepository(BaseRepository):
    """
    Usage:
        repo = SubscriptionRepository(store)
        await repo.add_subscription(subscription)
        upcoming = await repo.get_upcoming_renewals(days=7)
    """

    # =========================================================================
    # WRITES
    # =========================================================================

    def _replace(
        self,
        document: AppDocument,
        subscription_id: str,
        change: Callable[[Subscription], Subscription],
    ) -> AppDocument:
        items = list(document.subscriptions.items)
        for index, existing in enumerate(items):
            if existing.id == subscription_id:
                items[index] = change(existing)
                return document.with_subscriptions(items, self._timestamp())
        return self._missing(document, "Subscription", subscription_id)

    async def add_subscription(self, subscription: Subscription) -> Result[Subscription]:
        """
        Append a subscription.

        Fails with DuplicateError if the id is already taken.
        """
        def transform(document: AppDocument) -> AppDocument:
            items = list(document.subscriptions.items)
            if any(s.id == subscription.id for s in items):
                raise DuplicateError(f"Subscription already exists: {subscription.id}")
            items.append(subscription)
            return document.with_subscriptions(items, self._timestamp())

        result = await self._write("add_subscription", transform)
        return Success(subscription) if result.is_success else result

    async def update_subscription(self, subscription: Subscription) -> Result[Subscription]:
        """Replace the stored record with the same id."""
        result = await self._write(
            "update_subscription",
            lambda document: self._replace(document, subscription.id, lambda _: subscription),
        )
        return Success(subscription) if result.is_success else result

    async def delete_subscription(self, subscription_id: str) -> Result[None]:
        try:
            require_id(subscription_id, "subscription id")
        except Exception as e:
            return Failure(e)

        def transform(document: AppDocument) -> AppDocument:
            items = [s for s in document.subscriptions.items if s.id != subscription_id]
            if len(items) == len(document.subscriptions.items):
                return self._missing(document, "Subscription", subscription_id)
            return document.with_subscriptions(items, self._timestamp())

        result = await self._write("delete_subscription", transform)
        return Success(None) if result.is_success else result

    async def delete_all_subscriptions(self) -> Result[None]:
        result = await self._write(
            "delete_all_subscriptions",
            lambda document: document.with_subscriptions([], self._timestamp()),
        )
        return Success(None) if result.is_success else result

    async def update_billing_date(
        self,
        subscription_id: str,
        next_billing_date: date,
    ) -> Result[None]:
        try:
            require_id(subscription_id, "subscription id")
        except Exception as e:
            return Failure(e)

        now = self._now()
        result = await self._write(
            "update_billing_date",
            lambda document: self._replace(
                document,
                subscription_id,
                lambda s: s.model_copy(update={
                    "next_billing_date": next_billing_date,
                    "updated_at": now,
                }),
            ),
        )
        return Success(None) if result.is_success else result

    async def update_status(
        self,
        subscription_id: str,
        status: SubscriptionStatus,
    ) -> Result[None]:
        """Set the status. Any status may follow any other."""
        try:
            require_id(subscription_id, "subscription id")
        except Exception as e:
            return Failure(e)

        now = self._now()
        result = await self._write(
            "update_status",
            lambda document: self._replace(
                document,
                subscription_id,
                lambda s: s.model_copy(update={"status": status, "updated_at": now}),
            ),
        )
        return Success(None) if result.is_success else result

    async def replace_all(self, subscriptions: list[Subscription]) -> Result[None]:
        """Swap the whole list in one commit (used by restore)."""
        def transform(document: AppDocument) -> AppDocument:
            if len({s.id for s in subscriptions}) != len(subscriptions):
                raise DuplicateError("Replacement list repeats a subscription id")
            return document.with_subscriptions(subscriptions, self._timestamp())

        result = await self._write("replace_all", transform)
        return Success(None) if result.is_success else result

    async def merge(self, subscriptions: list[Subscription]) -> Result[None]:
        """
        Upsert by id in one commit.

        Incoming records replace stored ones with the same id; new ids are
        appended in incoming order. A repeated incoming id keeps its last record.
        """
        def transform(document: AppDocument) -> AppDocument:
            incoming = {s.id: s for s in subscriptions}
            items = [incoming.pop(s.id, s) for s in document.subscriptions.items]
            items.extend(incoming.values())
            return document.with_subscriptions(items, self._timestamp())

        result = await self._write("merge", transform)
        return Success(None) if result.is_success else result

    # =========================================================================
    # READS
    # =========================================================================

    async def get_all_subscriptions(self) -> Result[list[Subscription]]:
        return await self._query(lambda document: list(document.subscriptions.items))

    async def get_active_subscriptions(self) -> Result[list[Subscription]]:
        return await self._query(
            lambda document: [s for s in document.subscriptions.items if s.is_active]
        )

    async def get_subscription_by_id(self, subscription_id: str) -> Result[Optional[Subscription]]:
        """Success(None) when there is no such subscription."""
        return await self._query(
            lambda document: next(
                (s for s in document.subscriptions.items if s.id == subscription_id),
                None,
            )
        )

    async def get_subscriptions_by_category(self, category: str) -> Result[list[Subscription]]:
        wanted = category.casefold()
        return await self._query(
            lambda document: [
                s for s in document.subscriptions.items
                if s.category.casefold() == wanted
            ]
        )

    async def search_subscriptions(self, query: str) -> Result[list[Subscription]]:
        """Case-insensitive match on name, description, category and tags."""
        needle = query.casefold()

        def matches(s: Subscription) -> bool:
            return (
                needle in s.name.casefold()
                or needle in s.description.casefold()
                or needle in s.category.casefold()
                or any(needle in tag.casefold() for tag in s.tags)
            )

        return await self._query(
            lambda document: [s for s in document.subscriptions.items if matches(s)]
        )

    async def get_subscriptions_grouped_by_category(
        self,
    ) -> Result[dict[str, list[Subscription]]]:
        def group(document: AppDocument) -> dict[str, list[Subscription]]:
            grouped: dict[str, list[Subscription]] = defaultdict(list)
            for s in document.subscriptions.items:
                grouped[s.category].append(s)
            return dict(grouped)

        return await self._query(group)

    async def get_upcoming_renewals(
        self,
        days: int,
        today: Optional[date] = None,
    ) -> Result[list[Subscription]]:
        """Active subscriptions billing in [today, today + days]."""
        try:
            validate_window(days)
        except Exception as e:
            return Failure(e)
        today = today or date.today()
        return await self._query(
            lambda document: select_upcoming_renewals(
                document.subscriptions.items, today, days
            )
        )

    async def get_ending_trials(
        self,
        days: int,
        today: Optional[date] = None,
    ) -> Result[list[Subscription]]:
        try:
            validate_window(days)
        except Exception as e:
            return Failure(e)
        today = today or date.today()
        return await self._query(
            lambda document: select_ending_trials(
                document.subscriptions.items, today, days
            )
        )
