"""
Budget Repository

Budgets are checked against the monthly equivalents of the active
subscriptions they match (see Budget.matches for the OR rule).
"""

from decimal import Decimal
from typing import Optional

from subvault.models.document import AppDocument
from subvault.models.result import Failure, Result, Success
from subvault.models.subscription import Budget
from subvault.repositories.base import BaseRepository, require_id
from subvault.services.storage import DuplicateError


def current_spending(document: AppDocument, budget_id: str) -> Decimal:
    """Monthly spend counted against a budget. Zero if it does not exist."""
    budget = next((b for b in document.budgets.items if b.id == budget_id), None)
    if budget is None:
        return Decimal(0)
    return sum(
        (
            s.monthly_equivalent()
            for s in document.subscriptions.items
            if s.is_active and budget.matches(s)
        ),
        Decimal(0),
    )


class BudgetRepository(BaseRepository):

    async def add_budget(self, budget: Budget) -> Result[Budget]:
        def transform(document: AppDocument) -> AppDocument:
            items = list(document.budgets.items)
            if any(b.id == budget.id for b in items):
                raise DuplicateError(f"Budget already exists: {budget.id}")
            items.append(budget)
            return document.with_budgets(items, self._timestamp())

        result = await self._write("add_budget", transform)
        return Success(budget) if result.is_success else result

    async def update_budget(self, budget: Budget) -> Result[Budget]:
        def transform(document: AppDocument) -> AppDocument:
            items = list(document.budgets.items)
            for index, existing in enumerate(items):
                if existing.id == budget.id:
                    items[index] = budget
                    return document.with_budgets(items, self._timestamp())
            return self._missing(document, "Budget", budget.id)

        result = await self._write("update_budget", transform)
        return Success(budget) if result.is_success else result

    async def delete_budget(self, budget_id: str) -> Result[None]:
        try:
            require_id(budget_id, "budget id")
        except Exception as e:
            return Failure(e)

        def transform(document: AppDocument) -> AppDocument:
            items = [b for b in document.budgets.items if b.id != budget_id]
            if len(items) == len(document.budgets.items):
                return self._missing(document, "Budget", budget_id)
            return document.with_budgets(items, self._timestamp())

        result = await self._write("delete_budget", transform)
        return Success(None) if result.is_success else result

    async def get_all_budgets(self) -> Result[list[Budget]]:
        return await self._query(lambda document: list(document.budgets.items))

    async def get_budget_by_id(self, budget_id: str) -> Result[Optional[Budget]]:
        return await self._query(
            lambda document: next(
                (b for b in document.budgets.items if b.id == budget_id),
                None,
            )
        )

    async def get_current_spending(self, budget_id: str) -> Result[Decimal]:
        return await self._query(lambda document: current_spending(document, budget_id))
