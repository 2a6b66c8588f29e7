"""
Category Repository
"""

from typing import Optional

from subvault.models.document import AppDocument
from subvault.models.result import Failure, Result, Success
from subvault.models.subscription import Category
from subvault.repositories.base import BaseRepository, require_id
from subvault.services.storage import DuplicateError


class CategoryRepository(BaseRepository):
    """Categories, kept in display order by sort_order."""

    async def add_category(self, category: Category) -> Result[Category]:
        def transform(document: AppDocument) -> AppDocument:
            items = list(document.categories.items)
            if any(c.id == category.id for c in items):
                raise DuplicateError(f"Category already exists: {category.id}")
            items.append(category)
            return document.with_categories(items, self._timestamp())

        result = await self._write("add_category", transform)
        return Success(category) if result.is_success else result

    async def update_category(self, category: Category) -> Result[Category]:
        def transform(document: AppDocument) -> AppDocument:
            items = list(document.categories.items)
            for index, existing in enumerate(items):
                if existing.id == category.id:
                    items[index] = category
                    return document.with_categories(items, self._timestamp())
            return self._missing(document, "Category", category.id)

        result = await self._write("update_category", transform)
        return Success(category) if result.is_success else result

    async def delete_category(self, category_id: str) -> Result[None]:
        """
        Remove a category.

        Subscriptions that reference it keep the (now dangling) id and are
        reported under "Other" by the cost queries.
        """
        try:
            require_id(category_id, "category id")
        except Exception as e:
            return Failure(e)

        def transform(document: AppDocument) -> AppDocument:
            items = [c for c in document.categories.items if c.id != category_id]
            if len(items) == len(document.categories.items):
                return self._missing(document, "Category", category_id)
            return document.with_categories(items, self._timestamp())

        result = await self._write("delete_category", transform)
        return Success(None) if result.is_success else result

    async def reorder_categories(self, category_ids: list[str]) -> Result[None]:
        """
        Give the listed categories sort_order 0..n-1 in list order.

        Categories not in the list keep their sort_order. Unknown ids are
        ignored. All orders are rewritten in one commit.
        """
        now = self._now()

        def transform(document: AppDocument) -> AppDocument:
            positions = {}
            for category_id in category_ids:
                positions.setdefault(category_id, len(positions))

            items = [
                c.model_copy(update={"sort_order": positions[c.id], "updated_at": now})
                if c.id in positions and c.sort_order != positions[c.id]
                else c
                for c in document.categories.items
            ]
            if items == list(document.categories.items):
                return document
            return document.with_categories(items, self._timestamp())

        result = await self._write("reorder_categories", transform)
        return Success(None) if result.is_success else result

    async def initialize_default_categories(self) -> Result[bool]:
        """
        Create the starter categories if there are none yet.

        Returns Success(True) when defaults were written.
        """
        defaults = Category.defaults()

        def transform(document: AppDocument) -> AppDocument:
            if document.categories.items:
                return document
            return document.with_categories(defaults, self._timestamp())

        result = await self._write("initialize_default_categories", transform)
        if result.is_failure:
            return result
        return Success(result.value.categories.items == tuple(defaults))

    async def get_all_categories(self) -> Result[list[Category]]:
        return await self._query(
            lambda document: sorted(
                document.categories.items,
                key=lambda c: (c.sort_order, c.name),
            )
        )

    async def get_category_by_id(self, category_id: str) -> Result[Optional[Category]]:
        return await self._query(
            lambda document: next(
                (c for c in document.categories.items if c.id == category_id),
                None,
            )
        )
