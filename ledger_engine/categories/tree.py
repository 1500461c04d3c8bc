"""
Category Tree

Owner-scoped, two-level category hierarchy.

RULES:
1. A child's parent must exist, belong to the same owner and have the same type
2. A child's parent must be top level (no grandchildren)
3. Names are unique within (owner, type, parent)
4. A category with children or with transactions cannot be deleted

DESIGN DECISION: The tree is checked here, not in storage. Storage only
enforces the unique key, which also catches two concurrent creates racing
past the name check.
"""

from typing import Optional
from uuid import UUID

import structlog

from ledger_engine.errors import (
    CategoryInUseError,
    CategoryNotFoundError,
    CategoryTooDeepError,
    DuplicateCategoryError,
    HasChildrenError,
    TypeMismatchError,
    UnauthorizedError,
)
from ledger_engine.models.category import Category, CategoryInput, CategoryUpdate
from ledger_engine.models.transaction import TransactionType
from ledger_engine.services.storage import (
    CategoryStorageInterface,
    DuplicateError,
    TransactionStorageInterface,
)


logger = structlog.get_logger()


# (name, color, icon, children)
DEFAULT_CATEGORIES: dict[TransactionType, list[tuple[str, str, str, list[str]]]] = {
    TransactionType.EXPENSE: [
        ("Salary", "#34C759", "💰", ["Monthly Salary", "Bonus"]),
        ("Cloud Services", "#FF9500", "☁️", ["AWS", "Vercel", "Supabase"]),
        ("Operating Costs", "#5856D6", "🏢", ["Office Supplies", "Travel"]),
        ("Other Expenses", "#8E8E93", "📦", []),
    ],
    TransactionType.INCOME: [
        ("Project Income", "#30D158", "💼", []),
        ("Service Income", "#32ADE6", "🔧", []),
        ("Other Income", "#64D2FF", "🎁", []),
    ],
}


class CategoryIndex:
    """
    Name-based view of one owner's categories.

    Built once per import/export so rows don't each hit storage.
    """

    def __init__(self, categories: list[Category]):
        self._by_id = {c.id: c for c in categories}
        self._top_level = {
            (c.type, c.name): c for c in categories if c.is_top_level
        }
        self._children = {
            (c.parent_id, c.name): c for c in categories if not c.is_top_level
        }

    def resolve(
        self,
        category_type: TransactionType,
        parent_name: str,
        child_name: Optional[str] = None,
    ) -> Optional[Category]:
        """Category for "parent" or "parent > child", or None."""
        parent = self._top_level.get((category_type, parent_name))
        if parent is None:
            return None
        if not child_name:
            return parent
        return self._children.get((parent.id, child_name))

    def path_of(self, category_id: UUID) -> tuple[str, str]:
        """(parent name, child name); child name is "" for top-level categories."""
        category = self._by_id.get(category_id)
        if category is None:
            return "", ""
        if category.is_top_level:
            return category.name, ""
        parent = self._by_id.get(category.parent_id)
        return (parent.name if parent else ""), category.name

    def get(self, category_id: UUID) -> Optional[Category]:
        return self._by_id.get(category_id)


class CategoryTree:
    """Validated category management for one store."""

    def __init__(
        self,
        category_storage: CategoryStorageInterface,
        transaction_storage: TransactionStorageInterface,
    ):
        self._categories = category_storage
        self._transactions = transaction_storage

    async def create(self, data: CategoryInput) -> Category:
        """
        Create a category.

        Raises:
            CategoryNotFoundError: Parent does not exist
            UnauthorizedError: Parent belongs to another owner
            TypeMismatchError: Parent has a different type
            CategoryTooDeepError: Parent is itself a child
            DuplicateCategoryError: Name taken in this scope
        """
        if data.parent_id is not None:
            parent = await self._categories.get_category_by_id(data.parent_id)
            if parent is None:
                raise CategoryNotFoundError(
                    "Parent category not found",
                    category_id=data.parent_id,
                )
            if parent.user_id != data.user_id:
                raise UnauthorizedError(
                    "Parent category belongs to another user",
                    category_id=data.parent_id,
                )
            if parent.type != data.type:
                raise TypeMismatchError(
                    "Parent and child categories must have the same type",
                    parent_type=parent.type.value,
                    child_type=data.type.value,
                )
            if not parent.is_top_level:
                raise CategoryTooDeepError(
                    "Categories support at most two levels",
                    parent_id=data.parent_id,
                )

        if await self.exists_by_name(data.user_id, data.name, data.type, data.parent_id):
            raise self._duplicate(data.name, data.type, data.parent_id)

        category = Category(**data.model_dump())
        try:
            await self._categories.save_category(category)
        except DuplicateError:
            raise self._duplicate(data.name, data.type, data.parent_id)

        logger.info(
            "category_created",
            category_id=str(category.id),
            user_id=category.user_id,
            parent_id=str(category.parent_id) if category.parent_id else None,
        )
        return category

    @staticmethod
    def _duplicate(
        name: str,
        category_type: TransactionType,
        parent_id: Optional[UUID],
    ) -> DuplicateCategoryError:
        scope = " under this parent" if parent_id else ""
        return DuplicateCategoryError(
            f'{category_type.value.lower()} category "{name}" already exists{scope}',
            name=name,
        )

    async def find_by_id(self, category_id: UUID) -> Optional[Category]:
        return await self._categories.get_category_by_id(category_id)

    async def find_by_owner(
        self,
        user_id: str,
        category_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        return await self._categories.list_categories(user_id, category_type)

    async def children_of(self, category_id: UUID) -> list[Category]:
        return await self._categories.list_children(category_id)

    async def index(self, user_id: str) -> CategoryIndex:
        return CategoryIndex(await self.find_by_owner(user_id))

    async def exists_by_name(
        self,
        user_id: str,
        name: str,
        category_type: TransactionType,
        parent_id: Optional[UUID] = None,
    ) -> bool:
        found = await self._categories.find_category(user_id, name, category_type, parent_id)
        return found is not None

    async def _owned(self, category_id: UUID, user_id: str) -> Category:
        category = await self._categories.get_category_by_id(category_id)
        if category is None:
            raise CategoryNotFoundError("Category not found", category_id=category_id)
        if category.user_id != user_id:
            raise UnauthorizedError(
                "Category belongs to another user",
                category_id=category_id,
            )
        return category

    async def update(
        self,
        category_id: UUID,
        user_id: str,
        changes: CategoryUpdate,
    ) -> Category:
        """Rename or restyle a category. Type and parent never change."""
        category = await self._owned(category_id, user_id)

        updates = changes.model_dump(exclude_unset=True)
        # A category always has a name; None leaves it unchanged
        if updates.get("name") is None:
            updates.pop("name", None)
        if not updates:
            return category

        new_name = updates.get("name")
        if new_name and new_name != category.name:
            if await self.exists_by_name(user_id, new_name, category.type, category.parent_id):
                raise self._duplicate(new_name, category.type, category.parent_id)

        updated = Category.model_validate({**category.model_dump(), **updates})
        try:
            await self._categories.update_category(updated)
        except DuplicateError:
            raise self._duplicate(updated.name, category.type, category.parent_id)

        return await self._categories.get_category_by_id(category_id) or updated

    async def has_transactions(self, category_id: UUID) -> bool:
        return await self._transactions.count_by_category(category_id) > 0

    async def delete(self, category_id: UUID, user_id: str) -> None:
        """
        Hard-delete a category.

        Raises:
            CategoryNotFoundError, UnauthorizedError,
            HasChildrenError, CategoryInUseError
        """
        category = await self._owned(category_id, user_id)

        if await self._categories.list_children(category_id):
            raise HasChildrenError(
                "Delete the child categories first",
                category_id=category_id,
            )
        if await self.has_transactions(category_id):
            raise CategoryInUseError(
                "Category has transactions and cannot be deleted",
                category_id=category_id,
            )

        await self._categories.delete_category(category.id)
        logger.info("category_deleted", category_id=str(category_id), user_id=user_id)

    async def initialize_defaults(self, user_id: str) -> list[Category]:
        """
        Seed the default taxonomy for a new owner.

        No-op (returns []) if the owner already has any category.
        """
        if await self.find_by_owner(user_id):
            return []

        created = []
        for category_type, parents in DEFAULT_CATEGORIES.items():
            for name, color, icon, children in parents:
                parent = await self.create(CategoryInput(
                    name=name,
                    type=category_type,
                    user_id=user_id,
                    color=color,
                    icon=icon,
                ))
                created.append(parent)
                for child_name in children:
                    created.append(await self.create(CategoryInput(
                        name=child_name,
                        type=category_type,
                        user_id=user_id,
                        parent_id=parent.id,
                        color=color,
                    )))

        logger.info("default_categories_created", user_id=user_id, count=len(created))
        return created
