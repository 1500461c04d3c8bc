"""
In-Memory Storage Implementation

Process-local dictionaries behind the storage interfaces. Used for tests,
local development and the default wiring when no external backend is
configured. Nothing survives a restart.

Uniqueness constraints match what a real database would enforce:
- categories: (user_id, name, type, parent_id)
- exchange rates: (rate_date, from_currency, to_currency)
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from ledger_engine.models.audit import AuditAction, AuditLogEntry
from ledger_engine.models.category import Category
from ledger_engine.models.exchange_rate import ExchangeRate, RateKey, RateQuery
from ledger_engine.models.transaction import Transaction, TransactionType
from ledger_engine.services.storage.base import FilteringTransactionStorage
from ledger_engine.services.storage.interface import (
    AuditStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    ExchangeRateStorageInterface,
    NotFoundError,
)


CategoryKey = tuple[str, str, TransactionType, Optional[UUID]]


def _category_key(category: Category) -> CategoryKey:
    return (category.user_id, category.name, category.type, category.parent_id)


class InMemoryTransactionStorage(FilteringTransactionStorage):
    """Transactions keyed by id."""

    def __init__(self):
        self._rows: dict[UUID, Transaction] = {}

    async def _all_transactions(self) -> list[Transaction]:
        return list(self._rows.values())

    async def save_transaction(self, transaction: Transaction) -> bool:
        if transaction.id in self._rows:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        self._rows[transaction.id] = transaction
        return True

    async def get_transaction_by_id(self, transaction_id: UUID) -> Optional[Transaction]:
        return self._rows.get(transaction_id)

    async def update_transaction(self, transaction: Transaction) -> bool:
        if transaction.id not in self._rows:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        self._rows[transaction.id] = transaction
        return True

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        return self._rows.pop(transaction_id, None) is not None


class InMemoryCategoryStorage(CategoryStorageInterface):
    """Categories keyed by id, with a secondary unique index."""

    def __init__(self):
        self._rows: dict[UUID, Category] = {}

    def _key_taken(self, category: Category) -> bool:
        key = _category_key(category)
        return any(
            _category_key(other) == key and other.id != category.id
            for other in self._rows.values()
        )

    async def save_category(self, category: Category) -> bool:
        if self._key_taken(category):
            raise DuplicateError(f"Category already exists: {category.name}")
        self._rows[category.id] = category.model_copy()
        return True

    async def get_category_by_id(self, category_id: UUID) -> Optional[Category]:
        category = self._rows.get(category_id)
        return category.model_copy() if category else None

    async def list_categories(
        self,
        user_id: str,
        category_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        categories = [
            c.model_copy() for c in self._rows.values()
            if c.user_id == user_id
            and (category_type is None or c.type == category_type)
        ]
        categories.sort(key=lambda c: (c.parent_id is not None, c.name))
        return categories

    async def list_children(self, parent_id: UUID) -> list[Category]:
        children = [
            c.model_copy() for c in self._rows.values()
            if c.parent_id == parent_id
        ]
        children.sort(key=lambda c: c.name)
        return children

    async def find_category(
        self,
        user_id: str,
        name: str,
        category_type: TransactionType,
        parent_id: Optional[UUID],
    ) -> Optional[Category]:
        key = (user_id, name, category_type, parent_id)
        for category in self._rows.values():
            if _category_key(category) == key:
                return category.model_copy()
        return None

    async def update_category(self, category: Category) -> bool:
        if category.id not in self._rows:
            raise NotFoundError(f"Category not found: {category.id}")
        if self._key_taken(category):
            raise DuplicateError(f"Category already exists: {category.name}")
        self._rows[category.id] = category.model_copy(
            update={"updated_at": datetime.utcnow()}
        )
        return True

    async def delete_category(self, category_id: UUID) -> bool:
        return self._rows.pop(category_id, None) is not None


class InMemoryExchangeRateStorage(ExchangeRateStorageInterface):
    """Rates keyed by (day, from, to)."""

    def __init__(self):
        self._rows: dict[RateKey, ExchangeRate] = {}

    async def upsert_rate(self, rate: ExchangeRate) -> ExchangeRate:
        existing = self._rows.get(rate.key)
        if existing:
            # Keep the row identity, overwrite the value
            rate = rate.model_copy(update={"id": existing.id})
        self._rows[rate.key] = rate
        return rate

    async def get_rate(self, query: RateQuery) -> Optional[ExchangeRate]:
        return self._rows.get(query.key)

    async def get_rates(self, queries: list[RateQuery]) -> list[ExchangeRate]:
        keys = {q.key for q in queries}
        return [self._rows[key] for key in keys if key in self._rows]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of entries."""

    def __init__(self):
        self._entries: list[AuditLogEntry] = []

    async def append_entry(self, entry: AuditLogEntry) -> bool:
        self._entries.append(entry)
        return True

    def _newest_first(self, entries: list[AuditLogEntry]) -> list[AuditLogEntry]:
        return sorted(entries, key=lambda e: e.created_at, reverse=True)

    async def get_entry_by_id(self, entry_id: UUID) -> Optional[AuditLogEntry]:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    async def get_entries_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditLogEntry]:
        return self._newest_first([
            e for e in self._entries
            if e.entity_type == entity_type and e.entity_id == entity_id
        ])

    async def get_entries_by_action(
        self,
        action: AuditAction,
        limit: int = 100,
    ) -> list[AuditLogEntry]:
        return self._newest_first([
            e for e in self._entries if e.action == action
        ])[:limit]

    async def get_recent_entries(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditLogEntry]:
        return self._newest_first([
            e for e in self._entries
            if user_id is None or e.user_id == user_id
        ])[:limit]
