"""
Python-side aggregation for backends without native GROUP BY.

Both the in-memory and the Google Sheets backends load rows and filter in
Python; they share the aggregate queries defined here. A SQL backend would
override these with real aggregate queries.
"""

from abc import abstractmethod
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from ledger_engine.models.money import add
from ledger_engine.models.transaction import (
    Transaction,
    TransactionFilters,
    TransactionType,
)
from ledger_engine.services.storage.interface import TransactionStorageInterface


class FilteringTransactionStorage(TransactionStorageInterface):
    """Implements the aggregate part of the interface on top of a full scan."""

    @abstractmethod
    async def _all_transactions(self) -> list[Transaction]:
        """Every stored transaction, any owner, any order."""
        pass

    async def list_transactions(
        self,
        user_id: str,
        filters: Optional[TransactionFilters] = None,
    ) -> list[Transaction]:
        filters = filters or TransactionFilters()
        rows = [
            tx for tx in await self._all_transactions()
            if tx.user_id == user_id and filters.matches(tx)
        ]

        # Newest first; created_at breaks ties within a day
        rows.sort(key=lambda tx: (tx.transaction_date, tx.created_at), reverse=True)

        end = filters.offset + filters.limit if filters.limit else None
        return rows[filters.offset:end]

    async def count_by_category(self, category_id: UUID) -> int:
        return sum(
            1 for tx in await self._all_transactions()
            if tx.category_id == category_id
        )

    async def sum_by_type(
        self,
        user_id: str,
        transaction_type: TransactionType,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> tuple[Decimal, int]:
        rows = await self.list_transactions(
            user_id,
            TransactionFilters(
                type=transaction_type,
                date_from=date_from,
                date_to=date_to,
            ),
        )
        return add(*(tx.amount_cny for tx in rows)), len(rows)

    async def sum_by_category(
        self,
        user_id: str,
        transaction_type: TransactionType,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[tuple[UUID, Decimal, int]]:
        rows = await self.list_transactions(
            user_id,
            TransactionFilters(
                type=transaction_type,
                date_from=date_from,
                date_to=date_to,
            ),
        )

        groups: dict[UUID, list[Decimal]] = defaultdict(list)
        for tx in rows:
            groups[tx.category_id].append(tx.amount_cny)

        return [
            (category_id, add(*amounts), len(amounts))
            for category_id, amounts in groups.items()
        ]

    async def list_transaction_dates(self, user_id: str) -> list[date]:
        return [
            tx.transaction_date for tx in await self._all_transactions()
            if tx.user_id == user_id
        ]
