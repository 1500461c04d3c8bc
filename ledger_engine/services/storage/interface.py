"""
Abstract Storage Interface

DESIGN DECISION: We define one abstract interface per stored entity.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interfaces are intentionally simple - we're not building a full ORM.
Just the operations the posting, category and reporting services need.
Storage handles are always passed in (constructor injection); there is no
global client.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from ledger_engine.models.audit import AuditAction, AuditLogEntry
from ledger_engine.models.category import Category
from ledger_engine.models.exchange_rate import ExchangeRate, RateQuery
from ledger_engine.models.transaction import (
    Transaction,
    TransactionFilters,
    TransactionType,
)


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> bool:
        """
        Persist a new transaction.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_transaction_by_id(self, transaction_id: UUID) -> Optional[Transaction]:
        """Return the transaction, or None if it does not exist."""
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> bool:
        """
        Replace a stored transaction with a new version.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: UUID) -> bool:
        """Hard-delete a transaction. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def list_transactions(
        self,
        user_id: str,
        filters: Optional[TransactionFilters] = None,
    ) -> list[Transaction]:
        """
        List a user's transactions, newest first.

        Args:
            user_id: Owner
            filters: Optional type/category/date filters and pagination
        """
        pass

    @abstractmethod
    async def count_by_category(self, category_id: UUID) -> int:
        """Number of transactions referencing a category (any owner)."""
        pass

    @abstractmethod
    async def sum_by_type(
        self,
        user_id: str,
        transaction_type: TransactionType,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> tuple[Decimal, int]:
        """
        Sum amount_cny for one type in an inclusive date range.

        Returns:
            (total, transaction_count)
        """
        pass

    @abstractmethod
    async def sum_by_category(
        self,
        user_id: str,
        transaction_type: TransactionType,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[tuple[UUID, Decimal, int]]:
        """
        Grouped aggregate of amount_cny per category.

        Returns:
            List of (category_id, total, transaction_count)
        """
        pass

    @abstractmethod
    async def list_transaction_dates(self, user_id: str) -> list[date]:
        """All transaction dates of a user (duplicates allowed)."""
        pass


class CategoryStorageInterface(ABC):
    """
    Abstract interface for category storage.

    Implementations must enforce uniqueness of
    (user_id, name, type, parent_id) and raise DuplicateError.
    """

    @abstractmethod
    async def save_category(self, category: Category) -> bool:
        """
        Persist a new category.

        Raises:
            DuplicateError: If the (user, name, type, parent) key is taken
        """
        pass

    @abstractmethod
    async def get_category_by_id(self, category_id: UUID) -> Optional[Category]:
        pass

    @abstractmethod
    async def list_categories(
        self,
        user_id: str,
        category_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        """A user's categories, parents first, then by name."""
        pass

    @abstractmethod
    async def list_children(self, parent_id: UUID) -> list[Category]:
        pass

    @abstractmethod
    async def find_category(
        self,
        user_id: str,
        name: str,
        category_type: TransactionType,
        parent_id: Optional[UUID],
    ) -> Optional[Category]:
        """Look a category up by its unique key."""
        pass

    @abstractmethod
    async def update_category(self, category: Category) -> bool:
        """
        Raises:
            NotFoundError: If the category doesn't exist
            DuplicateError: If the new name collides within its scope
        """
        pass

    @abstractmethod
    async def delete_category(self, category_id: UUID) -> bool:
        pass


class ExchangeRateStorageInterface(ABC):
    """
    Abstract interface for the durable exchange rate cache.

    Unique per (rate_date, from_currency, to_currency); upsert means
    last write wins.
    """

    @abstractmethod
    async def upsert_rate(self, rate: ExchangeRate) -> ExchangeRate:
        """Create or overwrite the row for rate.key. Returns the stored row."""
        pass

    @abstractmethod
    async def get_rate(self, query: RateQuery) -> Optional[ExchangeRate]:
        pass

    @abstractmethod
    async def get_rates(self, queries: list[RateQuery]) -> list[ExchangeRate]:
        """Batched lookup. Missing keys are simply absent from the result."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_entry(self, entry: AuditLogEntry) -> bool:
        """
        Append an audit entry to the log.

        Returns:
            True if logged successfully

        Raises:
            StorageError: If the backend rejects the write
        """
        pass

    @abstractmethod
    async def get_entry_by_id(self, entry_id: UUID) -> Optional[AuditLogEntry]:
        pass

    @abstractmethod
    async def get_entries_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditLogEntry]:
        """All entries for one entity, newest first."""
        pass

    @abstractmethod
    async def get_entries_by_action(
        self,
        action: AuditAction,
        limit: int = 100,
    ) -> list[AuditLogEntry]:
        """Entries of one action type, newest first."""
        pass

    @abstractmethod
    async def get_recent_entries(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditLogEntry]:
        """
        Get the most recent audit entries.

        Args:
            limit: Maximum number of entries to return
            user_id: Only entries by this actor, if given
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
