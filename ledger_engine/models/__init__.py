"""
Data Models Package

This package contains all Pydantic models used by the ledger engine.
All data flowing through the engine must conform to these schemas.
"""

from ledger_engine.models.money import (
    CANONICAL_CURRENCY,
    Currency,
)
from ledger_engine.models.transaction import (
    CategorySummary,
    MonthKey,
    MonthlyReport,
    TRANSACTION_TYPE_LABELS,
    Transaction,
    TransactionFilters,
    TransactionInput,
    TransactionSummary,
    TransactionType,
    TransactionUpdate,
)
from ledger_engine.models.category import (
    Category,
    CategoryInput,
    CategoryUpdate,
)
from ledger_engine.models.exchange_rate import (
    ExchangeRate,
    RateQuery,
)
from ledger_engine.models.audit import (
    AuditAction,
    AuditEntryBuilder,
    AuditLogEntry,
)
from ledger_engine.models.io import (
    ExportRow,
    ImportResult,
    ImportRow,
    ImportRowError,
)

__all__ = [
    # Money
    "CANONICAL_CURRENCY",
    "Currency",
    # Transactions and reports
    "CategorySummary",
    "MonthKey",
    "MonthlyReport",
    "TRANSACTION_TYPE_LABELS",
    "Transaction",
    "TransactionFilters",
    "TransactionInput",
    "TransactionSummary",
    "TransactionType",
    "TransactionUpdate",
    # Categories
    "Category",
    "CategoryInput",
    "CategoryUpdate",
    # Rates
    "ExchangeRate",
    "RateQuery",
    # Audit
    "AuditAction",
    "AuditEntryBuilder",
    "AuditLogEntry",
    # Import/export
    "ExportRow",
    "ImportResult",
    "ImportRow",
    "ImportRowError",
]
