"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
In-memory storage backs tests and local runs; Google Sheets is the durable
backend. Business logic only ever sees the interfaces.
"""

from ledger_engine.services.storage.interface import (
    AuditStorageInterface,
    CategoryStorageInterface,
    ConnectionError,
    DuplicateError,
    ExchangeRateStorageInterface,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)
from ledger_engine.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryCategoryStorage,
    InMemoryExchangeRateStorage,
    InMemoryTransactionStorage,
)
from ledger_engine.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsExchangeRateStorage,
    GoogleSheetsTransactionStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "CategoryStorageInterface",
    "ExchangeRateStorageInterface",
    "TransactionStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryCategoryStorage",
    "InMemoryExchangeRateStorage",
    "InMemoryTransactionStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsCategoryStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExchangeRateStorage",
    "GoogleSheetsTransactionStorage",
]
