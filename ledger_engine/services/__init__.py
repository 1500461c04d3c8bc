"""Services package."""

from ledger_engine.services.rates import (
    CurrencyConversionService,
    ExchangeRateApiProvider,
    ExchangeRateCache,
    ExchangeRateProvider,
    RateMemoryCache,
    StaticRateProvider,
)
from ledger_engine.services.storage import (
    AuditStorageInterface,
    CategoryStorageInterface,
    ConnectionError,
    DuplicateError,
    ExchangeRateStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsExchangeRateStorage,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryCategoryStorage,
    InMemoryExchangeRateStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)

__all__ = [
    # Rate services
    "CurrencyConversionService",
    "ExchangeRateApiProvider",
    "ExchangeRateCache",
    "ExchangeRateProvider",
    "RateMemoryCache",
    "StaticRateProvider",
    # Storage services
    "AuditStorageInterface",
    "CategoryStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "ExchangeRateStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsCategoryStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExchangeRateStorage",
    "GoogleSheetsTransactionStorage",
    "InMemoryAuditStorage",
    "InMemoryCategoryStorage",
    "InMemoryExchangeRateStorage",
    "InMemoryTransactionStorage",
    "NotFoundError",
    "StorageError",
    "TransactionStorageInterface",
]
