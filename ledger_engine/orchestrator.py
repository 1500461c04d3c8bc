"""
Component Wiring for the Ledger Engine

This module ties together storage, rate services, the audit trail and the
three engines (categories, posting, reporting).

DESIGN DECISION: Everything is constructor-injected. This factory is the
one place that reads settings and decides which concrete backend and
provider to use; business code never reaches for globals.
"""

from typing import NamedTuple, Optional

import structlog

from ledger_engine.audit import AuditLogger, configure_logging
from ledger_engine.categories import CategoryTree
from ledger_engine.config import get_settings
from ledger_engine.posting import PostingEngine
from ledger_engine.reports import ReportingEngine
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
    TransactionStorageInterface,
)


logger = structlog.get_logger()


class LedgerStorages(NamedTuple):
    transactions: TransactionStorageInterface
    categories: CategoryStorageInterface
    exchange_rates: ExchangeRateStorageInterface
    audit: AuditStorageInterface


class LedgerComponents(NamedTuple):
    """Everything a page/API layer needs, sharing one set of storages."""
    posting: PostingEngine
    categories: CategoryTree
    reports: ReportingEngine
    conversion: CurrencyConversionService
    audit: AuditLogger
    storages: LedgerStorages


def create_storages(backend: str) -> LedgerStorages:
    """Build one storage per entity for the named backend."""
    if backend == "memory":
        return LedgerStorages(
            transactions=InMemoryTransactionStorage(),
            categories=InMemoryCategoryStorage(),
            exchange_rates=InMemoryExchangeRateStorage(),
            audit=InMemoryAuditStorage(),
        )

    if backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
        except Exception as e:
            logger.error("storage_not_configured", backend=backend, error=str(e))
            raise
        return LedgerStorages(
            transactions=GoogleSheetsTransactionStorage(sheets_client),
            categories=GoogleSheetsCategoryStorage(sheets_client),
            exchange_rates=GoogleSheetsExchangeRateStorage(sheets_client),
            audit=GoogleSheetsAuditStorage(sheets_client),
        )

    raise ValueError(f"Unknown storage backend: {backend}")


def create_rate_provider() -> ExchangeRateProvider:
    """Fixed rates in mock mode, exchangerate-api.com otherwise."""
    if get_settings().app.use_mock_exchange_rates:
        return StaticRateProvider()
    return ExchangeRateApiProvider()


def create_ledger_components(
    backend: Optional[str] = None,
    provider: Optional[ExchangeRateProvider] = None,
    storages: Optional[LedgerStorages] = None,
) -> LedgerComponents:
    """
    Factory function to create all ledger components.

    Args:
        backend: "memory" or "google_sheets"; defaults to the configured one.
                 Ignored when storages are passed in.
        provider: Rate provider; defaults to the configured one
        storages: Pre-built storages (tests, shared sessions)

    Returns:
        LedgerComponents
    """
    settings = get_settings()
    app_settings = settings.app
    configure_logging(app_settings.log_level)

    storages = storages or create_storages(backend or app_settings.storage_backend)
    provider = provider or create_rate_provider()

    audit_logger = AuditLogger(storages.audit)
    conversion = CurrencyConversionService(
        cache=ExchangeRateCache(storages.exchange_rates),
        provider=provider,
        memory_cache=RateMemoryCache(settings.exchange_rate_api.memory_cache_ttl_seconds),
    )
    categories = CategoryTree(storages.categories, storages.transactions)
    posting = PostingEngine(
        transaction_storage=storages.transactions,
        categories=categories,
        conversion=conversion,
        audit=audit_logger,
        error_sample_size=app_settings.import_error_sample_size,
    )
    reports = ReportingEngine(storages.transactions, storages.categories)

    logger.info(
        "ledger_components_created",
        backend=type(storages.transactions).__name__,
        provider=type(provider).__name__,
    )

    return LedgerComponents(
        posting=posting,
        categories=categories,
        reports=reports,
        conversion=conversion,
        audit=audit_logger,
        storages=storages,
    )
