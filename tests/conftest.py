"""
Shared fixtures.

Every test gets fresh in-memory storages and the static rate provider
(USD = 7.2 CNY, JPY = 0.05 CNY). No real API calls in tests.
"""

from datetime import date

import pytest

from ledger_engine.models.category import CategoryInput
from ledger_engine.models.money import Currency
from ledger_engine.models.transaction import TransactionInput, TransactionType
from ledger_engine.orchestrator import (
    LedgerStorages,
    create_ledger_components,
    create_storages,
)
from ledger_engine.services.storage import InMemoryAuditStorage, StorageError
from ledger_engine.services.rates import StaticRateProvider


OWNER = "user-1"
OTHER_OWNER = "user-2"


class FailingAuditStorage(InMemoryAuditStorage):
    """Audit storage whose writes always fail."""

    async def append_entry(self, entry):
        raise StorageError("audit sheet unavailable")


@pytest.fixture
def storages() -> LedgerStorages:
    return create_storages("memory")


@pytest.fixture
def provider() -> StaticRateProvider:
    return StaticRateProvider()


@pytest.fixture
def ledger(storages, provider):
    return create_ledger_components(storages=storages, provider=provider)


@pytest.fixture
async def expense_parent(ledger):
    return await ledger.categories.create(CategoryInput(
        name="Cloud Services",
        type=TransactionType.EXPENSE,
        user_id=OWNER,
    ))


@pytest.fixture
async def expense_child(ledger, expense_parent):
    return await ledger.categories.create(CategoryInput(
        name="AWS",
        type=TransactionType.EXPENSE,
        user_id=OWNER,
        parent_id=expense_parent.id,
    ))


@pytest.fixture
async def income_category(ledger):
    return await ledger.categories.create(CategoryInput(
        name="Project Income",
        type=TransactionType.INCOME,
        user_id=OWNER,
    ))


def make_input(category, amount="100", currency=Currency.CNY, **overrides) -> TransactionInput:
    """TransactionInput for `category`, owned by the category's owner."""
    data = dict(
        original_amount=amount,
        currency=currency,
        type=category.type,
        transaction_date=date(2025, 3, 15),
        category_id=category.id,
        user_id=category.user_id,
    )
    data.update(overrides)
    return TransactionInput(**data)
