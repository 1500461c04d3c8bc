"""
Tests for the posting engine: create, update, delete and reads.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import OTHER_OWNER, OWNER, FailingAuditStorage, make_input
from ledger_engine.errors import (
    AuditWriteError,
    CategoryNotFoundError,
    ErrorKind,
    ExchangeRateUnavailableError,
    InvalidAmountError,
    InvalidExchangeRateError,
    TransactionNotFoundError,
    TypeMismatchError,
    UnauthorizedError,
)
from ledger_engine.models.audit import AuditAction
from ledger_engine.models.category import CategoryInput
from ledger_engine.models.money import Currency, quantize_amount
from ledger_engine.models.transaction import (
    TransactionFilters,
    TransactionType,
    TransactionUpdate,
)
from ledger_engine.orchestrator import create_ledger_components
from ledger_engine.services.rates import StaticRateProvider


class DownProvider(StaticRateProvider):
    async def fetch_latest_rates(self, from_currency):
        return None


class TestCreate:
    """Tests for posting a single transaction."""

    async def test_manual_rate_conversion(self, ledger, expense_child):
        """Test 100.50 USD at a manual 7.20 posts 723.60 CNY."""
        tx = await ledger.posting.create(make_input(
            expense_child, amount="100.50", currency=Currency.USD, exchange_rate="7.20",
        ))

        assert tx.exchange_rate == Decimal("7.20")
        assert quantize_amount(tx.amount_cny) == Decimal("723.60")
        assert await ledger.storages.transactions.get_transaction_by_id(tx.id) == tx

    async def test_looked_up_rate(self, ledger, expense_child):
        tx = await ledger.posting.create(make_input(expense_child, amount="10", currency=Currency.JPY))
        assert tx.exchange_rate == Decimal("0.05")
        assert tx.amount_cny == Decimal("0.5")

    async def test_cny_rate_is_one(self, ledger, expense_child):
        tx = await ledger.posting.create(make_input(expense_child, amount="88.8", exchange_rate="3"))
        assert tx.exchange_rate == Decimal("1")
        assert tx.amount_cny == Decimal("88.8")

    async def test_float_amount_has_no_binary_artefacts(self, ledger, expense_child):
        tx = await ledger.posting.create(make_input(expense_child, amount=0.1))
        assert tx.original_amount == Decimal("0.1")

    async def test_audit_entry_written(self, ledger, expense_child):
        tx = await ledger.posting.create(make_input(expense_child, description="S3 storage"))

        entries = await ledger.audit.entries_for_transaction(tx.id)
        assert len(entries) == 1
        assert entries[0].action == AuditAction.CREATE_TRANSACTION
        assert entries[0].details["description"] == "S3 storage"
        assert entries[0].user_id == OWNER

    @pytest.mark.parametrize("amount", ["0", "-5", "abc", ""])
    async def test_invalid_amount(self, ledger, expense_child, amount):
        with pytest.raises(InvalidAmountError) as exc_info:
            await ledger.posting.create(make_input(expense_child, amount=amount))
        assert exc_info.value.kind == ErrorKind.INVALID_AMOUNT
        assert await ledger.posting.list_transactions(OWNER) == []

    async def test_unknown_category(self, ledger, expense_child):
        with pytest.raises(CategoryNotFoundError):
            await ledger.posting.create(make_input(expense_child, category_id=uuid4()))

    async def test_category_of_other_owner(self, ledger, expense_child):
        with pytest.raises(UnauthorizedError):
            await ledger.posting.create(make_input(expense_child, user_id=OTHER_OWNER))

    async def test_category_type_mismatch(self, ledger, expense_child):
        with pytest.raises(TypeMismatchError):
            await ledger.posting.create(make_input(expense_child, type=TransactionType.INCOME))

    async def test_invalid_manual_rate(self, ledger, expense_child):
        with pytest.raises(InvalidExchangeRateError):
            await ledger.posting.create(make_input(
                expense_child, currency=Currency.USD, exchange_rate="-1",
            ))

    async def test_rate_unavailable_leaves_no_row(self, storages, expense_child):
        ledger = create_ledger_components(storages=storages, provider=DownProvider())

        with pytest.raises(ExchangeRateUnavailableError):
            await ledger.posting.create(make_input(expense_child, currency=Currency.USD))

        assert await ledger.posting.list_transactions(OWNER) == []
        assert await ledger.audit.recent_entries(OWNER) == []

    async def test_audit_failure_does_not_undo_create(self, storages, provider, expense_child):
        """Test that create audit writes are best-effort."""
        failing = storages._replace(audit=FailingAuditStorage())
        ledger = create_ledger_components(storages=failing, provider=provider)

        tx = await ledger.posting.create(make_input(expense_child))

        assert await ledger.posting.get(tx.id, OWNER) == tx


class TestUpdate:
    """Tests for the partial update path."""

    @pytest.fixture
    async def posted(self, ledger, expense_child):
        return await ledger.posting.create(make_input(
            expense_child, amount="100", currency=Currency.USD, exchange_rate="7",
        ))

    async def test_amount_change_keeps_rate(self, ledger, posted):
        updated = await ledger.posting.update(
            posted.id, OWNER, TransactionUpdate(original_amount="200")
        )
        assert updated.exchange_rate == Decimal("7")
        assert updated.amount_cny == Decimal("1400")
        assert updated.created_at == posted.created_at

    async def test_currency_change_resolves_rate(self, ledger, posted):
        updated = await ledger.posting.update(
            posted.id, OWNER, TransactionUpdate(currency=Currency.JPY)
        )
        assert updated.exchange_rate == Decimal("0.05")
        assert updated.amount_cny == Decimal("5")

    async def test_switch_to_cny(self, ledger, posted):
        updated = await ledger.posting.update(
            posted.id, OWNER, TransactionUpdate(currency=Currency.CNY)
        )
        assert updated.exchange_rate == Decimal("1")

    async def test_description_only(self, ledger, posted):
        updated = await ledger.posting.update(
            posted.id, OWNER, TransactionUpdate(description="renamed")
        )
        assert updated.description == "renamed"
        assert updated.exchange_rate == posted.exchange_rate

    async def test_update_is_audited(self, ledger, posted):
        await ledger.posting.update(posted.id, OWNER, TransactionUpdate(original_amount="50"))

        entries = await ledger.audit.entries_by_action(AuditAction.UPDATE_TRANSACTION)
        assert len(entries) == 1
        assert entries[0].details["changed_fields"] == ["original_amount"]
        assert entries[0].details["before"]["amount"] == "100"
        assert entries[0].details["after"]["amount"] == "50"

    async def test_noop_update(self, ledger, posted):
        assert await ledger.posting.update(posted.id, OWNER, TransactionUpdate()) == posted
        assert await ledger.audit.entries_by_action(AuditAction.UPDATE_TRANSACTION) == []

    async def test_type_change_requires_matching_category(self, ledger, posted, income_category):
        with pytest.raises(TypeMismatchError):
            await ledger.posting.update(
                posted.id, OWNER, TransactionUpdate(type=TransactionType.INCOME)
            )

        updated = await ledger.posting.update(
            posted.id,
            OWNER,
            TransactionUpdate(type=TransactionType.INCOME, category_id=income_category.id),
        )
        assert updated.type == TransactionType.INCOME

    async def test_invalid_amount(self, ledger, posted):
        with pytest.raises(InvalidAmountError):
            await ledger.posting.update(posted.id, OWNER, TransactionUpdate(original_amount="0"))

    async def test_other_owner(self, ledger, posted):
        with pytest.raises(UnauthorizedError):
            await ledger.posting.update(posted.id, OTHER_OWNER, TransactionUpdate(notes="x"))

    async def test_missing(self, ledger):
        with pytest.raises(TransactionNotFoundError):
            await ledger.posting.update(uuid4(), OWNER, TransactionUpdate(notes="x"))


class TestDelete:
    """Tests for deletion and its audit snapshot."""

    async def test_delete_writes_snapshot_first(self, ledger, expense_child):
        tx = await ledger.posting.create(make_input(expense_child, amount="42"))

        await ledger.posting.delete(tx.id, OWNER)

        with pytest.raises(TransactionNotFoundError):
            await ledger.posting.get(tx.id, OWNER)

        deletes = await ledger.audit.entries_by_action(AuditAction.DELETE_TRANSACTION)
        assert len(deletes) == 1
        assert deletes[0].entity_id == str(tx.id)
        assert deletes[0].details["amount"] == "42"
        assert deletes[0].details["owner_id"] == OWNER

    async def test_delete_other_owner(self, ledger, expense_child):
        tx = await ledger.posting.create(make_input(expense_child))

        with pytest.raises(UnauthorizedError):
            await ledger.posting.delete(tx.id, OTHER_OWNER)
        assert await ledger.posting.get(tx.id, OWNER) == tx

    async def test_delete_missing(self, ledger):
        with pytest.raises(TransactionNotFoundError):
            await ledger.posting.delete(uuid4(), OWNER)

    async def test_audit_failure_blocks_delete(self, storages, provider, expense_child):
        """Test that a delete without a stored snapshot does not happen."""
        ledger = create_ledger_components(storages=storages, provider=provider)
        tx = await ledger.posting.create(make_input(expense_child))

        failing = create_ledger_components(
            storages=storages._replace(audit=FailingAuditStorage()),
            provider=provider,
        )
        with pytest.raises(AuditWriteError) as exc_info:
            await failing.posting.delete(tx.id, OWNER)

        assert exc_info.value.kind == ErrorKind.AUDIT_WRITE_FAILED
        assert await ledger.posting.get(tx.id, OWNER) == tx


class TestReads:
    """Tests for get and list."""

    async def test_list_newest_first_with_filters(self, ledger, expense_child, income_category):
        await ledger.posting.create(make_input(expense_child, transaction_date=date(2025, 1, 10)))
        await ledger.posting.create(make_input(expense_child, transaction_date=date(2025, 3, 1)))
        await ledger.posting.create(make_input(income_category, transaction_date=date(2025, 2, 5)))

        all_rows = await ledger.posting.list_transactions(OWNER)
        assert [t.transaction_date for t in all_rows] == [
            date(2025, 3, 1), date(2025, 2, 5), date(2025, 1, 10),
        ]

        expenses = await ledger.posting.list_transactions(
            OWNER, TransactionFilters(type=TransactionType.EXPENSE, limit=1)
        )
        assert [t.transaction_date for t in expenses] == [date(2025, 3, 1)]

        assert await ledger.posting.list_transactions(OTHER_OWNER) == []

    async def test_get_other_owner(self, ledger, expense_child):
        tx = await ledger.posting.create(make_input(expense_child))
        with pytest.raises(UnauthorizedError):
            await ledger.posting.get(tx.id, OTHER_OWNER)


class TestNewOwnerFlow:
    """End to end: seed defaults, post, report."""

    async def test_defaults_then_post(self, ledger):
        await ledger.categories.initialize_defaults("user-3")
        index = await ledger.categories.index("user-3")
        aws = index.resolve(TransactionType.EXPENSE, "Cloud Services", "AWS")

        tx = await ledger.posting.create(make_input(aws, amount="20", currency=Currency.USD))

        assert tx.amount_cny == Decimal("144.000000")
        summary = await ledger.reports.monthly_summary("user-3", 2025, 3)
        assert summary.total_expense == Decimal("144")

    async def test_income_category_for_new_owner(self, ledger):
        category = await ledger.categories.create(CategoryInput(
            name="Misc", type=TransactionType.INCOME, user_id="user-4",
        ))
        tx = await ledger.posting.create(make_input(category))
        assert tx.type == TransactionType.INCOME


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
