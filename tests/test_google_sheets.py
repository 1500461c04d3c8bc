"""
Tests for the Google Sheets backend.

A fake spreadsheet stands in for gspread; nothing talks to Google.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import gspread
import pytest

from conftest import OWNER
from ledger_engine.config import GoogleSheetsSettings
from ledger_engine.models.audit import AuditAction, AuditEntryBuilder
from ledger_engine.models.category import Category
from ledger_engine.models.exchange_rate import ExchangeRate, RateQuery
from ledger_engine.models.money import Currency
from ledger_engine.models.transaction import (
    Transaction,
    TransactionFilters,
    TransactionType,
)
from ledger_engine.orchestrator import LedgerStorages, create_ledger_components
from ledger_engine.services.rates import StaticRateProvider
from ledger_engine.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsExchangeRateStorage,
    GoogleSheetsTransactionStorage,
    NotFoundError,
    StorageError,
)
from ledger_engine.services.storage.google_sheets import TRANSACTION_COLUMNS


class FakeWorksheet:
    """Just enough of gspread.Worksheet: rows of strings, 1-based."""

    def __init__(self, title: str):
        self.title = title
        self.rows: list[list[str]] = []
        self.fail_appends = False

    def append_row(self, values, value_input_option=None):
        if self.fail_appends:
            raise RuntimeError("quota exceeded")
        self.rows.append([str(v) for v in values])

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def update(self, range_name, values, value_input_option=None):
        index = int(range_name[1:])
        self.rows[index - 1] = [str(v) for v in values[0]]

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSpreadsheet:
    def __init__(self):
        self.sheets: dict[str, FakeWorksheet] = {}

    def worksheet(self, title):
        try:
            return self.sheets[title]
        except KeyError:
            raise gspread.WorksheetNotFound(title)

    def add_worksheet(self, title, rows, cols):
        sheet = FakeWorksheet(title)
        self.sheets[title] = sheet
        return sheet


@pytest.fixture
def spreadsheet():
    return FakeSpreadsheet()


@pytest.fixture
def client(spreadsheet, tmp_path):
    credentials = tmp_path / "service-account.json"
    credentials.write_text("{}")
    settings = GoogleSheetsSettings(
        credentials_path=str(credentials),
        spreadsheet_id="test-spreadsheet",
    )
    return GoogleSheetsClient(settings=settings, spreadsheet=spreadsheet)


def make_transaction(**overrides) -> Transaction:
    data = dict(
        original_amount=Decimal("100.50"),
        currency=Currency.USD,
        exchange_rate=Decimal("7.20"),
        type=TransactionType.EXPENSE,
        transaction_date=date(2025, 3, 15),
        category_id=uuid4(),
        user_id=OWNER,
    )
    data.update(overrides)
    return Transaction(**data)


class TestClient:
    """Tests for worksheet handling."""

    def test_worksheet_created_with_header(self, client, spreadsheet):
        sheet = client.worksheet("Transactions", TRANSACTION_COLUMNS)

        assert spreadsheet.sheets["Transactions"] is sheet
        assert sheet.rows == [TRANSACTION_COLUMNS]
        assert client.worksheet("Transactions", TRANSACTION_COLUMNS) is sheet

    def test_existing_worksheet_is_reused(self, client, spreadsheet):
        existing = spreadsheet.add_worksheet("Transactions", rows=10, cols=13)
        existing.append_row(TRANSACTION_COLUMNS)

        assert client.worksheet("Transactions", TRANSACTION_COLUMNS) is existing
        assert len(existing.rows) == 1

    def test_read_rows_skips_header_and_blanks(self, client):
        sheet = client.worksheet("Rates", ["id", "rate"])
        sheet.append_row(["a", "1"])
        sheet.append_row(["", ""])
        sheet.append_row(["b", "2"])

        assert client.read_rows(sheet) == [["a", "1"], ["b", "2"]]
        assert client.find_row_index(sheet, "b") == 4
        assert client.find_row_index(sheet, "zzz") is None


class TestTransactionStorage:
    """Tests for the transactions worksheet."""

    async def test_save_and_read_back(self, client, spreadsheet):
        storage = GoogleSheetsTransactionStorage(client)
        tx = make_transaction(description="EC2")

        await storage.save_transaction(tx)

        row = spreadsheet.sheets["Transactions"].rows[1]
        assert row[4] == "100.50"
        assert row[7] == "723.6000"
        stored = await storage.get_transaction_by_id(tx.id)
        assert stored.model_dump() == tx.model_dump()

    async def test_list_filters_and_order(self, client):
        storage = GoogleSheetsTransactionStorage(client)
        older = make_transaction(transaction_date=date(2025, 1, 1))
        newer = make_transaction(transaction_date=date(2025, 2, 1))
        income = make_transaction(type=TransactionType.INCOME, transaction_date=date(2025, 1, 15))
        for tx in (older, newer, income):
            await storage.save_transaction(tx)

        assert [t.id for t in await storage.list_transactions(OWNER)] == [newer.id, income.id, older.id]

        expenses = await storage.list_transactions(
            OWNER, TransactionFilters(type=TransactionType.EXPENSE, offset=1)
        )
        assert [t.id for t in expenses] == [older.id]

        total, count = await storage.sum_by_type(OWNER, TransactionType.EXPENSE)
        assert total == Decimal("1447.2000")
        assert count == 2

    async def test_update_replaces_row(self, client, spreadsheet):
        storage = GoogleSheetsTransactionStorage(client)
        tx = make_transaction()
        await storage.save_transaction(tx)

        changed = tx.model_copy(update={"original_amount": Decimal("1")})
        await storage.update_transaction(changed)

        assert len(spreadsheet.sheets["Transactions"].rows) == 2
        stored = await storage.get_transaction_by_id(tx.id)
        assert stored.amount_cny == Decimal("7.20")

    async def test_update_missing(self, client):
        storage = GoogleSheetsTransactionStorage(client)
        with pytest.raises(NotFoundError):
            await storage.update_transaction(make_transaction())

    async def test_delete(self, client):
        storage = GoogleSheetsTransactionStorage(client)
        tx = make_transaction()
        await storage.save_transaction(tx)

        assert await storage.delete_transaction(tx.id)
        assert await storage.get_transaction_by_id(tx.id) is None
        assert not await storage.delete_transaction(tx.id)

    async def test_unparseable_row_is_skipped(self, client, spreadsheet):
        storage = GoogleSheetsTransactionStorage(client)
        tx = make_transaction()
        await storage.save_transaction(tx)

        bad = list(spreadsheet.sheets["Transactions"].rows[1])
        bad[0] = str(uuid4())
        bad[4] = "one hundred"
        spreadsheet.sheets["Transactions"].rows.append(bad)

        assert [t.id for t in await storage.list_transactions(OWNER)] == [tx.id]
        assert storage.skipped_rows == 1
        assert await storage.get_transaction_by_id(UUID(bad[0])) is None

        spreadsheet.sheets["Transactions"].rows.pop()
        await storage.list_transactions(OWNER)
        assert storage.skipped_rows == 0


class TestCategoryStorage:
    """Tests for the categories worksheet."""

    async def test_save_list_and_duplicates(self, client):
        storage = GoogleSheetsCategoryStorage(client)
        parent = Category(name="Cloud Services", type=TransactionType.EXPENSE, user_id=OWNER)
        child = Category(
            name="AWS", type=TransactionType.EXPENSE, user_id=OWNER, parent_id=parent.id,
        )
        await storage.save_category(child)
        await storage.save_category(parent)

        assert [c.name for c in await storage.list_categories(OWNER)] == ["Cloud Services", "AWS"]
        assert [c.id for c in await storage.list_children(parent.id)] == [child.id]

        with pytest.raises(DuplicateError):
            await storage.save_category(
                Category(name="AWS", type=TransactionType.EXPENSE, user_id=OWNER, parent_id=parent.id)
            )

    async def test_update_and_delete(self, client):
        storage = GoogleSheetsCategoryStorage(client)
        category = Category(name="Travel", type=TransactionType.EXPENSE, user_id=OWNER)
        await storage.save_category(category)

        await storage.update_category(category.model_copy(update={"name": "Trips"}))
        stored = await storage.get_category_by_id(category.id)
        assert stored.name == "Trips"
        assert stored.parent_id is None

        assert await storage.delete_category(category.id)
        assert await storage.get_category_by_id(category.id) is None


class TestExchangeRateStorage:
    """Tests for the durable rate cache worksheet."""

    async def test_upsert_keeps_one_row_per_key(self, client, spreadsheet):
        storage = GoogleSheetsExchangeRateStorage(client)
        first = await storage.upsert_rate(ExchangeRate(
            rate_date=date(2025, 3, 15), from_currency=Currency.USD, rate=Decimal("7.2"), source="auto",
        ))
        second = await storage.upsert_rate(ExchangeRate(
            rate_date=date(2025, 3, 15), from_currency=Currency.USD, rate=Decimal("7.25"), source="manual",
        ))

        assert second.id == first.id
        assert len(spreadsheet.sheets["ExchangeRates"].rows) == 2

        stored = await storage.get_rate(RateQuery(rate_date=date(2025, 3, 15), from_currency=Currency.USD))
        assert stored.rate == Decimal("7.25")
        assert stored.source == "manual"

    async def test_get_rates_batch(self, client):
        storage = GoogleSheetsExchangeRateStorage(client)
        await storage.upsert_rate(ExchangeRate(
            rate_date=date(2025, 3, 15), from_currency=Currency.JPY, rate=Decimal("0.048"),
        ))

        found = await storage.get_rates([
            RateQuery(rate_date=date(2025, 3, 15), from_currency=Currency.JPY),
            RateQuery(rate_date=date(2025, 3, 16), from_currency=Currency.JPY),
        ])
        assert [r.rate for r in found] == [Decimal("0.048")]


class TestAuditStorage:
    """Tests for the append-only audit worksheet."""

    async def test_append_and_read(self, client):
        storage = GoogleSheetsAuditStorage(client)
        tx = make_transaction()
        entry = AuditEntryBuilder.transaction_deleted(tx, OWNER)

        await storage.append_entry(entry)

        [stored] = await storage.get_entries_by_entity("Transaction", str(tx.id))
        assert stored.id == entry.id
        assert stored.details == entry.details
        assert await storage.get_entries_by_action(AuditAction.CREATE_TRANSACTION) == []

    async def test_failed_append_is_raised(self, client, spreadsheet):
        storage = GoogleSheetsAuditStorage(client)
        await storage.get_recent_entries()
        spreadsheet.sheets["AuditLog"].fail_appends = True

        with pytest.raises(StorageError):
            await storage.append_entry(AuditEntryBuilder.transactions_exported(OWNER, 0))


class TestLedgerOverSheets:
    """The engines wired to the Sheets backend."""

    async def test_post_and_delete(self, client, spreadsheet):
        storages = LedgerStorages(
            transactions=GoogleSheetsTransactionStorage(client),
            categories=GoogleSheetsCategoryStorage(client),
            exchange_rates=GoogleSheetsExchangeRateStorage(client),
            audit=GoogleSheetsAuditStorage(client),
        )
        ledger = create_ledger_components(storages=storages, provider=StaticRateProvider())

        await ledger.categories.initialize_defaults(OWNER)
        index = await ledger.categories.index(OWNER)
        aws = index.resolve(TransactionType.EXPENSE, "Cloud Services", "AWS")

        result = await ledger.posting.import_transactions(OWNER, [{
            "日期": "2025/03/15",
            "类型": "支出",
            "一级分类": "Cloud Services",
            "二级分类": "AWS",
            "原始金额": "20",
            "币种": "USD",
        }])
        assert result.success == 1

        [tx] = await ledger.posting.list_transactions(OWNER)
        assert tx.category_id == aws.id
        assert tx.amount_cny == Decimal("144")
        assert len(spreadsheet.sheets["ExchangeRates"].rows) == 2

        await ledger.posting.delete(tx.id, OWNER)
        assert await ledger.posting.list_transactions(OWNER) == []

        actions = [e.action for e in await ledger.audit.recent_entries(OWNER)]
        assert AuditAction.DELETE_TRANSACTION in actions


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
