"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a durable backend because:
1. The bookkeeper can read the ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (a small business ledger is fine)
- No transactions (we handle this with careful ordering)
- Limited query capabilities (we filter and aggregate in Python)

Every collection lives in its own worksheet with a header row. Decimals are
written as strings with value_input_option="RAW" so Sheets never turns them
into binary floats.
"""

import json
from datetime import date, datetime
from typing import Callable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledger_engine.config import GoogleSheetsSettings, get_settings
from ledger_engine.models.audit import AuditAction, AuditLogEntry
from ledger_engine.models.category import Category
from ledger_engine.models.exchange_rate import ExchangeRate, RateQuery
from ledger_engine.models.money import Currency, to_decimal
from ledger_engine.models.transaction import Transaction, TransactionType
from ledger_engine.services.storage.base import FilteringTransactionStorage
from ledger_engine.services.storage.interface import (
    AuditStorageInterface,
    CategoryStorageInterface,
    ConnectionError,
    DuplicateError,
    ExchangeRateStorageInterface,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "type",
    "transaction_date",
    "original_amount",
    "currency",
    "exchange_rate",
    "amount_cny",
    "category_id",
    "description",
    "notes",
    "created_at",
    "updated_at",
]

CATEGORY_COLUMNS = [
    "id",
    "user_id",
    "name",
    "type",
    "parent_id",
    "color",
    "icon",
    "created_at",
    "updated_at",
]

RATE_COLUMNS = [
    "id",
    "rate_date",
    "from_currency",
    "to_currency",
    "rate",
    "source",
    "created_at",
]

AUDIT_COLUMNS = [
    "id",
    "created_at",
    "action",
    "user_id",
    "entity_type",
    "entity_id",
    "details_json",
    "ip_address",
    "user_agent",
]


# Retry only on API hiccups (quota, 5xx); our own errors surface immediately
sheets_retry = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _cell_getter(row: list) -> Callable[..., str]:
    """Index into a sheet row, tolerating short rows and empty cells."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication, caches worksheets and retries the raw API calls.
    A spreadsheet object can be injected directly (tests, shared sessions).
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        spreadsheet: Optional[gspread.Spreadsheet] = None,
    ):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet = spreadsheet
        self._settings = settings or get_settings().google_sheets
        self._worksheets: dict[str, gspread.Worksheet] = {}

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet whose first row is `columns`."""
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            logger.info("worksheet_created", title=title)
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)

        self._worksheets[title] = sheet
        return sheet

    @sheets_retry
    def read_rows(self, sheet: gspread.Worksheet) -> list[list[str]]:
        """All data rows, header excluded, blank rows dropped."""
        return [row for row in sheet.get_all_values()[1:] if row and row[0]]

    @sheets_retry
    def append_row(self, sheet: gspread.Worksheet, row: list) -> None:
        sheet.append_row(row, value_input_option="RAW")

    @sheets_retry
    def replace_row(self, sheet: gspread.Worksheet, index: int, row: list) -> None:
        """Overwrite sheet row `index` (1-based, header is row 1)."""
        sheet.update(range_name=f"A{index}", values=[row], value_input_option="RAW")

    @sheets_retry
    def delete_row(self, sheet: gspread.Worksheet, index: int) -> None:
        sheet.delete_rows(index)

    def find_row_index(self, sheet: gspread.Worksheet, row_id: str) -> Optional[int]:
        """1-based sheet index of the row whose first cell is row_id."""
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] == row_id:
                return idx
        return None


class GoogleSheetsTransactionStorage(FilteringTransactionStorage):
    """
    Google Sheets implementation of transaction storage.

    amount_cny is written for human readers of the sheet; on read it is
    recomputed from original_amount and exchange_rate.

    Rows that no longer parse (hand edits in the sheet) are left out of every
    read: lists, lookups by id and report totals all exclude them, so the
    ledger treats such a row as missing until it is fixed in the sheet. Each
    read logs a warning per skipped row and sets `skipped_rows` to how many
    were left out.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self.skipped_rows = 0

    def _sheet(self) -> gspread.Worksheet:
        return self._client.worksheet(
            self._client.settings.transactions_sheet_name,
            TRANSACTION_COLUMNS,
        )

    def _transaction_to_row(self, tx: Transaction) -> list:
        return [
            str(tx.id),
            tx.user_id,
            tx.type.value,
            tx.transaction_date.isoformat(),
            str(tx.original_amount),
            tx.currency.value,
            str(tx.exchange_rate),
            str(tx.amount_cny),
            str(tx.category_id),
            tx.description or "",
            tx.notes or "",
            tx.created_at.isoformat(),
            tx.updated_at.isoformat(),
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        safe_get = _cell_getter(row)
        return Transaction(
            id=UUID(safe_get(0)),
            user_id=safe_get(1),
            type=TransactionType(safe_get(2)),
            transaction_date=date.fromisoformat(safe_get(3)),
            original_amount=to_decimal(safe_get(4)),
            currency=Currency(safe_get(5)),
            exchange_rate=to_decimal(safe_get(6)),
            category_id=UUID(safe_get(8)),
            description=safe_get(9) or None,
            notes=safe_get(10) or None,
            created_at=datetime.fromisoformat(safe_get(11)),
            updated_at=datetime.fromisoformat(safe_get(12)),
        )

    async def _all_transactions(self) -> list[Transaction]:
        try:
            rows = self._client.read_rows(self._sheet())
        except Exception as e:
            raise StorageError(f"Failed to read transactions: {e}")

        transactions = []
        for row in rows:
            try:
                transactions.append(self._row_to_transaction(row))
            except ValueError as e:
                # Hand-edited rows that no longer parse are skipped, not fatal
                logger.warning("transaction_row_skipped", row_id=row[0], error=str(e))
        self.skipped_rows = len(rows) - len(transactions)
        return transactions

    async def save_transaction(self, transaction: Transaction) -> bool:
        try:
            self._client.append_row(self._sheet(), self._transaction_to_row(transaction))
            return True
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def get_transaction_by_id(self, transaction_id: UUID) -> Optional[Transaction]:
        for tx in await self._all_transactions():
            if tx.id == transaction_id:
                return tx
        return None

    async def update_transaction(self, transaction: Transaction) -> bool:
        try:
            sheet = self._sheet()
            idx = self._client.find_row_index(sheet, str(transaction.id))
            if idx is None:
                raise NotFoundError(f"Transaction not found: {transaction.id}")
            self._client.replace_row(sheet, idx, self._transaction_to_row(transaction))
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        try:
            sheet = self._sheet()
            idx = self._client.find_row_index(sheet, str(transaction_id))
            if idx is None:
                return False
            self._client.delete_row(sheet, idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")


class GoogleSheetsCategoryStorage(CategoryStorageInterface):
    """Google Sheets implementation of category storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.worksheet(
            self._client.settings.categories_sheet_name,
            CATEGORY_COLUMNS,
        )

    def _category_to_row(self, category: Category) -> list:
        return [
            str(category.id),
            category.user_id,
            category.name,
            category.type.value,
            str(category.parent_id) if category.parent_id else "",
            category.color or "",
            category.icon or "",
            category.created_at.isoformat(),
            category.updated_at.isoformat(),
        ]

    def _row_to_category(self, row: list) -> Category:
        safe_get = _cell_getter(row)
        return Category(
            id=UUID(safe_get(0)),
            user_id=safe_get(1),
            name=safe_get(2),
            type=TransactionType(safe_get(3)),
            parent_id=UUID(safe_get(4)) if safe_get(4) else None,
            color=safe_get(5) or None,
            icon=safe_get(6) or None,
            created_at=datetime.fromisoformat(safe_get(7)),
            updated_at=datetime.fromisoformat(safe_get(8)),
        )

    async def _all_categories(self) -> list[Category]:
        try:
            rows = self._client.read_rows(self._sheet())
            return [self._row_to_category(row) for row in rows]
        except Exception as e:
            raise StorageError(f"Failed to read categories: {e}")

    async def _check_unique(self, category: Category) -> None:
        existing = await self.find_category(
            category.user_id, category.name, category.type, category.parent_id
        )
        if existing and existing.id != category.id:
            raise DuplicateError(f"Category already exists: {category.name}")

    async def save_category(self, category: Category) -> bool:
        await self._check_unique(category)
        try:
            self._client.append_row(self._sheet(), self._category_to_row(category))
            return True
        except Exception as e:
            raise StorageError(f"Failed to save category: {e}")

    async def get_category_by_id(self, category_id: UUID) -> Optional[Category]:
        for category in await self._all_categories():
            if category.id == category_id:
                return category
        return None

    async def list_categories(
        self,
        user_id: str,
        category_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        categories = [
            c for c in await self._all_categories()
            if c.user_id == user_id
            and (category_type is None or c.type == category_type)
        ]
        categories.sort(key=lambda c: (c.parent_id is not None, c.name))
        return categories

    async def list_children(self, parent_id: UUID) -> list[Category]:
        children = [c for c in await self._all_categories() if c.parent_id == parent_id]
        children.sort(key=lambda c: c.name)
        return children

    async def find_category(
        self,
        user_id: str,
        name: str,
        category_type: TransactionType,
        parent_id: Optional[UUID],
    ) -> Optional[Category]:
        for c in await self._all_categories():
            if (
                c.user_id == user_id
                and c.name == name
                and c.type == category_type
                and c.parent_id == parent_id
            ):
                return c
        return None

    async def update_category(self, category: Category) -> bool:
        await self._check_unique(category)
        try:
            sheet = self._sheet()
            idx = self._client.find_row_index(sheet, str(category.id))
            if idx is None:
                raise NotFoundError(f"Category not found: {category.id}")
            category = category.model_copy(update={"updated_at": datetime.utcnow()})
            self._client.replace_row(sheet, idx, self._category_to_row(category))
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update category: {e}")

    async def delete_category(self, category_id: UUID) -> bool:
        try:
            sheet = self._sheet()
            idx = self._client.find_row_index(sheet, str(category_id))
            if idx is None:
                return False
            self._client.delete_row(sheet, idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete category: {e}")


class GoogleSheetsExchangeRateStorage(ExchangeRateStorageInterface):
    """Durable rate cache in a worksheet, one row per (day, from, to)."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.worksheet(
            self._client.settings.exchange_rates_sheet_name,
            RATE_COLUMNS,
        )

    def _rate_to_row(self, rate: ExchangeRate) -> list:
        return [
            str(rate.id),
            rate.rate_date.isoformat(),
            rate.from_currency.value,
            rate.to_currency.value,
            str(rate.rate),
            rate.source or "",
            rate.created_at.isoformat(),
        ]

    def _row_to_rate(self, row: list) -> ExchangeRate:
        safe_get = _cell_getter(row)
        return ExchangeRate(
            id=UUID(safe_get(0)),
            rate_date=date.fromisoformat(safe_get(1)),
            from_currency=Currency(safe_get(2)),
            to_currency=Currency(safe_get(3)),
            rate=to_decimal(safe_get(4)),
            source=safe_get(5) or None,
            created_at=datetime.fromisoformat(safe_get(6)),
        )

    def _indexed_rates(self, sheet: gspread.Worksheet) -> list[tuple[int, ExchangeRate]]:
        rows = sheet.get_all_values()
        return [
            (idx, self._row_to_rate(row))
            for idx, row in enumerate(rows[1:], start=2)
            if row and row[0]
        ]

    async def upsert_rate(self, rate: ExchangeRate) -> ExchangeRate:
        try:
            sheet = self._sheet()
            for idx, existing in self._indexed_rates(sheet):
                if existing.key == rate.key:
                    rate = rate.model_copy(update={"id": existing.id})
                    self._client.replace_row(sheet, idx, self._rate_to_row(rate))
                    return rate
            self._client.append_row(sheet, self._rate_to_row(rate))
            return rate
        except Exception as e:
            raise StorageError(f"Failed to upsert exchange rate: {e}")

    async def get_rate(self, query: RateQuery) -> Optional[ExchangeRate]:
        rates = await self.get_rates([query])
        return rates[0] if rates else None

    async def get_rates(self, queries: list[RateQuery]) -> list[ExchangeRate]:
        keys = {q.key for q in queries}
        try:
            return [
                rate for _, rate in self._indexed_rates(self._sheet())
                if rate.key in keys
            ]
        except Exception as e:
            raise StorageError(f"Failed to read exchange rates: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit entries are append-only. Unlike other writes, a failed append is
    raised to the caller: AuditLogger decides whether that is fatal.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.worksheet(
            self._client.settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,
        )

    def _row_to_entry(self, row: list) -> AuditLogEntry:
        safe_get = _cell_getter(row)
        return AuditLogEntry(
            id=UUID(safe_get(0)),
            created_at=datetime.fromisoformat(safe_get(1)),
            action=AuditAction(safe_get(2)),
            user_id=safe_get(3),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            details=json.loads(safe_get(6)) if safe_get(6) else {},
            ip_address=safe_get(7) or None,
            user_agent=safe_get(8) or None,
        )

    async def _all_entries(self) -> list[AuditLogEntry]:
        try:
            rows = self._client.read_rows(self._sheet())
            entries = [self._row_to_entry(row) for row in rows]
        except Exception as e:
            raise StorageError(f"Failed to get audit entries: {e}")
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries

    async def append_entry(self, entry: AuditLogEntry) -> bool:
        try:
            self._client.append_row(self._sheet(), entry.to_sheets_row())
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit entry: {e}")

    async def get_entry_by_id(self, entry_id: UUID) -> Optional[AuditLogEntry]:
        for entry in await self._all_entries():
            if entry.id == entry_id:
                return entry
        return None

    async def get_entries_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditLogEntry]:
        return [
            e for e in await self._all_entries()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_entries_by_action(
        self,
        action: AuditAction,
        limit: int = 100,
    ) -> list[AuditLogEntry]:
        return [e for e in await self._all_entries() if e.action == action][:limit]

    async def get_recent_entries(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditLogEntry]:
        return [
            e for e in await self._all_entries()
            if user_id is None or e.user_id == user_id
        ][:limit]
