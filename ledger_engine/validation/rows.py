"""
Import/Export Row Validation

DESIGN DECISION: Import validation happens in two distinct stages:

STAGE 1 - ROW PARSING (this module):
- Required field presence
- Date, type and currency formats
- Produces a ParsedImportRow or raises MalformedRowError
- Needs no storage access

STAGE 2 - POSTING (PostingEngine):
- Category lookup by name
- Amount and rate validation
- Rate resolution and persistence
- The exact same checks as a manual create

IMPORTANT: Parsing NEVER silently fixes data. A row that cannot be read
as written is rejected with a message naming the offending value.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel

from ledger_engine.errors import MalformedRowError
from ledger_engine.models.io import ExportRow, ImportRow
from ledger_engine.models.money import Currency, parse_currency, quantize_amount
from ledger_engine.models.transaction import (
    TRANSACTION_TYPE_LABELS,
    Transaction,
    TransactionType,
)


DATE_FORMATS = ["%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d"]

# Both the enum values and the sheet labels are accepted
TYPE_ALIASES: dict[str, TransactionType] = {
    **{t.value: t for t in TransactionType},
    **{label: t for t, label in TRANSACTION_TYPE_LABELS.items()},
}


class ParsedImportRow(BaseModel):
    """An import row whose formats are valid. Amount and rate stay raw."""

    transaction_date: date
    type: TransactionType
    parent_category: str
    child_category: Optional[str] = None
    original_amount: str
    currency: Currency
    exchange_rate: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None


def parse_row_date(value: str) -> date:
    """Parse YYYY-MM-DD, YYYY/MM/DD or YYYY.MM.DD."""
    text = value.strip()
    if not text:
        raise MalformedRowError("Date is required")

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    raise MalformedRowError(f"Invalid date: {text}", value=text)


def parse_row_type(value: str) -> TransactionType:
    text = value.strip()
    transaction_type = TYPE_ALIASES.get(text.upper()) or TYPE_ALIASES.get(text)
    if transaction_type is None:
        raise MalformedRowError(
            f'Invalid type: {text or "<blank>"}, expected "收入"/"支出" or INCOME/EXPENSE',
            value=text,
        )
    return transaction_type


def parse_row_currency(value: str) -> Currency:
    try:
        return parse_currency(value)
    except ValueError as e:
        raise MalformedRowError(str(e), value=value)


def parse_import_row(row: ImportRow) -> ParsedImportRow:
    """
    Stage 1 of import: check the row's formats.

    Checked in sheet column order so the first problem reported is the
    leftmost one.

    Raises:
        MalformedRowError: with a message describing the first problem
    """
    transaction_date = parse_row_date(row.date)
    transaction_type = parse_row_type(row.type)

    if not row.parent_category:
        raise MalformedRowError("Parent category is required")

    if not row.original_amount:
        raise MalformedRowError("Original amount is required")

    currency = parse_row_currency(row.currency)

    return ParsedImportRow(
        transaction_date=transaction_date,
        type=transaction_type,
        parent_category=row.parent_category,
        child_category=row.child_category or None,
        original_amount=row.original_amount,
        currency=currency,
        exchange_rate=row.exchange_rate or None,
        description=row.description or None,
        notes=row.notes or None,
    )


def build_export_row(
    transaction: Transaction,
    parent_category: str,
    child_category: str = "",
) -> ExportRow:
    """Flatten a transaction into the sheet layout that import reads back."""
    return ExportRow(
        date=transaction.transaction_date.isoformat(),
        type=TRANSACTION_TYPE_LABELS[transaction.type],
        parent_category=parent_category,
        child_category=child_category,
        description=transaction.description or "",
        original_amount=str(transaction.original_amount),
        currency=transaction.currency.value,
        exchange_rate=str(transaction.exchange_rate),
        amount_cny=str(quantize_amount(transaction.amount_cny)),
        notes=transaction.notes or "",
    )
