"""
Transaction Posting Engine

The only writer of transactions. Every path (manual create, update, import)
runs the same pipeline:

    validate amount -> validate category -> resolve rate -> persist -> audit

CORE GUARANTEES:
1. All-or-nothing: any failure before persistence leaves no row behind
2. amount_cny is exact (original_amount * exchange_rate, never rounded)
3. Every mutation is audited; an import is one entry for the whole batch

AUDIT POLICY:
- create / update / import / export: best-effort. The mutation is committed
  first; a failed audit write is logged and does not undo it.
- delete: strict. The pre-delete snapshot is written first, and if that
  fails the transaction is NOT deleted (AuditWriteError).
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from ledger_engine.audit import AuditLogger
from ledger_engine.categories import CategoryIndex, CategoryTree
from ledger_engine.errors import (
    CategoryNotFoundError,
    InvalidAmountError,
    LedgerError,
    MalformedRowError,
    TransactionNotFoundError,
    TypeMismatchError,
    UnauthorizedError,
)
from ledger_engine.models.category import Category
from ledger_engine.models.exchange_rate import RateQuery
from ledger_engine.models.io import ExportRow, ImportResult, ImportRow, ImportRowError
from ledger_engine.models.money import CANONICAL_CURRENCY, DecimalLike, to_decimal
from ledger_engine.models.transaction import (
    Transaction,
    TransactionFilters,
    TransactionInput,
    TransactionType,
    TransactionUpdate,
)
from ledger_engine.services.rates import CurrencyConversionService
from ledger_engine.services.storage import TransactionStorageInterface
from ledger_engine.validation import (
    ParsedImportRow,
    build_export_row,
    parse_import_row,
)


logger = structlog.get_logger()

# Header is row 1, so the first data row is row 2
FIRST_DATA_ROW = 2


def parse_amount(value: DecimalLike) -> Decimal:
    """Original amount: numeric and strictly positive."""
    try:
        amount = to_decimal(value)
    except ValueError:
        raise InvalidAmountError(f"Invalid amount: {value!r}", value=str(value))
    if amount <= 0:
        raise InvalidAmountError("Amount must be greater than 0", value=str(value))
    return amount


class PostingEngine:
    """Creates, updates, deletes, imports and exports transactions."""

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        categories: CategoryTree,
        conversion: CurrencyConversionService,
        audit: Optional[AuditLogger] = None,
        error_sample_size: int = 10,
    ):
        self._transactions = transaction_storage
        self._categories = categories
        self._conversion = conversion
        self._audit = audit or AuditLogger()
        self._error_sample_size = error_sample_size

    # =========================================================================
    # VALIDATION
    # =========================================================================

    async def _check_category(
        self,
        category_id: UUID,
        user_id: str,
        transaction_type: TransactionType,
    ) -> Category:
        category = await self._categories.find_by_id(category_id)
        if category is None:
            raise CategoryNotFoundError(
                f"Category {category_id} not found",
                category_id=category_id,
            )
        if category.user_id != user_id:
            raise UnauthorizedError(
                "Category belongs to another user",
                category_id=category_id,
            )
        if category.type != transaction_type:
            raise TypeMismatchError(
                f"Category type is {category.type.value}, "
                f"transaction type is {transaction_type.value}",
                category_type=category.type.value,
                transaction_type=transaction_type.value,
            )
        return category

    async def _owned(self, transaction_id: UUID, user_id: str) -> Transaction:
        transaction = await self._transactions.get_transaction_by_id(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(
                "Transaction not found",
                transaction_id=transaction_id,
            )
        if transaction.user_id != user_id:
            raise UnauthorizedError(
                "Transaction belongs to another user",
                transaction_id=transaction_id,
            )
        return transaction

    # =========================================================================
    # SINGLE TRANSACTION OPERATIONS
    # =========================================================================

    async def create(self, data: TransactionInput) -> Transaction:
        """
        Post a new transaction.

        Raises:
            InvalidAmountError, CategoryNotFoundError, UnauthorizedError,
            TypeMismatchError, InvalidExchangeRateError,
            ExchangeRateUnavailableError
        """
        transaction = await self._post(data)
        await self._audit.log_transaction_created(transaction)
        return transaction

    async def _post(self, data: TransactionInput) -> Transaction:
        """Validate, resolve the rate and persist. Writes no audit entry."""
        amount = parse_amount(data.original_amount)
        await self._check_category(data.category_id, data.user_id, data.type)
        rate = await self._conversion.resolve_rate(
            data.transaction_date,
            data.currency,
            data.exchange_rate,
        )

        transaction = Transaction(
            original_amount=amount,
            currency=data.currency,
            exchange_rate=rate,
            type=data.type,
            transaction_date=data.transaction_date,
            description=data.description or None,
            notes=data.notes or None,
            category_id=data.category_id,
            user_id=data.user_id,
        )

        await self._transactions.save_transaction(transaction)
        logger.info(
            "transaction_created",
            transaction_id=str(transaction.id),
            user_id=transaction.user_id,
            currency=transaction.currency.value,
            amount_cny=str(transaction.amount_cny),
        )
        return transaction

    async def update(
        self,
        transaction_id: UUID,
        user_id: str,
        changes: TransactionUpdate,
    ) -> Transaction:
        """
        Apply a partial update.

        The category is re-validated when category or type change, and the
        rate is resolved again when currency, date or rate change.
        """
        existing = await self._owned(transaction_id, user_id)
        updates: dict[str, Any] = changes.model_dump(exclude_unset=True)
        if not updates:
            return existing

        fields: dict[str, Any] = {}

        if "original_amount" in updates:
            fields["original_amount"] = parse_amount(updates["original_amount"])

        transaction_type = updates.get("type") or existing.type
        category_id = updates.get("category_id") or existing.category_id
        if changes.touches_category:
            await self._check_category(category_id, user_id, transaction_type)
            fields["type"] = transaction_type
            fields["category_id"] = category_id

        if changes.touches_rate:
            currency = updates.get("currency") or existing.currency
            transaction_date = updates.get("transaction_date") or existing.transaction_date
            fields["currency"] = currency
            fields["transaction_date"] = transaction_date
            fields["exchange_rate"] = await self._conversion.resolve_rate(
                transaction_date,
                currency,
                updates.get("exchange_rate"),
            )

        for text_field in ("description", "notes"):
            if text_field in updates:
                fields[text_field] = updates[text_field] or None

        current = existing.model_dump(exclude={"amount_cny"})
        changed = [name for name, value in fields.items() if current[name] != value]
        if not changed:
            return existing

        updated = Transaction(**{**current, **fields, "updated_at": datetime.utcnow()})
        await self._transactions.update_transaction(updated)
        logger.info(
            "transaction_updated",
            transaction_id=str(updated.id),
            changed_fields=changed,
        )

        await self._audit.log_transaction_updated(existing, updated, changed)
        return updated

    async def delete(self, transaction_id: UUID, user_id: str) -> None:
        """
        Hard-delete a transaction after auditing its full snapshot.

        Raises:
            TransactionNotFoundError, UnauthorizedError,
            AuditWriteError: the snapshot could not be stored; nothing deleted
        """
        transaction = await self._owned(transaction_id, user_id)

        # Strict: raises before anything is removed
        await self._audit.log_transaction_deleted(transaction, user_id)

        await self._transactions.delete_transaction(transaction.id)
        logger.info(
            "transaction_deleted",
            transaction_id=str(transaction.id),
            user_id=user_id,
        )

    async def get(self, transaction_id: UUID, user_id: str) -> Transaction:
        return await self._owned(transaction_id, user_id)

    async def list_transactions(
        self,
        user_id: str,
        filters: Optional[TransactionFilters] = None,
    ) -> list[Transaction]:
        return await self._transactions.list_transactions(user_id, filters)

    # =========================================================================
    # BATCH OPERATIONS
    # =========================================================================

    @staticmethod
    def _coerce_row(row: Union[ImportRow, dict]) -> ImportRow:
        if isinstance(row, ImportRow):
            return row
        return ImportRow.model_validate({
            key: "" if value is None else str(value)
            for key, value in row.items()
        })

    async def _prefetch_rates(self, parsed_rows: list[ParsedImportRow]) -> None:
        """Load every cached rate the batch will need in one storage call."""
        queries = {
            RateQuery(rate_date=p.transaction_date, from_currency=p.currency)
            for p in parsed_rows
            if p.currency != CANONICAL_CURRENCY and not p.exchange_rate
        }
        if queries:
            found = await self._conversion.prefetch(list(queries))
            logger.debug("import_rates_prefetched", wanted=len(queries), found=found)

    def _input_from_row(
        self,
        parsed: ParsedImportRow,
        index: CategoryIndex,
        user_id: str,
    ) -> TransactionInput:
        category = index.resolve(parsed.type, parsed.parent_category, parsed.child_category)
        if category is None:
            path = parsed.parent_category
            if parsed.child_category:
                path = f"{path} > {parsed.child_category}"
            raise MalformedRowError(f"Category not found: {path}", category=path)

        try:
            return TransactionInput(
                original_amount=parsed.original_amount,
                currency=parsed.currency,
                type=parsed.type,
                transaction_date=parsed.transaction_date,
                category_id=category.id,
                user_id=user_id,
                description=parsed.description,
                notes=parsed.notes,
                exchange_rate=parsed.exchange_rate,
            )
        except ValidationError as e:
            raise MalformedRowError(f"Invalid row: {e.errors()[0]['msg']}")

    async def import_transactions(
        self,
        user_id: str,
        rows: list[Union[ImportRow, dict]],
    ) -> ImportResult:
        """
        Import rows one at a time. A bad row is recorded and skipped.

        Domain failures (LedgerError) are per row; storage failures abort
        the batch, leaving earlier rows committed.
        """
        import_rows = [self._coerce_row(row) for row in rows]
        result = ImportResult()

        # Stage 1 for every row up front, so rates can be batch-loaded
        parsed: list[Union[ParsedImportRow, MalformedRowError]] = []
        for row in import_rows:
            try:
                parsed.append(parse_import_row(row))
            except MalformedRowError as e:
                parsed.append(e)

        await self._prefetch_rates([p for p in parsed if isinstance(p, ParsedImportRow)])
        index = await self._categories.index(user_id)

        for offset, (row, parsed_row) in enumerate(zip(import_rows, parsed)):
            row_number = offset + FIRST_DATA_ROW
            try:
                if isinstance(parsed_row, MalformedRowError):
                    raise parsed_row
                # The batch is audited once, below
                await self._post(self._input_from_row(parsed_row, index, user_id))
                result.success += 1
            except LedgerError as e:
                result.failed += 1
                result.errors.append(ImportRowError(
                    row=row_number,
                    error=e.message,
                    kind=e.kind,
                    data=row,
                ))

        logger.info(
            "transactions_imported",
            user_id=user_id,
            success=result.success,
            failed=result.failed,
        )

        await self._audit.log_transactions_imported(
            user_id=user_id,
            total_rows=len(import_rows),
            success_count=result.success,
            failed_count=result.failed,
            error_summary=[
                f"Row {e.row}: {e.error}"
                for e in result.errors[:self._error_sample_size]
            ],
        )
        return result

    async def export_transactions(self, user_id: str) -> list[ExportRow]:
        """All of an owner's transactions in the import layout, newest first."""
        transactions = await self._transactions.list_transactions(user_id)
        index = await self._categories.index(user_id)

        rows = [
            build_export_row(tx, *index.path_of(tx.category_id))
            for tx in transactions
        ]

        await self._audit.log_transactions_exported(user_id, len(rows))
        return rows
