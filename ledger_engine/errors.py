"""
Domain Errors for the Ledger Engine

Every business-rule failure raised by the engine is a LedgerError.
Each error carries an ErrorKind so callers (page/API layer) can branch on
the kind instead of matching class names or message strings.

Storage/infrastructure failures are NOT domain errors - they live in
ledger_engine.services.storage.interface (StorageError and friends).
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Finite set of failure kinds the engine reports."""
    # Posting
    INVALID_AMOUNT = "invalid_amount"
    CATEGORY_NOT_FOUND = "category_not_found"
    UNAUTHORIZED = "unauthorized"
    TYPE_MISMATCH = "type_mismatch"
    TRANSACTION_NOT_FOUND = "transaction_not_found"

    # Category tree mutations
    DUPLICATE_CATEGORY = "duplicate_category"
    HAS_CHILDREN = "has_children"
    CATEGORY_IN_USE = "category_in_use"
    CATEGORY_TOO_DEEP = "category_too_deep"

    # Rates
    EXCHANGE_RATE_UNAVAILABLE = "exchange_rate_unavailable"
    INVALID_EXCHANGE_RATE = "invalid_exchange_rate"

    # Import
    MALFORMED_ROW = "malformed_row"

    # Audit
    AUDIT_WRITE_FAILED = "audit_write_failed"


class LedgerError(Exception):
    """Base exception for all domain failures."""

    kind: ErrorKind

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict:
        """Serializable form for API responses and audit details."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "context": {k: str(v) for k, v in self.context.items()},
        }


class InvalidAmountError(LedgerError):
    """Amount is missing, non-numeric or not greater than zero."""
    kind = ErrorKind.INVALID_AMOUNT


class CategoryNotFoundError(LedgerError):
    kind = ErrorKind.CATEGORY_NOT_FOUND


class UnauthorizedError(LedgerError):
    """The caller does not own the category/transaction it referenced."""
    kind = ErrorKind.UNAUTHORIZED


class TypeMismatchError(LedgerError):
    """Category type and transaction (or parent category) type differ."""
    kind = ErrorKind.TYPE_MISMATCH


class TransactionNotFoundError(LedgerError):
    kind = ErrorKind.TRANSACTION_NOT_FOUND


class DuplicateCategoryError(LedgerError):
    kind = ErrorKind.DUPLICATE_CATEGORY


class HasChildrenError(LedgerError):
    kind = ErrorKind.HAS_CHILDREN


class CategoryInUseError(LedgerError):
    kind = ErrorKind.CATEGORY_IN_USE


class CategoryTooDeepError(LedgerError):
    """Only two levels (parent/child) are supported."""
    kind = ErrorKind.CATEGORY_TOO_DEEP


class ExchangeRateUnavailableError(LedgerError):
    """No rate could be resolved by any step of the rate policy."""
    kind = ErrorKind.EXCHANGE_RATE_UNAVAILABLE


class InvalidExchangeRateError(LedgerError):
    """A caller-supplied rate is non-numeric or not greater than zero."""
    kind = ErrorKind.INVALID_EXCHANGE_RATE


class MalformedRowError(LedgerError):
    """A single import row violates parsing or lookup rules."""
    kind = ErrorKind.MALFORMED_ROW


class AuditWriteError(LedgerError):
    """A required audit entry could not be stored."""
    kind = ErrorKind.AUDIT_WRITE_FAILED
