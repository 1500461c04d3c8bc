"""
Transaction Models

These models define the strict schemas for ledger transactions and the
report projections computed from them.

CORE RULES:
1. Every transaction keeps the original amount AND its currency
2. Every transaction keeps the rate used on its day
3. amount_cny = original_amount * exchange_rate, always (computed, never stored independently)
4. A CNY transaction always has exchange_rate == 1

DESIGN DECISION: Transaction is a frozen model. The only way to change one
is PostingEngine.update, which builds a new validated copy.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)

from ledger_engine.models.money import (
    CANONICAL_CURRENCY,
    Currency,
    DecimalLike,
    add,
    multiply,
)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money flow."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


# Labels used by the import/export sheet format
TRANSACTION_TYPE_LABELS: dict[TransactionType, str] = {
    TransactionType.INCOME: "收入",
    TransactionType.EXPENSE: "支出",
}


# =============================================================================
# CORE TRANSACTION MODEL
# =============================================================================

class Transaction(BaseModel):
    """
    A posted transaction.

    CRITICAL: Only the PostingEngine creates these. By the time a Transaction
    exists, its category and rate have been validated.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )

    # Original figures
    original_amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount in the original currency"
    )
    currency: Currency = Field(
        ...,
        description="Original currency"
    )

    # Conversion
    exchange_rate: Decimal = Field(
        ...,
        gt=0,
        description="Rate from currency to CNY used for this transaction"
    )

    # Metadata
    type: TransactionType
    transaction_date: date = Field(
        ...,
        description="Day the transaction happened"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=500
    )
    notes: Optional[str] = Field(
        default=None,
        max_length=1000
    )

    # Relations
    category_id: UUID
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owner of the transaction"
    )

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @computed_field
    @property
    def amount_cny(self) -> Decimal:
        """Converted amount in the canonical currency (exact, unrounded)."""
        return multiply(self.original_amount, self.exchange_rate)

    @model_validator(mode='after')
    def validate_canonical_rate(self) -> 'Transaction':
        if self.currency == CANONICAL_CURRENCY and self.exchange_rate != 1:
            raise ValueError("Exchange rate must be 1 for CNY transactions")
        return self


class TransactionInput(BaseModel):
    """
    Caller-provided data for a new transaction.

    Amount and rate are accepted raw (string, number or Decimal) because
    turning them into money - and rejecting bad values - is the posting
    engine's job, with its own error kinds.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    original_amount: DecimalLike
    currency: Currency
    type: TransactionType
    transaction_date: date
    category_id: UUID
    user_id: str = Field(..., min_length=1)
    description: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)

    # Optional manual rate. Blank means "look it up".
    exchange_rate: Optional[DecimalLike] = None


class TransactionUpdate(BaseModel):
    """
    Partial update for an existing transaction.

    Only fields explicitly set are applied (see model_fields_set).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    original_amount: Optional[DecimalLike] = None
    currency: Optional[Currency] = None
    exchange_rate: Optional[DecimalLike] = None
    type: Optional[TransactionType] = None
    transaction_date: Optional[date] = None
    category_id: Optional[UUID] = None
    description: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @property
    def touches_rate(self) -> bool:
        """Currency, date or rate changed: the rate must be resolved again."""
        return bool(
            {"currency", "transaction_date", "exchange_rate"} & self.model_fields_set
        )

    @property
    def touches_category(self) -> bool:
        return bool({"category_id", "type"} & self.model_fields_set)


class TransactionFilters(BaseModel):
    """Filters for listing a user's transactions."""

    type: Optional[TransactionType] = None
    category_id: Optional[UUID] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    limit: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)

    def matches(self, transaction: Transaction) -> bool:
        if self.type and transaction.type != self.type:
            return False
        if self.category_id and transaction.category_id != self.category_id:
            return False
        if self.date_from and transaction.transaction_date < self.date_from:
            return False
        if self.date_to and transaction.transaction_date > self.date_to:
            return False
        return True


# =============================================================================
# REPORT PROJECTIONS (never persisted)
# =============================================================================

class TransactionSummary(BaseModel):
    """Totals for a period, all in CNY."""

    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    transaction_count: int = Field(default=0, ge=0)

    @computed_field
    @property
    def balance(self) -> Decimal:
        return add(self.total_income, -self.total_expense)


class CategorySummary(BaseModel):
    """One row of a category breakdown."""

    category_id: UUID
    category_name: str
    parent_name: Optional[str] = None
    amount: Decimal = Field(..., description="Sum of amount_cny")
    percentage: Decimal = Field(..., description="Share of the period total (0-100)")
    count: int = Field(..., ge=0)


class MonthKey(BaseModel):
    """A (year, month) pair a report can be requested for."""
    model_config = ConfigDict(frozen=True)

    year: int = Field(..., ge=1)
    month: int = Field(..., ge=1, le=12)


class MonthlyReport(BaseModel):
    """Everything the monthly report page shows."""

    year: int
    month: int
    summary: TransactionSummary
    expense_by_category: list[CategorySummary] = Field(default_factory=list)
    income_by_category: list[CategorySummary] = Field(default_factory=list)
    description: str = ""
