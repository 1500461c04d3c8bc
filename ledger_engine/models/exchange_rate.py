"""
Exchange Rate Models

A cached rate is a fact about one day: intraday variation is not modeled.
Rates are always "1 unit of from_currency = rate units of to_currency".
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ledger_engine.models.money import CANONICAL_CURRENCY, Currency


RateKey = tuple[date, Currency, Currency]

RATE_SOURCE_AUTO = "auto"
RATE_SOURCE_MANUAL = "manual"


def normalize_rate_date(value: Union[date, datetime]) -> date:
    """Reduce a date or datetime to day granularity."""
    if isinstance(value, datetime):
        return value.date()
    return value


class ExchangeRate(BaseModel):
    """A stored rate, unique per (rate_date, from_currency, to_currency)."""

    id: UUID = Field(default_factory=uuid4)
    rate_date: date
    from_currency: Currency
    to_currency: Currency = CANONICAL_CURRENCY
    rate: Decimal = Field(..., gt=0)
    source: Optional[str] = Field(
        default=None,
        description="'auto' when fetched from the provider, 'manual' for corrections"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('rate_date', mode='before')
    @classmethod
    def normalize_date(cls, v):
        return normalize_rate_date(v) if isinstance(v, (date, datetime)) else v

    @model_validator(mode='after')
    def validate_pair(self) -> 'ExchangeRate':
        if self.from_currency == self.to_currency:
            raise ValueError("Same-currency rates are never stored")
        return self

    @property
    def key(self) -> RateKey:
        return (self.rate_date, self.from_currency, self.to_currency)


class RateQuery(BaseModel):
    """Lookup key for the rate cache."""
    model_config = ConfigDict(frozen=True)

    rate_date: date
    from_currency: Currency
    to_currency: Currency = CANONICAL_CURRENCY

    @field_validator('rate_date', mode='before')
    @classmethod
    def normalize_date(cls, v):
        return normalize_rate_date(v) if isinstance(v, (date, datetime)) else v

    @property
    def key(self) -> RateKey:
        return (self.rate_date, self.from_currency, self.to_currency)
