"""
Decimal Arithmetic Layer

All monetary values in the engine are decimal.Decimal. Binary floats are
never used for money: a float handed to us is converted through str() first
so that 0.1 stays 0.1.

Precision rules:
- Currency amounts are presented with 2 fractional digits.
- Exchange rates are stored with up to 6 fractional digits.
- amount_cny is never rounded when stored. Rounding happens only for display.
"""

from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext
from enum import Enum
from typing import Union


DecimalLike = Union[Decimal, str, int, float]

AMOUNT_PLACES = 2
RATE_PLACES = 6

_AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_PLACES)
_RATE_QUANTUM = Decimal(1).scaleb(-RATE_PLACES)

# Wide enough that a product of two stored values is always exact
_EXACT_CONTEXT = Context(prec=60)


class Currency(str, Enum):
    """Supported currencies. CNY is the canonical reporting currency."""
    CNY = "CNY"
    USD = "USD"
    JPY = "JPY"


CANONICAL_CURRENCY = Currency.CNY

CURRENCY_SYMBOLS: dict[Currency, str] = {
    Currency.USD: "$",
    Currency.JPY: "¥",
    Currency.CNY: "¥",
}

CURRENCY_NAMES: dict[Currency, str] = {
    Currency.USD: "US Dollar",
    Currency.JPY: "Japanese Yen",
    Currency.CNY: "Chinese Yuan",
}


def parse_currency(code: str) -> Currency:
    """
    Map a currency code to Currency (case-insensitive).

    Raises ValueError for blank or unsupported codes.
    """
    normalized = (code or "").strip().upper()
    try:
        return Currency(normalized)
    except ValueError:
        raise ValueError(f"Unsupported currency: {normalized or '<blank>'}")


def to_decimal(value: DecimalLike) -> Decimal:
    """
    Convert a literal to Decimal without precision loss.

    Raises ValueError for None, blank strings, non-numeric text,
    NaN and infinities.
    """
    if value is None:
        raise ValueError("Value is required")
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, int):
        result = Decimal(value)
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            raise ValueError("Value is blank")
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"Not a number: {value!r}")

    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def is_blank(value: object) -> bool:
    """True for None and whitespace-only strings."""
    return value is None or (isinstance(value, str) and not value.strip())


def multiply(a: Decimal, b: Decimal) -> Decimal:
    """Exact product of two decimals."""
    with localcontext(_EXACT_CONTEXT):
        return a * b


def add(*values: Decimal) -> Decimal:
    """Exact sum; the empty sum is Decimal('0')."""
    total = Decimal("0")
    with localcontext(_EXACT_CONTEXT):
        for value in values:
            total += value
    return total


def percentage(part: Decimal, total: Decimal) -> Decimal:
    """part / total * 100, or 0 when total is zero."""
    if total == 0:
        return Decimal("0")
    with localcontext(_EXACT_CONTEXT):
        return part / total * 100


def quantize_amount(value: Decimal) -> Decimal:
    """Round a currency amount for presentation (2 places, half up)."""
    return value.quantize(_AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_rate(value: Decimal) -> Decimal:
    """Round an exchange rate to the stored precision (6 places, half up)."""
    return value.quantize(_RATE_QUANTUM, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal, currency: Currency = CANONICAL_CURRENCY) -> str:
    """Human-readable amount, e.g. '¥1,234.50'."""
    return f"{CURRENCY_SYMBOLS[currency]}{quantize_amount(value):,.2f}"
