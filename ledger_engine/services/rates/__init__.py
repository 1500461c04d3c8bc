"""Exchange rate services: caches, providers and the conversion service."""

from ledger_engine.services.rates.cache import ExchangeRateCache, RateMemoryCache
from ledger_engine.services.rates.conversion import (
    CurrencyConversionService,
    parse_manual_rate,
)
from ledger_engine.services.rates.provider import (
    STATIC_RATES_TO_CNY,
    ExchangeRateApiProvider,
    ExchangeRateProvider,
    StaticRateProvider,
)

__all__ = [
    "CurrencyConversionService",
    "ExchangeRateApiProvider",
    "ExchangeRateCache",
    "ExchangeRateProvider",
    "RateMemoryCache",
    "STATIC_RATES_TO_CNY",
    "StaticRateProvider",
    "parse_manual_rate",
]
