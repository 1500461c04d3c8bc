"""
Currency Conversion Service

Resolves the rate used to convert a transaction into CNY.

Lookup order for get_rate, first hit wins:
1. Same currency -> 1
2. Process-local memory tier
3. Durable rate cache
4. External provider (result written back to both tiers, source "auto")

resolve_rate adds the manual rate in front of the lookup and turns "no rate"
into ExchangeRateUnavailableError. There is never a default or stale
fallback: if no tier and no provider answers, the caller has to enter the
rate by hand.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

import structlog

from ledger_engine.errors import ExchangeRateUnavailableError, InvalidExchangeRateError
from ledger_engine.models.exchange_rate import (
    RATE_SOURCE_AUTO,
    RATE_SOURCE_MANUAL,
    ExchangeRate,
    RateQuery,
    normalize_rate_date,
)
from ledger_engine.models.money import (
    CANONICAL_CURRENCY,
    Currency,
    DecimalLike,
    is_blank,
    quantize_rate,
    to_decimal,
)
from ledger_engine.services.rates.cache import ExchangeRateCache, RateMemoryCache
from ledger_engine.services.rates.provider import ExchangeRateProvider


logger = structlog.get_logger()

ONE = Decimal("1")


def parse_manual_rate(value: DecimalLike) -> Decimal:
    """Validate a user-entered rate: numeric and strictly positive."""
    try:
        rate = to_decimal(value)
    except ValueError:
        raise InvalidExchangeRateError(
            f"Invalid exchange rate: {value!r}",
            value=str(value),
        )
    if rate <= 0:
        raise InvalidExchangeRateError(
            "Exchange rate must be greater than 0",
            value=str(value),
        )
    return rate


class CurrencyConversionService:
    """
    Two-tier cached rate lookup in front of an external provider.

    The provider is optional: without one, only cached and manual rates
    can be used.
    """

    def __init__(
        self,
        cache: ExchangeRateCache,
        provider: Optional[ExchangeRateProvider] = None,
        memory_cache: Optional[RateMemoryCache] = None,
    ):
        self._cache = cache
        self._provider = provider
        self._memory = memory_cache or RateMemoryCache()

    async def get_rate(
        self,
        rate_date: Union[date, datetime],
        from_currency: Currency,
        to_currency: Currency = CANONICAL_CURRENCY,
    ) -> Optional[Decimal]:
        """Rate for that day and pair, or None if nothing can supply one."""
        if from_currency == to_currency:
            return ONE

        day = normalize_rate_date(rate_date)
        key = (day, from_currency, to_currency)

        rate = self._memory.get(key)
        if rate is not None:
            return rate

        cached = await self._cache.find(day, from_currency, to_currency)
        if cached:
            self._memory.set(key, cached.rate)
            return cached.rate

        rate = await self._fetch_from_provider(from_currency, to_currency)
        if rate is None:
            return None

        await self._cache.upsert(day, from_currency, to_currency, rate, source=RATE_SOURCE_AUTO)
        self._memory.set(key, rate)
        logger.info(
            "exchange_rate_cached",
            rate_date=day.isoformat(),
            from_currency=from_currency.value,
            to_currency=to_currency.value,
            rate=str(rate),
        )
        return rate

    async def _fetch_from_provider(
        self,
        from_currency: Currency,
        to_currency: Currency,
    ) -> Optional[Decimal]:
        if self._provider is None:
            return None

        rates = await self._provider.fetch_latest_rates(from_currency)
        if not rates:
            return None

        rate = rates.get(to_currency.value)
        if rate is None or rate <= 0:
            logger.warning(
                "exchange_rate_missing_from_provider",
                from_currency=from_currency.value,
                to_currency=to_currency.value,
            )
            return None

        return quantize_rate(rate)

    async def resolve_rate(
        self,
        rate_date: Union[date, datetime],
        currency: Currency,
        manual_rate: Optional[DecimalLike] = None,
    ) -> Decimal:
        """
        Rate to CNY for a transaction.

        Args:
            rate_date: Transaction date
            currency: Transaction currency
            manual_rate: User-entered rate; blank or None means "look it up"

        Raises:
            InvalidExchangeRateError: Manual rate is not a positive number
            ExchangeRateUnavailableError: Nothing could supply a rate
        """
        if currency == CANONICAL_CURRENCY:
            return ONE

        if not is_blank(manual_rate):
            return parse_manual_rate(manual_rate)

        rate = await self.get_rate(rate_date, currency)
        if rate is None:
            day = normalize_rate_date(rate_date)
            raise ExchangeRateUnavailableError(
                f"Exchange rate for {currency.value} on {day.isoformat()} "
                "is unavailable; enter it manually",
                currency=currency.value,
                date=day.isoformat(),
            )
        return rate

    async def prefetch(self, queries: list[RateQuery]) -> int:
        """
        Load durable rates for many keys into the memory tier at once.

        Returns:
            Number of rates found
        """
        wanted = [q for q in queries if q.from_currency != q.to_currency]
        rates = await self._cache.find_many(wanted)
        for rate in rates:
            self._memory.set(rate.key, rate.rate)
        return len(rates)

    async def record_manual_rate(
        self,
        rate_date: Union[date, datetime],
        from_currency: Currency,
        rate: DecimalLike,
        to_currency: Currency = CANONICAL_CURRENCY,
    ) -> ExchangeRate:
        """Store a hand-entered correction for a day, replacing any cached rate."""
        value = parse_manual_rate(rate)
        stored = await self._cache.upsert(
            rate_date, from_currency, to_currency, value, source=RATE_SOURCE_MANUAL
        )
        self._memory.set(stored.key, stored.rate)
        logger.info(
            "exchange_rate_recorded",
            rate_date=stored.rate_date.isoformat(),
            from_currency=from_currency.value,
            to_currency=to_currency.value,
            rate=str(stored.rate),
        )
        return stored
