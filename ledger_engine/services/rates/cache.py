"""
Exchange Rate Caches

Two tiers, both keyed by (day, from_currency, to_currency):

1. RateMemoryCache - process-local, time bounded, lost on restart
2. ExchangeRateCache - durable, backed by ExchangeRateStorageInterface

DESIGN DECISION: The durable cache never expires. A rate recorded for a
given day is a historical fact; it only changes through an explicit upsert
(e.g. a manual correction).
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional, Union

from ledger_engine.models.exchange_rate import (
    ExchangeRate,
    RateKey,
    RateQuery,
    normalize_rate_date,
)
from ledger_engine.models.money import CANONICAL_CURRENCY, Currency
from ledger_engine.services.storage.interface import ExchangeRateStorageInterface


class RateMemoryCache:
    """
    Process-local rate tier with a fixed time-to-live.

    A ttl of 0 disables the tier entirely.
    """

    def __init__(self, ttl_seconds: int = 24 * 60 * 60):
        self._ttl = timedelta(seconds=ttl_seconds)
        self._store: dict[RateKey, tuple[Decimal, datetime]] = {}

    @property
    def enabled(self) -> bool:
        return self._ttl > timedelta(0)

    def get(self, key: RateKey) -> Optional[Decimal]:
        entry = self._store.get(key)
        if not entry:
            return None

        rate, expires_at = entry
        if datetime.utcnow() > expires_at:
            del self._store[key]
            return None

        return rate

    def set(self, key: RateKey, rate: Decimal) -> None:
        if not self.enabled:
            return
        self._store[key] = (rate, datetime.utcnow() + self._ttl)

    def invalidate(self, key: RateKey) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


class ExchangeRateCache:
    """Durable rate cache. Day granularity, last write wins."""

    def __init__(self, storage: ExchangeRateStorageInterface):
        self._storage = storage

    async def upsert(
        self,
        rate_date: Union[date, datetime],
        from_currency: Currency,
        to_currency: Currency,
        rate: Decimal,
        source: Optional[str] = None,
    ) -> ExchangeRate:
        """Create or overwrite the rate for that day and pair."""
        return await self._storage.upsert_rate(
            ExchangeRate(
                rate_date=normalize_rate_date(rate_date),
                from_currency=from_currency,
                to_currency=to_currency,
                rate=rate,
                source=source,
            )
        )

    async def find(
        self,
        rate_date: Union[date, datetime],
        from_currency: Currency,
        to_currency: Currency = CANONICAL_CURRENCY,
    ) -> Optional[ExchangeRate]:
        return await self._storage.get_rate(
            RateQuery(
                rate_date=rate_date,
                from_currency=from_currency,
                to_currency=to_currency,
            )
        )

    async def find_many(self, queries: list[RateQuery]) -> list[ExchangeRate]:
        """Batched lookup in a single storage call; misses are omitted."""
        if not queries:
            return []
        return await self._storage.get_rates(queries)
