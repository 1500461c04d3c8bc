"""
External Exchange Rate Providers

DESIGN DECISION: A provider answers one question - "what are today's rates
from this currency?" - and returns None on ANY failure. It never raises and
never invents a fallback rate: deciding what to do without a rate is the
conversion service's job.

Implementations:
- ExchangeRateApiProvider: exchangerate-api.com v6 "latest" endpoint
- StaticRateProvider: fixed rates for development and tests
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledger_engine.config import ExchangeRateApiSettings, get_settings
from ledger_engine.models.money import Currency, quantize_rate, to_decimal


logger = structlog.get_logger()


class ExchangeRateProvider(ABC):
    """Source of current exchange rates."""

    @abstractmethod
    async def fetch_latest_rates(
        self,
        from_currency: Currency,
    ) -> Optional[dict[str, Decimal]]:
        """
        Latest rates from `from_currency` to every currency the provider knows.

        Returns:
            {currency_code: rate} or None if rates could not be obtained
        """
        pass


class ExchangeRateApiProvider(ExchangeRateProvider):
    """
    exchangerate-api.com client.

    GET {base_url}/{api_key}/latest/{FROM} returns
    {"result": "success", "conversion_rates": {"CNY": 7.2, ...}}.
    Numbers are parsed straight into Decimal.

    The free plan only serves the latest rates, so the rate for any day is
    "today's rate when first asked". The conversion service caches it per day.
    """

    def __init__(
        self,
        settings: Optional[ExchangeRateApiSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            settings: API settings, defaults to the environment
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._settings = settings or get_settings().exchange_rate_api
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._settings.api_key)

    def _latest_url(self, from_currency: Currency) -> str:
        base = self._settings.base_url.rstrip("/")
        return f"{base}/{self._settings.api_key}/latest/{from_currency.value}"

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _get(self, url: str) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self._settings.timeout_seconds,
            transport=self._transport,
        ) as client:
            return await client.get(url)

    async def fetch_latest_rates(
        self,
        from_currency: Currency,
    ) -> Optional[dict[str, Decimal]]:
        if not self.configured:
            logger.warning(
                "exchange_rate_api_key_missing",
                from_currency=from_currency.value,
            )
            return None

        try:
            response = await self._get(self._latest_url(from_currency))
        except httpx.HTTPError as e:
            logger.error(
                "exchange_rate_fetch_failed",
                from_currency=from_currency.value,
                error=str(e),
            )
            return None

        if response.status_code != 200:
            logger.error(
                "exchange_rate_api_error",
                from_currency=from_currency.value,
                status_code=response.status_code,
            )
            return None

        try:
            data = response.json(parse_float=Decimal)
        except ValueError:
            logger.error("exchange_rate_api_bad_json", from_currency=from_currency.value)
            return None

        if not isinstance(data, dict) or data.get("result") != "success":
            logger.error(
                "exchange_rate_api_unsuccessful",
                from_currency=from_currency.value,
                error_type=data.get("error-type") if isinstance(data, dict) else None,
            )
            return None

        conversion_rates = data.get("conversion_rates")
        if not isinstance(conversion_rates, dict):
            logger.error("exchange_rate_api_no_rates", from_currency=from_currency.value)
            return None

        rates: dict[str, Decimal] = {}
        for code, value in conversion_rates.items():
            if isinstance(value, bool):
                continue
            try:
                rates[code] = to_decimal(value)
            except ValueError:
                continue

        logger.info(
            "exchange_rates_fetched",
            from_currency=from_currency.value,
            currency_count=len(rates),
        )
        return rates


# 1 unit of currency = N CNY
STATIC_RATES_TO_CNY: dict[Currency, Decimal] = {
    Currency.CNY: Decimal("1"),
    Currency.USD: Decimal("7.2"),
    Currency.JPY: Decimal("0.05"),
}


class StaticRateProvider(ExchangeRateProvider):
    """
    Fixed development rates.

    Cross rates are derived through CNY and rounded to 6 places.
    """

    def __init__(self, rates_to_cny: Optional[dict[Currency, Decimal]] = None):
        self._rates = dict(rates_to_cny or STATIC_RATES_TO_CNY)
        self.calls = 0

    async def fetch_latest_rates(
        self,
        from_currency: Currency,
    ) -> Optional[dict[str, Decimal]]:
        self.calls += 1
        base = self._rates.get(from_currency)
        if base is None:
            return None
        return {
            currency.value: quantize_rate(base / rate)
            for currency, rate in self._rates.items()
        }
