from __future__ import annotations

import asyncio
from typing import Optional

from loguru import logger

from ...utils.numeric import percent_change
from ..errors import MarketDataError
from ..proxy_fetch import ProxyFetcher
from .base import PriceInfo, QuoteSource
from .parsers import parse_payload, previous_dataset_day

EXCHANGE_RATE_HOST_URL = "https://api.exchangerate.host/{day}"
FAWAZ_DATASET_URL = "https://cdn.jsdelivr.net/gh/fawazahmed0/currency-api@1/{day}/currencies/{base}/{quote}.json"


class ExchangeRateHostSource(QuoteSource):
    """exchangerate.host latest and previous-day rates for ``USD/<symbol>``."""

    name = "exchangerate-host"

    def __init__(self, fetcher: ProxyFetcher, base: str = "USD") -> None:
        super().__init__(fetcher)
        self._base = base.upper()

    async def get_quote(self, symbol: str) -> Optional[PriceInfo]:
        currency = symbol.upper()
        params = {"base": self._base, "symbols": currency}
        latest, previous = await asyncio.gather(
            self._fetch_json(EXCHANGE_RATE_HOST_URL.format(day="latest"), params=params),
            self._fetch_json(EXCHANGE_RATE_HOST_URL.format(day="yesterday"), params=params),
        )
        return parse_payload(self.name, latest, previous, currency)


class FawazCurrencySource(QuoteSource):
    """fawazahmed0 open currency dataset served from jsDelivr."""

    name = "fawaz"

    def __init__(self, fetcher: ProxyFetcher, base: str = "usd") -> None:
        super().__init__(fetcher)
        self._base = base.lower()

    async def get_quote(self, symbol: str) -> Optional[PriceInfo]:
        currency = symbol.lower()
        latest_payload = await self._fetch_json(self._url("latest", currency))
        latest_rate, dataset_day = parse_payload(self.name, latest_payload, currency)
        if latest_rate is None:
            return None

        previous_rate: Optional[float] = None
        if dataset_day is not None:
            try:
                previous_payload = await self._fetch_json(self._url(previous_dataset_day(dataset_day), currency))
            except MarketDataError as exc:
                logger.warning("Previous-day {} rate unavailable: {}", currency.upper(), exc)
            else:
                previous_rate, _ = parse_payload(self.name, previous_payload, currency)

        return PriceInfo(price=latest_rate, change_percent=percent_change(latest_rate, previous_rate))

    def _url(self, day: str, currency: str) -> str:
        return FAWAZ_DATASET_URL.format(day=day, base=self._base, quote=currency)
