from __future__ import annotations

from typing import Dict, Iterable, Optional

from loguru import logger

from ..proxy_fetch import ProxyFetcher
from ..shared_payload import SharedPayload
from .base import PriceInfo, QuoteSource
from .parsers import parse_payload


class LocalQuoteSource(QuoteSource):
    """Batch endpoint served next to the dashboard (``/api/quotes`` style).

    One request per poll window answers every instrument that asks, so the
    batch is held in a :class:`SharedPayload`. The endpoint is same-origin
    and is never routed through relays.
    """

    name = "local"

    def __init__(self, fetcher: ProxyFetcher, url: str, *, ttl: float = 30.0) -> None:
        super().__init__(fetcher)
        self._url = url
        self._batch: SharedPayload[Dict[str, PriceInfo]] = SharedPayload(self._load, ttl=ttl, name="local quotes")

    async def get_quote(self, symbol: str) -> Optional[PriceInfo]:
        quotes = await self._batch.get()
        return quotes.get(symbol)

    async def get_quotes(self, symbols: Iterable[str]) -> Dict[str, PriceInfo]:
        quotes = await self._batch.get()
        return {symbol: quotes[symbol] for symbol in symbols if symbol in quotes}

    def invalidate(self) -> None:
        self._batch.invalidate()

    async def _load(self) -> Dict[str, PriceInfo]:
        response = await self._fetcher.direct(self._url, headers={"Cache-Control": "no-store"})
        self._raise_for_status(response)
        quotes = parse_payload(self.name, self._decode_json(response.text, self._url))
        logger.debug("Local quote proxy returned {} symbols", len(quotes))
        return quotes
