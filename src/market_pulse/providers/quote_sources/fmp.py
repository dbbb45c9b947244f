from __future__ import annotations

from typing import Dict, Iterable, Optional
from urllib.parse import quote

from loguru import logger

from ..errors import UpstreamStatusError
from ..proxy_fetch import ProxyFetcher
from .base import PriceInfo, QuoteSource
from .parsers import parse_payload

FMP_QUOTE_URL = "https://financialmodelingprep.com/api/v3/quote/{symbols}"
FMP_DEMO_KEY = "demo"


class FmpQuoteSource(QuoteSource):
    """Financial Modeling Prep quotes, requested directly with an API key.

    Without a key the public ``demo`` tier is used and a failed request
    degrades to an empty result. The instrument catalogue only adds FMP when
    a key is configured, so the demo tier serves direct library callers.
    """

    name = "fmp"

    def __init__(self, fetcher: ProxyFetcher, api_key: Optional[str] = None) -> None:
        super().__init__(fetcher)
        trimmed = (api_key or "").strip()
        self._api_key = trimmed or FMP_DEMO_KEY
        self._uses_demo_key = not trimmed

    async def get_quote(self, symbol: str) -> Optional[PriceInfo]:
        quotes = await self.get_quotes([symbol])
        return quotes.get(symbol)

    async def get_quotes(self, symbols: Iterable[str]) -> Dict[str, PriceInfo]:
        requested = list(dict.fromkeys(symbols))
        if not requested:
            return {}

        url = FMP_QUOTE_URL.format(symbols=",".join(quote(symbol, safe="") for symbol in requested))
        response = await self._fetcher.direct(url, params={"apikey": self._api_key})
        if not response.is_success:
            if self._uses_demo_key:
                logger.warning(
                    "FMP demo key request failed with status {}; set FMP_API_KEY for reliable quotes",
                    response.status_code,
                )
                return {}
            raise UpstreamStatusError(self.name, response.status_code, url)

        return parse_payload(self.name, self._decode_json(response.text, url))
