from __future__ import annotations

from typing import Dict, Iterable, Optional

from .base import PriceInfo, QuoteSource
from .parsers import parse_payload

YAHOO_QUOTE_URL = "https://query1.finance.yahoo.com/v7/finance/quote"


class YahooQuoteSource(QuoteSource):
    name = "yahoo"

    async def get_quote(self, symbol: str) -> Optional[PriceInfo]:
        quotes = await self.get_quotes([symbol])
        return quotes.get(symbol)

    async def get_quotes(self, symbols: Iterable[str]) -> Dict[str, PriceInfo]:
        requested = list(dict.fromkeys(symbols))
        if not requested:
            return {}
        payload = await self._fetch_json(YAHOO_QUOTE_URL, params={"symbols": ",".join(requested)})
        return parse_payload(self.name, payload)
