from __future__ import annotations

import json
from typing import Dict, Iterable, Optional

import httpx
from loguru import logger

from .base import PriceInfo, QuoteSource
from .parsers import parse_payload

BINANCE_TICKER_URL = "https://api.binance.com/api/v3/ticker/24hr"


class BinanceQuoteSource(QuoteSource):
    name = "binance"

    async def get_quote(self, symbol: str) -> Optional[PriceInfo]:
        quotes = await self.get_quotes([symbol])
        return quotes.get(symbol.upper())

    async def get_quotes(self, symbols: Iterable[str]) -> Dict[str, PriceInfo]:
        pairs = [symbol.upper() for symbol in symbols]
        if not pairs:
            return {}
        params = {"symbols": json.dumps(pairs, separators=(",", ":"))}

        # Binance usually allows direct access; relays are only the second try.
        try:
            response = await self._fetcher.direct(BINANCE_TICKER_URL, params=params)
        except httpx.HTTPError as exc:
            logger.warning("Binance direct request failed, retrying through proxies: {}", exc)
        else:
            if response.is_success:
                return parse_payload(self.name, self._decode_json(response.text, BINANCE_TICKER_URL))
            logger.warning("Binance direct request returned status {}", response.status_code)

        payload = await self._fetch_json(BINANCE_TICKER_URL, params=params)
        return parse_payload(self.name, payload)
