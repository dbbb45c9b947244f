from __future__ import annotations

from typing import Optional

from .base import PriceInfo, QuoteSource
from .parsers import parse_payload

GATEIO_FUTURES_URL = "https://api.gateio.ws/api/v4/futures/usdt/tickers"


class GateIoQuoteSource(QuoteSource):
    """Gate.io USDT-margined perpetual futures tickers."""

    name = "gateio"

    async def get_quote(self, symbol: str) -> Optional[PriceInfo]:
        payload = await self._fetch_json(GATEIO_FUTURES_URL, params={"contract": symbol})
        return parse_payload(self.name, payload, symbol)
