from __future__ import annotations

from typing import Optional

from ..errors import MalformedResponseError
from .base import PriceInfo, QuoteSource
from .parsers import parse_payload

INVESTING_QUOTE_URL = "https://api.investing.com/api/financialdata/{instrument_id}"
INVESTING_HEADERS = {
    "Accept": "application/json, text/plain, */*",
    "X-Requested-With": "XMLHttpRequest",
}


class InvestingQuoteSource(QuoteSource):
    """Investing.com financial data keyed by numeric instrument id."""

    name = "investing"

    async def get_quote(self, symbol: str) -> Optional[PriceInfo]:
        url = INVESTING_QUOTE_URL.format(instrument_id=symbol)
        payload = await self._fetch_json(url, params={"locale": "ko_KR", "lang": "ko"}, headers=INVESTING_HEADERS)
        info = parse_payload(self.name, payload)
        if info is None:
            raise MalformedResponseError(f"Investing.com payload for {symbol} carried no quote fields")
        return info
