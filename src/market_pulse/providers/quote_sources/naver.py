from __future__ import annotations

from typing import Optional

from .base import PriceInfo, QuoteSource
from .parsers import parse_payload

NAVER_REALTIME_URL = "https://polling.finance.naver.com/api/realtime"

NAVER_QUERIES = {
    "USDKRW": "SERVICE_ITEM:USD_KRW",
    "GOLD": "COMMODITY:CMDT_GC",
    "SILVER": "COMMODITY:CMDT_SI",
    "OIL": "COMMODITY:CMDT_CL",
}


class NaverQuoteSource(QuoteSource):
    """Naver Finance realtime polling feed (FX and commodity futures)."""

    name = "naver"

    async def get_quote(self, symbol: str) -> Optional[PriceInfo]:
        query = NAVER_QUERIES.get(symbol.upper(), symbol)
        payload = await self._fetch_json(NAVER_REALTIME_URL, params={"query": query})
        return parse_payload(self.name, payload)
