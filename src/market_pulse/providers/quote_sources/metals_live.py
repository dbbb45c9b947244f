from __future__ import annotations

from typing import Optional

from .base import PriceInfo, QuoteSource
from .parsers import parse_payload

METALS_LIVE_URL = "https://api.metals.live/v1/spot/{metal}"


class MetalsLiveSource(QuoteSource):
    name = "metals-live"

    async def get_quote(self, symbol: str) -> Optional[PriceInfo]:
        metal = symbol.lower()
        url = METALS_LIVE_URL.format(metal=metal)
        payload = await self._fetch_json(url)
        if payload is None:
            return None
        return parse_payload(self.name, payload, metal)
