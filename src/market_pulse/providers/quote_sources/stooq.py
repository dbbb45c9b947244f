from __future__ import annotations

from typing import List, Optional

from loguru import logger

from ..errors import MarketDataError
from .base import PriceInfo, ProviderDescriptor, QuoteSource
from .parsers import parse_payload

STOOQ_DAILY_URL = "https://stooq.com/q/d/l/"
STOOQ_QUOTE_URL = "https://stooq.com/q/l/"
CSV_HEADERS = {"Accept": "text/csv, text/plain, */*"}


def stooq_symbol_variants(symbol: str) -> List[str]:
    """Spellings Stooq may know a symbol by, most specific first."""
    trimmed = symbol.strip()
    lower = trimmed.lower()
    candidates = [trimmed, lower]
    if trimmed.startswith("^"):
        candidates.extend([trimmed[1:], lower[1:], f"{lower[1:]}.us"])
    else:
        candidates.append(f"{lower}.us")

    variants: List[str] = []
    for candidate in candidates:
        candidate = candidate.strip()
        if candidate and candidate not in variants:
            variants.append(candidate)
    return variants


class StooqQuoteSource(QuoteSource):
    name = "stooq"

    async def get_quote(self, symbol: str) -> Optional[PriceInfo]:
        variants = stooq_symbol_variants(symbol)
        last_error: Optional[MarketDataError] = None

        for variant in variants:
            try:
                text = await self._fetch_text(STOOQ_DAILY_URL, params={"s": variant, "i": "d"}, headers=CSV_HEADERS)
            except MarketDataError as exc:
                last_error = exc
                continue
            info = parse_payload("stooq", text)
            if info is not None:
                return info

        if last_error is not None:
            logger.warning("Stooq lookup failed for {} (tried {}): {}", symbol, ", ".join(variants), last_error)
        return None

    async def get_latest_quote(self, symbol: str = "cl.f") -> Optional[PriceInfo]:
        """Single-row quote CSV; the change is measured against today's open."""
        params = {"s": symbol, "f": "sd2t2ohlcv", "h": "", "e": "csv"}
        text = await self._fetch_text(STOOQ_QUOTE_URL, params=params, headers=CSV_HEADERS)
        return parse_payload("stooq-quote", text)

    def latest_descriptor(self, symbol: str = "cl.f") -> ProviderDescriptor:
        async def _fetch() -> Optional[PriceInfo]:
            return await self.get_latest_quote(symbol)

        return ProviderDescriptor(name=f"stooq-quote:{symbol}", fetch=_fetch)
