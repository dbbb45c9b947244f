"""Static reference values served when every live provider is unavailable."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from .news_schemas import NewsItem
from .quote_sources.base import PriceInfo
from .sentiment_schemas import FearGreedEntry

REFERENCE_EFFECTIVE_AT = datetime(2025, 3, 2, 21, 0, tzinfo=timezone.utc)

MARKET_NOTICE = "Live quotes are unavailable; showing reference values based on recent closing prices."
MARKET_PARTIAL_NOTICE = "Some quotes are reference values based on recent closing prices."
EXCHANGE_NOTICE = "Live exchange rate and oil feeds are unavailable; showing reference values based on recent closes."
FEAR_GREED_NOTICE = "Live fear & greed readings are unavailable; showing the most recent published values for reference."
NEWS_NOTICE = "Live news providers are unavailable; showing sample headlines."


@dataclass(frozen=True, slots=True)
class ReferenceFallbackEntry:
    price: Optional[float]
    change_percent: Optional[float]
    effective_at: datetime = REFERENCE_EFFECTIVE_AT

    def to_price_info(self) -> PriceInfo:
        return PriceInfo(price=self.price, change_percent=self.change_percent)


REFERENCE_QUOTES: Dict[str, ReferenceFallbackEntry] = {
    "usd_krw": ReferenceFallbackEntry(1332.45, -0.28),
    "wti": ReferenceFallbackEntry(78.92, 0.73),
    "nasdaq": ReferenceFallbackEntry(15882.35, 0.65),
    "dow": ReferenceFallbackEntry(38650.12, 0.42),
    "btc": ReferenceFallbackEntry(67850.0, 1.12),
    "eth": ReferenceFallbackEntry(3580.0, -0.45),
    "xrp": ReferenceFallbackEntry(0.52, 0.88),
    "bgsc": ReferenceFallbackEntry(0.183, -2.15),
}


def reference_quote(instrument: str) -> Optional[ReferenceFallbackEntry]:
    return REFERENCE_QUOTES.get(instrument)


def _daily_history(values: List[int], latest: datetime) -> List[FearGreedEntry]:
    return [
        FearGreedEntry(
            value=value,
            classification="Greed" if value > 52 else "Neutral",
            timestamp=latest - timedelta(days=offset),
        )
        for offset, value in enumerate(values)
    ]


_FEAR_GREED_HISTORY: Dict[str, List[FearGreedEntry]] = {
    "us-market": _daily_history(
        [68, 66, 62, 58, 55, 52, 48],
        datetime(2025, 3, 2, 14, 30, tzinfo=timezone.utc),
    ),
    "crypto": _daily_history(
        [72, 70, 67, 63, 58, 54, 49],
        datetime(2025, 3, 2, 0, 0, tzinfo=timezone.utc),
    ),
}


def reference_fear_greed_history(variant: str) -> List[FearGreedEntry]:
    return [entry.model_copy() for entry in _FEAR_GREED_HISTORY[variant]]


_REFERENCE_NEWS = [
    NewsItem(
        id="fallback-nyse-rebound",
        title="Wall Street closes higher as tech stocks rebound",
        summary="Dovish Fed remarks and strength in semiconductors lifted both the Nasdaq and the Dow.",
        url="https://www.cnbc.com/markets/",
        source="CNBC",
        published_at=datetime(2025, 3, 2, 21, 10, tzinfo=timezone.utc),
    ),
    NewsItem(
        id="fallback-treasury-yield",
        title="Treasury yields slip, improving sentiment for growth stocks",
        summary="The 10-year yield eased toward 4.1%, which analysts say has improved sentiment toward growth stocks.",
        url="https://www.bloomberg.com/markets",
        source="Bloomberg",
        published_at=datetime(2025, 3, 2, 19, 45, tzinfo=timezone.utc),
    ),
    NewsItem(
        id="fallback-bitcoin-range",
        title="Bitcoin holds its range around $67,000",
        summary="ETF inflows have slowed but institutional demand keeps bitcoin trading in a narrow band.",
        url="https://www.coindesk.com/markets/2025/03/02/",
        source="CoinDesk",
        published_at=datetime(2025, 3, 2, 17, 30, tzinfo=timezone.utc),
    ),
    NewsItem(
        id="fallback-eth-upgrade",
        title="Ether firms on network upgrade expectations",
        summary="Expectations for next quarter's Ethereum network upgrade are supporting investor sentiment.",
        url="https://www.theblock.co/latest",
        source="The Block",
        published_at=datetime(2025, 3, 2, 15, 20, tzinfo=timezone.utc),
    ),
]


def reference_news() -> List[NewsItem]:
    return [item.model_copy() for item in _REFERENCE_NEWS]
