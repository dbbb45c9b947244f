from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from ..config.settings import Config, LiveDataFlags
from .cascade import REFERENCE_LABEL, QuoteResolver, Resolution
from .errors import AllProvidersExhausted
from .instruments import MARKET_FEATURE, InstrumentSpec, QuoteSources, build_instruments
from .news import NewsService
from .proxy_fetch import ProxyConfig, ProxyFetcher
from .sentiment import SentimentService

STATUS_LOADING = "loading"
STATUS_OK = "ok"
STATUS_ERROR = "error"


@dataclass(frozen=True, slots=True)
class InstrumentQuote:
    instrument: str
    title: str
    price: Optional[float] = None
    change_percent: Optional[float] = None
    fallback_used: bool = False
    provider_label: Optional[str] = None
    status: str = STATUS_LOADING
    error: Optional[str] = None

    @classmethod
    def loading(cls, spec: InstrumentSpec) -> "InstrumentQuote":
        return cls(instrument=spec.id, title=spec.title)

    @classmethod
    def from_resolution(cls, spec: InstrumentSpec, resolution: Resolution) -> "InstrumentQuote":
        return cls(
            instrument=spec.id,
            title=spec.title,
            price=resolution.info.price,
            change_percent=resolution.info.change_percent,
            fallback_used=resolution.fallback_used,
            provider_label=resolution.provider_label,
            status=STATUS_OK,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instrument": self.instrument,
            "title": self.title,
            "price": self.price,
            "change_percent": self.change_percent,
            "fallback_used": self.fallback_used,
            "provider_label": self.provider_label,
            "status": self.status,
            "error": self.error,
        }


class MarketBoard:
    """Resolves every dashboard instrument concurrently."""

    def __init__(
        self,
        instruments: Sequence[InstrumentSpec],
        *,
        flags: Optional[LiveDataFlags] = None,
        resolver: Optional[QuoteResolver] = None,
    ) -> None:
        self._instruments = list(instruments)
        self._flags = flags or LiveDataFlags()
        self._resolver = resolver or QuoteResolver()

    @property
    def instruments(self) -> List[InstrumentSpec]:
        return list(self._instruments)

    def loading_snapshot(self) -> List[InstrumentQuote]:
        return [InstrumentQuote.loading(spec) for spec in self._instruments]

    def is_live(self, spec: InstrumentSpec) -> bool:
        if spec.feature == MARKET_FEATURE:
            return self._flags.market
        return self._flags.ticker

    async def quote(self, spec: InstrumentSpec) -> InstrumentQuote:
        fallback = spec.fallback.to_price_info() if spec.fallback is not None else None

        if not self.is_live(spec):
            if fallback is None:
                return InstrumentQuote(
                    instrument=spec.id,
                    title=spec.title,
                    status=STATUS_ERROR,
                    error="Live data disabled and no reference value available",
                )
            return InstrumentQuote.from_resolution(
                spec, Resolution(info=fallback, fallback_used=True, provider_label=REFERENCE_LABEL)
            )

        try:
            resolution = await self._resolver.resolve(
                spec.id,
                spec.descriptors,
                fallback,
                require_complete=spec.require_complete,
            )
        except AllProvidersExhausted as exc:
            return InstrumentQuote(instrument=spec.id, title=spec.title, status=STATUS_ERROR, error=str(exc))
        return InstrumentQuote.from_resolution(spec, resolution)

    async def snapshot(self) -> List[InstrumentQuote]:
        quotes = await asyncio.gather(*(self.quote(spec) for spec in self._instruments))
        fallback_count = sum(1 for quote in quotes if quote.fallback_used)
        error_count = sum(1 for quote in quotes if quote.status == STATUS_ERROR)
        logger.info(
            "Market snapshot resolved: {} instruments, {} on reference data, {} unavailable",
            len(quotes),
            fallback_count,
            error_count,
        )
        return list(quotes)


class MarketDataService:
    """Wires fetcher, sources, board and auxiliary feeds from a :class:`Config`."""

    def __init__(self, config: Config, *, fetcher: Optional[ProxyFetcher] = None) -> None:
        proxy_config = ProxyConfig.from_raw(
            config.market_data_proxy,
            retry_cloudflare=config.retry_cloudflare,
            timeout=config.timeout_seconds,
        )
        self.fetcher = fetcher or ProxyFetcher(proxy_config)
        self.sources = QuoteSources.create(
            self.fetcher,
            local_quotes_url=config.local_quotes_url,
            naver_enabled=config.naver_quotes_enabled,
            fmp_api_key=config.fmp_api_key,
            local_ttl=max(config.price_poll_seconds / 2, 1.0),
        )
        self.board = MarketBoard(build_instruments(self.sources), flags=config.live_data)
        self.sentiment = SentimentService(
            self.fetcher,
            us_market_url=config.us_fear_greed_url,
            live=config.live_data.sentiment,
        )
        self.news = NewsService(
            self.fetcher,
            fmp_api_key=config.fmp_api_key,
            alpha_vantage_api_key=config.alpha_vantage_api_key,
            live=config.live_data.news,
        )

    async def close(self) -> None:
        await self.fetcher.close()
