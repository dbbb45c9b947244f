from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .proxy_fetch import ProxyFetcher
from .quote_sources.base import ProviderDescriptor
from .quote_sources.binance import BinanceQuoteSource
from .quote_sources.fmp import FmpQuoteSource
from .quote_sources.fx import ExchangeRateHostSource, FawazCurrencySource
from .quote_sources.gateio import GateIoQuoteSource
from .quote_sources.investing import InvestingQuoteSource
from .quote_sources.local import LocalQuoteSource
from .quote_sources.metals_live import MetalsLiveSource
from .quote_sources.naver import NaverQuoteSource
from .quote_sources.stooq import StooqQuoteSource
from .quote_sources.yahoo import YahooQuoteSource
from .reference_data import ReferenceFallbackEntry, reference_quote

TICKER_FEATURE = "ticker"
MARKET_FEATURE = "market"


@dataclass(frozen=True, slots=True)
class InstrumentSpec:
    id: str
    title: str
    feature: str
    descriptors: Tuple[ProviderDescriptor, ...] = field(default_factory=tuple)
    fallback: Optional[ReferenceFallbackEntry] = None
    require_complete: bool = False


@dataclass(slots=True)
class QuoteSources:
    yahoo: YahooQuoteSource
    binance: BinanceQuoteSource
    gateio: GateIoQuoteSource
    stooq: StooqQuoteSource
    metals_live: MetalsLiveSource
    investing: InvestingQuoteSource
    exchange_rate_host: ExchangeRateHostSource
    fawaz: FawazCurrencySource
    local: Optional[LocalQuoteSource] = None
    naver: Optional[NaverQuoteSource] = None
    fmp: Optional[FmpQuoteSource] = None

    @classmethod
    def create(
        cls,
        fetcher: ProxyFetcher,
        *,
        local_quotes_url: Optional[str] = None,
        naver_enabled: bool = True,
        fmp_api_key: Optional[str] = None,
        local_ttl: float = 30.0,
    ) -> "QuoteSources":
        return cls(
            yahoo=YahooQuoteSource(fetcher),
            binance=BinanceQuoteSource(fetcher),
            gateio=GateIoQuoteSource(fetcher),
            stooq=StooqQuoteSource(fetcher),
            metals_live=MetalsLiveSource(fetcher),
            investing=InvestingQuoteSource(fetcher),
            exchange_rate_host=ExchangeRateHostSource(fetcher),
            fawaz=FawazCurrencySource(fetcher),
            local=LocalQuoteSource(fetcher, local_quotes_url, ttl=local_ttl) if local_quotes_url else None,
            naver=NaverQuoteSource(fetcher) if naver_enabled else None,
            fmp=FmpQuoteSource(fetcher, fmp_api_key) if fmp_api_key else None,
        )


def _ticker_head(sources: QuoteSources, local_symbol: str, naver_symbol: str) -> List[ProviderDescriptor]:
    head: List[ProviderDescriptor] = []
    if sources.local is not None:
        head.append(sources.local.descriptor(local_symbol))
    if sources.naver is not None:
        head.append(sources.naver.descriptor(naver_symbol))
    return head


def _with_fmp(sources: QuoteSources, descriptors: List[ProviderDescriptor], symbol: str) -> Tuple[ProviderDescriptor, ...]:
    if sources.fmp is not None:
        descriptors.append(sources.fmp.descriptor(symbol))
    return tuple(descriptors)


def build_instruments(sources: QuoteSources) -> List[InstrumentSpec]:
    """Instrument catalogue with provider cascades in priority order.

    Same-origin and Korean realtime feeds come first, then the primary
    public feed, then slower or less reliable secondary feeds.
    """
    return [
        InstrumentSpec(
            id="usd_krw",
            title="USD/KRW",
            feature=TICKER_FEATURE,
            descriptors=(
                *_ticker_head(sources, "USDKRW=X", "USDKRW"),
                sources.yahoo.descriptor("KRW=X"),
                sources.exchange_rate_host.descriptor("KRW"),
                sources.fawaz.descriptor("krw"),
            ),
            fallback=reference_quote("usd_krw"),
            require_complete=True,
        ),
        InstrumentSpec(
            id="wti",
            title="WTI Crude",
            feature=TICKER_FEATURE,
            descriptors=_with_fmp(
                sources,
                [
                    *_ticker_head(sources, "CL=F", "OIL"),
                    sources.yahoo.descriptor("CL=F"),
                    sources.stooq.latest_descriptor("cl.f"),
                    sources.stooq.descriptor("cl.f"),
                ],
                "CLUSD",
            ),
            fallback=reference_quote("wti"),
        ),
        InstrumentSpec(
            id="gold",
            title="Gold Spot",
            feature=TICKER_FEATURE,
            descriptors=_with_fmp(
                sources,
                [
                    *_ticker_head(sources, "GC=F", "GOLD"),
                    sources.yahoo.descriptor("GC=F"),
                    sources.metals_live.descriptor("gold"),
                    sources.investing.descriptor("8830"),
                ],
                "GCUSD",
            ),
        ),
        InstrumentSpec(
            id="silver",
            title="Silver Spot",
            feature=TICKER_FEATURE,
            descriptors=_with_fmp(
                sources,
                [
                    *_ticker_head(sources, "SI=F", "SILVER"),
                    sources.yahoo.descriptor("SI=F"),
                    sources.metals_live.descriptor("silver"),
                    sources.investing.descriptor("8836"),
                ],
                "SIUSD",
            ),
        ),
        InstrumentSpec(
            id="nasdaq",
            title="NASDAQ Composite",
            feature=MARKET_FEATURE,
            descriptors=_with_fmp(
                sources,
                [sources.yahoo.descriptor("^IXIC"), sources.stooq.descriptor("^IXIC")],
                "^IXIC",
            ),
            fallback=reference_quote("nasdaq"),
        ),
        InstrumentSpec(
            id="dow",
            title="Dow Jones Industrial Average",
            feature=MARKET_FEATURE,
            descriptors=_with_fmp(
                sources,
                [sources.yahoo.descriptor("^DJI"), sources.stooq.descriptor("^DJI")],
                "^DJI",
            ),
            fallback=reference_quote("dow"),
        ),
        *[
            InstrumentSpec(
                id=coin.lower(),
                title=f"{name} ({coin})",
                feature=MARKET_FEATURE,
                descriptors=(
                    sources.binance.descriptor(f"{coin}USDT"),
                    sources.gateio.descriptor(f"{coin}_USDT"),
                ),
                fallback=reference_quote(coin.lower()),
            )
            for coin, name in (("BTC", "Bitcoin"), ("ETH", "Ethereum"), ("XRP", "XRP"))
        ],
        InstrumentSpec(
            id="bgsc",
            title="BugsCoin Perpetual (BGSC)",
            feature=MARKET_FEATURE,
            descriptors=(sources.gateio.descriptor("BGSC_USDT"),),
            fallback=reference_quote("bgsc"),
        ),
    ]
