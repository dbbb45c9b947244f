"""Tests for the HTTP-backed quote sources."""

import asyncio
import json

import httpx
import pytest

from market_pulse.providers.errors import MalformedResponseError, UpstreamStatusError
from market_pulse.providers.proxy_fetch import ProxyConfig
from market_pulse.providers.quote_sources.base import PriceInfo
from market_pulse.providers.quote_sources.binance import BinanceQuoteSource
from market_pulse.providers.quote_sources.fmp import FmpQuoteSource
from market_pulse.providers.quote_sources.fx import ExchangeRateHostSource, FawazCurrencySource
from market_pulse.providers.quote_sources.gateio import GateIoQuoteSource
from market_pulse.providers.quote_sources.investing import InvestingQuoteSource
from market_pulse.providers.quote_sources.local import LocalQuoteSource
from market_pulse.providers.quote_sources.naver import NaverQuoteSource
from market_pulse.providers.quote_sources.stooq import StooqQuoteSource, stooq_symbol_variants
from market_pulse.providers.quote_sources.yahoo import YahooQuoteSource

BINANCE_PAYLOAD = [{"symbol": "BTCUSDT", "lastPrice": "67850.00", "priceChangePercent": "1.12"}]


def test_stooq_symbol_variants():
    assert stooq_symbol_variants("^IXIC") == ["^IXIC", "^ixic", "IXIC", "ixic", "ixic.us"]
    assert stooq_symbol_variants("cl.f") == ["cl.f", "cl.f.us"]


@pytest.mark.asyncio
class TestYahooAndNaver:
    async def test_yahoo_batch_request(self, make_fetcher):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.params["symbols"])
            return httpx.Response(
                200,
                json={"quoteResponse": {"result": [{"symbol": "^IXIC", "regularMarketPrice": 100, "regularMarketChangePercent": 1}]}},
            )

        source = YahooQuoteSource(make_fetcher(handler))
        quotes = await source.get_quotes(["^IXIC", "^DJI", "^IXIC"])

        assert seen == ["^IXIC,^DJI"]
        assert quotes == {"^IXIC": PriceInfo(price=100, change_percent=1)}

    async def test_non_success_status_raises(self, make_fetcher):
        source = YahooQuoteSource(make_fetcher(lambda request: httpx.Response(401)))
        with pytest.raises(UpstreamStatusError) as excinfo:
            await source.get_quote("^IXIC")
        assert excinfo.value.status == 401
        assert excinfo.value.provider == "yahoo"

    async def test_naver_maps_symbol_to_query(self, make_fetcher):
        queries = []

        def handler(request: httpx.Request) -> httpx.Response:
            queries.append(request.url.params["query"])
            return httpx.Response(200, json={"result": {"areas": [{"datas": [{"nv": "2,050.5", "cr": "0.4"}]}]}})

        info = await NaverQuoteSource(make_fetcher(handler)).get_quote("gold")
        assert queries == ["COMMODITY:CMDT_GC"]
        assert info == PriceInfo(price=2050.5, change_percent=0.4)

    async def test_undecodable_body_yields_nothing(self, make_fetcher):
        source = NaverQuoteSource(make_fetcher(lambda request: httpx.Response(200, text="<html>")))
        assert await source.get_quote("USDKRW") is None


@pytest.mark.asyncio
class TestCryptoSources:
    async def test_binance_direct_success(self, make_fetcher):
        symbols = []

        def handler(request: httpx.Request) -> httpx.Response:
            symbols.append(request.url.params["symbols"])
            return httpx.Response(200, json=BINANCE_PAYLOAD)

        info = await BinanceQuoteSource(make_fetcher(handler)).get_quote("btcusdt")
        assert info == PriceInfo(price=67850.0, change_percent=1.12)
        assert json.loads(symbols[0]) == ["BTCUSDT"]

    async def test_binance_falls_back_to_relays(self, make_fetcher):
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            if request.url.host == "api.binance.com":
                return httpx.Response(451)
            return httpx.Response(200, json=BINANCE_PAYLOAD)

        fetcher = make_fetcher(handler, ProxyConfig.from_raw("https://relay.test/?"))
        info = await BinanceQuoteSource(fetcher).get_quote("BTCUSDT")

        assert info.price == 67850.0
        assert hosts == ["api.binance.com", "relay.test"]

    async def test_binance_direct_transport_error_falls_back(self, make_fetcher):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.host)
            if len(calls) == 1:
                raise httpx.ConnectError("blocked", request=request)
            return httpx.Response(200, json=BINANCE_PAYLOAD)

        info = await BinanceQuoteSource(make_fetcher(handler)).get_quote("BTCUSDT")
        assert info.change_percent == 1.12
        assert len(calls) == 2

    async def test_gateio_passes_contract(self, make_fetcher):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["contract"] == "BGSC_USDT"
            return httpx.Response(200, json=[{"contract": "BGSC_USDT", "last": "0.183", "change_percentage": "-2.15"}])

        info = await GateIoQuoteSource(make_fetcher(handler)).get_quote("BGSC_USDT")
        assert info == PriceInfo(price=0.183, change_percent=-2.15)


@pytest.mark.asyncio
class TestStooq:
    async def test_walks_symbol_variants(self, make_fetcher):
        tried = []

        def handler(request: httpx.Request) -> httpx.Response:
            symbol = request.url.params["s"]
            tried.append(symbol)
            if symbol == "^IXIC":
                return httpx.Response(200, text="No data")
            if symbol == "^ixic":
                return httpx.Response(404)
            return httpx.Response(200, text="Date,Open,High,Low,Close\n2025-02-27,1,1,1,100\n2025-02-28,1,1,1,101\n")

        info = await StooqQuoteSource(make_fetcher(handler)).get_quote("^IXIC")

        assert tried == ["^IXIC", "^ixic", "IXIC"]
        assert info.price == 101.0
        assert info.change_percent == pytest.approx(1.0)

    async def test_every_variant_failing_yields_nothing(self, make_fetcher):
        source = StooqQuoteSource(make_fetcher(lambda request: httpx.Response(404)))
        assert await source.get_quote("^DJI") is None

    async def test_latest_quote_csv(self, make_fetcher):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/q/l/"
            assert request.headers["accept"].startswith("text/csv")
            return httpx.Response(200, text="Symbol,Date,Time,Open,High,Low,Close\nCL.F,2025-03-02,21:00,80,81,79,80.8\n")

        source = StooqQuoteSource(make_fetcher(handler))
        info = await source.get_latest_quote("cl.f")
        assert info.price == pytest.approx(80.8)
        assert info.change_percent == pytest.approx(1.0)
        assert source.latest_descriptor("cl.f").name == "stooq-quote:cl.f"


@pytest.mark.asyncio
class TestExchangeRates:
    async def test_exchange_rate_host_compares_latest_with_yesterday(self, make_fetcher):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["symbols"] == "KRW"
            rate = 1320 if request.url.path == "/latest" else 1300
            return httpx.Response(200, json={"rates": {"KRW": rate}})

        info = await ExchangeRateHostSource(make_fetcher(handler)).get_quote("krw")
        assert info.price == 1320.0
        assert info.change_percent == pytest.approx(20 / 1300 * 100)

    async def test_fawaz_reads_previous_dataset_day(self, make_fetcher):
        paths = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            if "/latest/" in request.url.path:
                return httpx.Response(200, json={"date": "2025-03-02", "krw": 1331.2})
            return httpx.Response(200, json={"date": "2025-03-01", "krw": 1320})

        info = await FawazCurrencySource(make_fetcher(handler)).get_quote("KRW")

        assert paths[1].endswith("/2025-03-01/currencies/usd/krw.json")
        assert info.price == 1331.2
        assert info.change_percent == pytest.approx((1331.2 - 1320) / 1320 * 100)

    async def test_fawaz_without_previous_day_keeps_price(self, make_fetcher):
        def handler(request: httpx.Request) -> httpx.Response:
            if "/latest/" in request.url.path:
                return httpx.Response(200, json={"date": "2025-03-02", "krw": 1331.2})
            return httpx.Response(404)

        info = await FawazCurrencySource(make_fetcher(handler)).get_quote("krw")
        assert info == PriceInfo(price=1331.2)

    async def test_fawaz_without_rate(self, make_fetcher):
        source = FawazCurrencySource(make_fetcher(lambda request: httpx.Response(200, json={"date": "2025-03-02"})))
        assert await source.get_quote("krw") is None


@pytest.mark.asyncio
class TestFmp:
    async def test_sends_api_key(self, make_fetcher):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["apikey"] == "secret"
            return httpx.Response(200, json=[{"symbol": "GCUSD", "price": 2050, "changesPercentage": 0.3}])

        info = await FmpQuoteSource(make_fetcher(handler), api_key="secret").get_quote("GCUSD")
        assert info == PriceInfo(price=2050, change_percent=0.3)

    async def test_demo_key_failure_is_empty(self, make_fetcher):
        keys = []

        def handler(request: httpx.Request) -> httpx.Response:
            keys.append(request.url.params["apikey"])
            return httpx.Response(401)

        source = FmpQuoteSource(make_fetcher(handler), api_key="  ")
        assert await source.get_quotes(["CLUSD"]) == {}
        assert keys == ["demo"]

    async def test_real_key_failure_raises(self, make_fetcher):
        source = FmpQuoteSource(make_fetcher(lambda request: httpx.Response(403)), api_key="secret")
        with pytest.raises(UpstreamStatusError):
            await source.get_quote("CLUSD")


@pytest.mark.asyncio
class TestInvesting:
    async def test_quote(self, make_fetcher):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/8830")
            assert request.headers["x-requested-with"] == "XMLHttpRequest"
            return httpx.Response(200, json={"data": {"last": 2345.6, "changePct": 0.2}})

        info = await InvestingQuoteSource(make_fetcher(handler)).get_quote("8830")
        assert info == PriceInfo(price=2345.6, change_percent=0.2)

    async def test_payload_without_quote_fields_raises(self, make_fetcher):
        source = InvestingQuoteSource(make_fetcher(lambda request: httpx.Response(200, json={"foo": "bar"})))
        with pytest.raises(MalformedResponseError):
            await source.get_quote("8836")


@pytest.mark.asyncio
class TestLocalQuoteSource:
    async def test_concurrent_callers_share_one_request(self, make_fetcher):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request.headers.get("cache-control"))
            return httpx.Response(
                200,
                json={"quotes": [{"symbol": "GC=F", "price": 2050, "changePct": 0.4}, {"symbol": "USDKRW=X", "price": 1330}]},
            )

        source = LocalQuoteSource(make_fetcher(handler), "https://dashboard.test/api/quotes")
        gold, krw, missing = await asyncio.gather(
            source.get_quote("GC=F"),
            source.get_quote("USDKRW=X"),
            source.get_quote("SI=F"),
        )

        assert requests == ["no-store"]
        assert gold == PriceInfo(price=2050, change_percent=0.4)
        assert krw == PriceInfo(price=1330)
        assert missing is None

    async def test_invalidate_forces_reload(self, make_fetcher):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(200, json=[{"symbol": "CL=F", "price": 78.5}])

        source = LocalQuoteSource(make_fetcher(handler), "https://dashboard.test/api/quotes")
        assert await source.get_quotes(["CL=F", "GC=F"]) == {"CL=F": PriceInfo(price=78.5)}
        await source.get_quote("CL=F")
        source.invalidate()
        await source.get_quote("CL=F")
        assert len(calls) == 2

    async def test_failure_is_raised_to_every_caller(self, make_fetcher):
        source = LocalQuoteSource(make_fetcher(lambda request: httpx.Response(502)), "https://dashboard.test/api/quotes")
        results = await asyncio.gather(source.get_quote("GC=F"), source.get_quote("SI=F"), return_exceptions=True)
        assert all(isinstance(result, UpstreamStatusError) for result in results)
