"""Tests for headline parsing and NewsService."""

from datetime import datetime, timezone

import httpx
import pytest

from market_pulse.providers.errors import MalformedResponseError
from market_pulse.providers.news import (
    NewsService,
    parse_alpha_vantage_news,
    parse_alpha_vantage_published_at,
    parse_fmp_news,
    parse_fmp_published_at,
    parse_google_news_rss,
    parse_rss_published_at,
    strip_html,
)
from market_pulse.providers.reference_data import NEWS_NOTICE

FMP_NEWS = [
    {
        "title": "Older",
        "url": "https://news.test/older",
        "publishedDate": "2025-03-01 10:00:00",
        "site": "Reuters",
        "text": "<p>Stocks <b>rose</b></p>",
    },
    {
        "title": "Newer",
        "url": "https://news.test/newer",
        "publishedDate": "2025-03-02 09:30:00",
        "symbols": ["AAPL", "MSFT"],
    },
    {"title": "No date", "url": "https://news.test/x"},
    {"url": "https://news.test/untitled", "publishedDate": "2025-03-02 09:30:00"},
]

ALPHA_VANTAGE_NEWS = {
    "feed": [
        {
            "title": "Markets wrap",
            "url": "https://news.test/wrap",
            "time_published": "20250302T213000",
            "summary": "Indexes   closed higher.",
            "source": "Benzinga",
        },
        {"title": "Broken time", "url": "https://news.test/broken", "time_published": "20251340T000000"},
    ]
}
GOOGLE_NEWS_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Business</title>
    <item>
      <title>Undated</title>
      <link>https://news.test/undated</link>
    </item>
    <item>
      <title>Exporters brace for a weaker won</title>
      <link>https://www.hankyung.com/article/1</link>
      <pubDate>Sun, 02 Mar 2025 08:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Kospi rallies on chip stocks</title>
      <link>https://news.test/kospi</link>
      <guid>guid-newer</guid>
      <description>&lt;b&gt;Kospi&lt;/b&gt;   rallies</description>
      <source url="https://www.yna.co.kr">Yonhap</source>
      <pubDate>Sun, 02 Mar 2025 18:15:00 +0900</pubDate>
    </item>
  </channel>
</rss>
"""


class TestParsing:
    def test_strip_html(self):
        assert strip_html("<p>Hello <b>world</b></p>\n\n again") == "Hello world again"

    def test_fmp_published_at_is_utc(self):
        assert parse_fmp_published_at("2025-03-02 09:30:00") == datetime(2025, 3, 2, 9, 30, tzinfo=timezone.utc)
        assert parse_fmp_published_at("") is None
        assert parse_fmp_published_at("soon") is None

    def test_alpha_vantage_published_at(self):
        assert parse_alpha_vantage_published_at("20250302T213000") == datetime(2025, 3, 2, 21, 30, tzinfo=timezone.utc)
        assert parse_alpha_vantage_published_at("20251340T000000") is None
        assert parse_alpha_vantage_published_at(None) is None

    def test_fmp_news(self):
        items = parse_fmp_news(FMP_NEWS)

        assert [item.title for item in items] == ["Newer", "Older"]
        assert items[0].source == "AAPL, MSFT"
        assert items[1].source == "Reuters"
        assert items[1].summary == "Stocks rose"

    def test_fmp_news_rejects_non_list(self):
        with pytest.raises(MalformedResponseError):
            parse_fmp_news({"Error Message": "Invalid API KEY"})

    def test_rss_published_at(self):
        assert parse_rss_published_at("Sun, 02 Mar 2025 08:00:00 GMT") == datetime(2025, 3, 2, 8, tzinfo=timezone.utc)
        assert parse_rss_published_at("2025-03-02T08:00:00Z") == datetime(2025, 3, 2, 8, tzinfo=timezone.utc)
        assert parse_rss_published_at("not a date") is None
        assert parse_rss_published_at(None) is None

    def test_google_news_rss(self):
        items = parse_google_news_rss(GOOGLE_NEWS_RSS)

        assert [item.title for item in items] == ["Kospi rallies on chip stocks", "Exporters brace for a weaker won"]
        kospi, exporters = items
        assert kospi.id == "guid-newer"
        assert kospi.source == "Yonhap"
        assert kospi.summary == "Kospi rallies"
        assert kospi.published_at == datetime(2025, 3, 2, 9, 15, tzinfo=timezone.utc)
        assert exporters.id == "https://www.hankyung.com/article/1-1"
        assert exporters.source == "hankyung.com"

    def test_google_news_rss_rejects_non_xml(self):
        assert parse_google_news_rss("") == []
        with pytest.raises(MalformedResponseError):
            parse_google_news_rss("Title: reader error")

    def test_alpha_vantage_news(self):
        items = parse_alpha_vantage_news(ALPHA_VANTAGE_NEWS)
        assert len(items) == 1
        assert items[0].summary == "Indexes closed higher."
        assert items[0].source == "Benzinga"
        assert parse_alpha_vantage_news({"Information": "rate limited"}) == []


@pytest.mark.asyncio
class TestNewsService:
    async def test_fmp_first_when_key_configured(self, make_fetcher):
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            return httpx.Response(200, json=FMP_NEWS)

        feed = await NewsService(make_fetcher(handler), fmp_api_key="key").headlines(limit=1)

        assert hosts == ["financialmodelingprep.com"]
        assert feed.provider_label == "fmp-news"
        assert [item.title for item in feed.items] == ["Newer"]

    async def test_fmp_failure_falls_through_to_alpha_vantage(self, make_fetcher):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "financialmodelingprep.com":
                return httpx.Response(401)
            assert request.url.params["apikey"] == "demo"
            return httpx.Response(200, json=ALPHA_VANTAGE_NEWS)

        feed = await NewsService(make_fetcher(handler), fmp_api_key="key").headlines()
        assert feed.provider_label == "alpha-vantage-news"
        assert feed.fallback_used is False

    async def test_fmp_uses_demo_key_without_configured_key(self, make_fetcher):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append((request.url.host, request.url.params.get("apikey")))
            if request.url.host == "financialmodelingprep.com":
                return httpx.Response(500)
            return httpx.Response(200, json=ALPHA_VANTAGE_NEWS)

        feed = await NewsService(make_fetcher(handler)).headlines()

        assert requests == [("financialmodelingprep.com", "demo"), ("www.alphavantage.co", "demo")]
        assert feed.provider_label == "alpha-vantage-news"

    async def test_google_news_rss_after_alpha_vantage(self, make_fetcher):
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            if request.url.host == "r.jina.ai":
                return httpx.Response(200, text=GOOGLE_NEWS_RSS)
            if request.url.host == "www.alphavantage.co":
                return httpx.Response(200, json={"Information": "rate limited"})
            return httpx.Response(403)

        feed = await NewsService(make_fetcher(handler)).headlines()

        assert hosts == ["financialmodelingprep.com", "www.alphavantage.co", "r.jina.ai"]
        assert feed.provider_label == "google-news-rss"
        assert [item.id for item in feed.items] == ["guid-newer", "https://www.hankyung.com/article/1-1"]

    async def test_zero_limit_returns_no_items(self, make_fetcher):
        feed = await NewsService(make_fetcher(lambda request: httpx.Response(200, json=FMP_NEWS))).headlines(limit=0)
        assert feed.provider_label == "fmp-news"
        assert feed.items == []

        reference = await NewsService(make_fetcher(lambda request: httpx.Response(500)), live=False).headlines(limit=0)
        assert reference.items == []

    async def test_sample_headlines_when_nothing_arrives(self, make_fetcher):
        feed = await NewsService(make_fetcher(lambda request: httpx.Response(200, json={"feed": []}))).headlines(limit=2)

        assert feed.fallback_used is True
        assert feed.notice == NEWS_NOTICE
        assert [item.id for item in feed.items] == ["fallback-nyse-rebound", "fallback-treasury-yield"]

    async def test_disabled_feed(self, make_fetcher):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("network should not be used")

        feed = await NewsService(make_fetcher(handler), live=False).headlines()
        assert feed.fallback_used is True
        assert len(feed.items) == 4
