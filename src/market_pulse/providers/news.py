from __future__ import annotations

import re
import xml.etree.ElementTree as ElementTree
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Tuple
from urllib.parse import urlsplit

from loguru import logger

from .cascade import REFERENCE_LABEL, first_meaningful
from .errors import MalformedResponseError, UpstreamStatusError
from .news_schemas import NewsFeed, NewsItem
from .proxy_fetch import ProxyFetcher
from .reference_data import NEWS_NOTICE, reference_news

FMP_NEWS_URL = "https://financialmodelingprep.com/api/v3/stock_news"
ALPHA_VANTAGE_URL = "https://www.alphavantage.co/query"
GOOGLE_NEWS_RSS_URL = (
    "https://r.jina.ai/https://news.google.com/rss/headlines/section/topic/BUSINESS?hl=ko&gl=KR&ceid=KR:ko"
)
DEMO_API_KEY = "demo"
UNKNOWN_SOURCE = "Unknown source"

_TAGS = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")
_ALPHA_VANTAGE_TIME = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})$")


def strip_html(value: str) -> str:
    return _WHITESPACE.sub(" ", _TAGS.sub(" ", value)).strip()


def _parse_iso(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def parse_fmp_published_at(value: Any) -> Optional[datetime]:
    """FMP sends ``YYYY-MM-DD HH:MM:SS`` without a zone; treat it as UTC."""
    if not isinstance(value, str) or not value.strip():
        return None
    return _parse_iso(value.strip().replace(" ", "T", 1))


def parse_alpha_vantage_published_at(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    match = _ALPHA_VANTAGE_TIME.match(value.strip())
    if not match:
        return _parse_iso(value.strip())
    try:
        return datetime(*(int(part) for part in match.groups()), tzinfo=timezone.utc)
    except ValueError:
        return None


def _newest_first(items: List[NewsItem]) -> List[NewsItem]:
    return sorted(items, key=lambda item: item.published_at, reverse=True)


def parse_fmp_news(payload: Any) -> List[NewsItem]:
    if not isinstance(payload, list):
        raise MalformedResponseError("FMP news payload is not a list")

    items: List[NewsItem] = []
    for entry in payload:
        if not isinstance(entry, Mapping):
            continue
        title, url = entry.get("title"), entry.get("url")
        published_at = parse_fmp_published_at(entry.get("publishedDate"))
        if not title or not url or published_at is None:
            continue

        identifier = entry.get("news_id") or entry.get("id") or f"{title}-{entry.get('publishedDate') or url}"
        symbols = entry.get("symbols")
        source = entry.get("site") or (", ".join(symbols) if isinstance(symbols, list) and symbols else UNKNOWN_SOURCE)
        text = entry.get("text")
        items.append(
            NewsItem(
                id=str(identifier),
                title=str(title),
                summary=strip_html(text) if isinstance(text, str) else "",
                url=str(url),
                source=str(source),
                published_at=published_at,
            )
        )
    return _newest_first(items)


def parse_alpha_vantage_news(payload: Any) -> List[NewsItem]:
    feed = payload.get("feed") if isinstance(payload, Mapping) else None
    if not isinstance(feed, list):
        return []

    items: List[NewsItem] = []
    for entry in feed:
        if not isinstance(entry, Mapping):
            continue
        title, url = entry.get("title"), entry.get("url")
        published_at = parse_alpha_vantage_published_at(entry.get("time_published"))
        if not title or not url or published_at is None:
            continue
        summary = entry.get("summary")
        items.append(
            NewsItem(
                id=str(entry.get("uuid") or f"{title}-{url}"),
                title=str(title),
                summary=strip_html(summary) if isinstance(summary, str) else "",
                url=str(url),
                source=str(entry.get("source") or UNKNOWN_SOURCE),
                published_at=published_at,
            )
        )
    return _newest_first(items)


def parse_rss_published_at(value: Any) -> Optional[datetime]:
    """RFC 822 ``pubDate``; ISO-8601 is accepted too. Naive values are UTC."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError):
        return _parse_iso(value.strip())
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _child_text(node: ElementTree.Element, tag: str) -> str:
    return (node.findtext(tag) or "").strip()


def _source_from_link(link: str) -> str:
    hostname = urlsplit(link).hostname
    if not hostname:
        return UNKNOWN_SOURCE
    return hostname[4:] if hostname.startswith("www.") else hostname


def parse_google_news_rss(text: Any) -> List[NewsItem]:
    if not isinstance(text, str) or not text.strip():
        return []
    try:
        root = ElementTree.fromstring(text.strip())
    except ElementTree.ParseError as exc:
        raise MalformedResponseError(f"Google News RSS could not be parsed: {exc}") from exc

    items: List[NewsItem] = []
    for index, node in enumerate(root.iter("item")):
        title = _child_text(node, "title")
        link = _child_text(node, "link")
        published_at = parse_rss_published_at(node.findtext("pubDate"))
        if not title or not link or published_at is None:
            continue

        items.append(
            NewsItem(
                id=_child_text(node, "guid") or f"{link}-{index}",
                title=title,
                summary=strip_html(node.findtext("description") or ""),
                url=link,
                source=_child_text(node, "source") or _source_from_link(link),
                published_at=published_at,
            )
        )
    return _newest_first(items)


class NewsService:
    """Market headlines: FMP, Alpha Vantage, Google News RSS, then sample headlines.

    Both API keys fall back to the public ``demo`` tier when unset.
    """

    def __init__(
        self,
        fetcher: ProxyFetcher,
        *,
        fmp_api_key: Optional[str] = None,
        alpha_vantage_api_key: str = DEMO_API_KEY,
        live: bool = True,
    ) -> None:
        self._fetcher = fetcher
        self._fmp_api_key = (fmp_api_key or "").strip() or DEMO_API_KEY
        self._alpha_vantage_api_key = (alpha_vantage_api_key or "").strip() or DEMO_API_KEY
        self._live = live

    async def headlines(self, limit: Optional[int] = None) -> NewsFeed:
        if not self._live:
            return self._reference(limit)

        providers: List[Tuple[str, Callable[[], Awaitable[List[NewsItem]]]]] = [
            ("fmp-news", self._fetch_fmp),
            ("alpha-vantage-news", self._fetch_alpha_vantage),
            ("google-news-rss", self._fetch_google_news),
        ]

        outcome = await first_meaningful(providers, bool, context="news")
        if outcome.meaningful:
            return NewsFeed(items=_limited(outcome.value, limit), provider_label=outcome.provider)

        logger.warning("News providers returned no headlines; using sample headlines")
        return self._reference(limit)

    async def _fetch_fmp(self) -> List[NewsItem]:
        response = await self._fetcher.direct(FMP_NEWS_URL, params={"limit": "50", "apikey": self._fmp_api_key})
        if not response.is_success:
            raise UpstreamStatusError("fmp-news", response.status_code, FMP_NEWS_URL)
        return parse_fmp_news(response.json())

    async def _fetch_alpha_vantage(self) -> List[NewsItem]:
        params = {
            "function": "NEWS_SENTIMENT",
            "topics": "financial_markets",
            "sort": "LATEST",
            "limit": "12",
            "apikey": self._alpha_vantage_api_key,
        }
        response = await self._fetcher.direct(ALPHA_VANTAGE_URL, params=params)
        if not response.is_success:
            raise UpstreamStatusError("alpha-vantage-news", response.status_code, ALPHA_VANTAGE_URL)
        return parse_alpha_vantage_news(response.json())

    async def _fetch_google_news(self) -> List[NewsItem]:
        # Already wrapped in a reader relay, so no further proxying.
        response = await self._fetcher.direct(
            GOOGLE_NEWS_RSS_URL,
            headers={"Accept": "application/rss+xml, application/xml, text/xml, */*"},
        )
        if not response.is_success:
            raise UpstreamStatusError("google-news-rss", response.status_code, GOOGLE_NEWS_RSS_URL)
        return parse_google_news_rss(response.text)

    @staticmethod
    def _reference(limit: Optional[int]) -> NewsFeed:
        return NewsFeed(
            items=_limited(reference_news(), limit),
            fallback_used=True,
            provider_label=REFERENCE_LABEL,
            notice=NEWS_NOTICE,
        )


def _limited(items: List[NewsItem], limit: Optional[int]) -> List[NewsItem]:
    return items if limit is None else items[:limit]
