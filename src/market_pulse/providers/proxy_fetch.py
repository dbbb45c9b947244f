from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, FrozenSet, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote

import httpx
from loguru import logger

from .errors import NetworkExhausted


DISABLED_PROXY_VALUES = frozenset({"0", "false", "off", "none", "no", "direct"})
RETRYABLE_STATUSES: FrozenSet[int] = frozenset({403, 429, 500, 502, 503, 504})
CLOUDFLARE_STATUSES: FrozenSet[int] = frozenset({521, 522, 523, 524})
DEFAULT_ACCEPT = "application/json, text/plain, */*"
DEFAULT_TIMEOUT_SECONDS = 12.0

_TEMPLATE_SPLIT = re.compile(r"[\n,;]+")
_APPEND_SUFFIX = re.compile(r"(?:\?|=|&)$")


def encode_uri_component(value: str) -> str:
    return quote(value, safe="-_.!~*'()")


@dataclass(frozen=True, slots=True)
class ProxyStrategy:
    """Rewrites a logical target URL into the URL actually requested."""

    id: str
    kind: str = "direct"
    template: str = ""

    def build(self, url: str) -> str:
        if self.kind == "encoded":
            return self.template.replace("{{encodedUrl}}", encode_uri_component(url))
        if self.kind == "raw":
            return self.template.replace("{{url}}", url)
        if self.kind == "printf":
            return self.template.replace("%s", url)
        if self.kind == "append":
            return f"{self.template}{encode_uri_component(url)}"
        if self.kind == "prefix":
            return f"{self.template}{url}"
        return url

    @property
    def is_direct(self) -> bool:
        return self.kind == "direct"


DIRECT_STRATEGY = ProxyStrategy(id="direct")


def strategy_from_template(template: str, strategy_id: Optional[str] = None) -> ProxyStrategy:
    trimmed = template.strip()
    if not trimmed:
        return DIRECT_STRATEGY

    identifier = strategy_id or f"proxy:{trimmed}"

    if "{{encodedUrl}}" in trimmed:
        return ProxyStrategy(id=identifier, kind="encoded", template=trimmed)
    if "{{url}}" in trimmed:
        return ProxyStrategy(id=identifier, kind="raw", template=trimmed)
    if "%s" in trimmed:
        return ProxyStrategy(id=identifier, kind="printf", template=trimmed)
    if _APPEND_SUFFIX.search(trimmed):
        return ProxyStrategy(id=identifier, kind="append", template=trimmed)

    normalized = trimmed if trimmed.endswith("/") else f"{trimmed}/"
    return ProxyStrategy(id=identifier, kind="prefix", template=normalized)


DEFAULT_PROXY_STRATEGIES: Tuple[ProxyStrategy, ...] = (
    strategy_from_template("https://cors.isomorphic-git.org/", "cors-isomorphic"),
    strategy_from_template("https://thingproxy.freeboard.io/fetch/", "thingproxy"),
    strategy_from_template("https://corsproxy.io/?", "corsproxy-io"),
    strategy_from_template("https://api.allorigins.win/raw?url=", "allorigins"),
    strategy_from_template("https://r.jina.ai/", "r-jina"),
)


def _append_direct_if_missing(strategies: Sequence[ProxyStrategy]) -> Tuple[ProxyStrategy, ...]:
    if any(strategy.id == DIRECT_STRATEGY.id for strategy in strategies):
        return tuple(strategies)
    return (*strategies, DIRECT_STRATEGY)


def resolve_proxy_strategies(raw: Optional[str]) -> Tuple[ProxyStrategy, ...]:
    trimmed = (raw or "").strip()

    if trimmed:
        if trimmed.lower() in DISABLED_PROXY_VALUES:
            return (DIRECT_STRATEGY,)

        entries = [
            entry.strip()
            for entry in _TEMPLATE_SPLIT.split(trimmed)
            if entry.strip() and entry.strip().lower() not in DISABLED_PROXY_VALUES
        ]
        custom: List[ProxyStrategy] = [
            strategy_from_template(entry, f"custom-{index}") for index, entry in enumerate(entries)
        ]
        if custom:
            return _append_direct_if_missing(custom)

    return _append_direct_if_missing(DEFAULT_PROXY_STRATEGIES)


@dataclass(frozen=True, slots=True)
class ProxyConfig:
    strategies: Tuple[ProxyStrategy, ...] = field(default=(DIRECT_STRATEGY,))
    retry_statuses: FrozenSet[int] = RETRYABLE_STATUSES
    timeout: float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_raw(
        cls,
        raw: Optional[str],
        *,
        retry_cloudflare: bool = False,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> "ProxyConfig":
        statuses = RETRYABLE_STATUSES | CLOUDFLARE_STATUSES if retry_cloudflare else RETRYABLE_STATUSES
        return cls(
            strategies=_append_direct_if_missing(resolve_proxy_strategies(raw)),
            retry_statuses=frozenset(statuses),
            timeout=timeout,
        )


class ProxyFetcher:
    """Issues a request directly or through CORS relays, falling through on failure.

    Strategies are tried in order. A transport error moves on to the next
    strategy; so does a retryable status, unless the strategy is the last
    one. Any other response is handed back untouched, including non-2xx
    statuses, so callers decide what a failed upstream means to them.
    """

    def __init__(self, config: ProxyConfig, *, client: Optional[httpx.AsyncClient] = None) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout, connect=5.0),
            follow_redirects=True,
        )

    @property
    def config(self) -> ProxyConfig:
        return self._config

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request(url, method="GET", **kwargs)

    async def request(
        self,
        url: str,
        *,
        method: str = "GET",
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        content: Optional[bytes | str] = None,
        json: Any = None,
    ) -> httpx.Response:
        target = str(httpx.URL(url, params=params)) if params else url
        final_headers = self._prepare_headers(headers)
        strategies = self._config.strategies
        attempts: List[str] = []
        last_error: Optional[BaseException] = None

        for index, strategy in enumerate(strategies):
            is_last = index == len(strategies) - 1
            dispatch_url = strategy.build(target)
            try:
                response = await self._client.request(
                    method,
                    dispatch_url,
                    headers=final_headers,
                    content=content,
                    json=json,
                )
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                last_error = exc
                attempts.append(f"{strategy.id}: {type(exc).__name__}: {exc}")
                logger.debug("Proxy {} failed for {}: {}", strategy.id, target, exc)
                continue

            if not is_last and not response.is_success and response.status_code in self._config.retry_statuses:
                attempts.append(f"{strategy.id}: status {response.status_code}")
                logger.debug(
                    "Proxy {} responded with status {} for {}; trying next strategy",
                    strategy.id,
                    response.status_code,
                    target,
                )
                await response.aclose()
                continue

            if index > 0:
                logger.debug("Request for {} served via {}", target, strategy.id)
            return response

        raise NetworkExhausted(target, attempts) from last_error

    async def direct(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        """Single un-relayed GET; transport errors propagate as httpx errors."""
        return await self._client.get(url, params=params, headers=self._prepare_headers(headers))

    @staticmethod
    def _prepare_headers(headers: Optional[Mapping[str, str]]) -> httpx.Headers:
        prepared = httpx.Headers(headers or {})
        if "accept" not in prepared:
            prepared["Accept"] = DEFAULT_ACCEPT
        return prepared
