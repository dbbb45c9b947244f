from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional

import httpx
from loguru import logger

from ..errors import UpstreamStatusError
from ..proxy_fetch import ProxyFetcher


@dataclass(frozen=True, slots=True)
class PriceInfo:
    price: Optional[float] = None
    change_percent: Optional[float] = None

    @property
    def is_meaningful(self) -> bool:
        return self.price is not None or self.change_percent is not None

    @property
    def is_complete(self) -> bool:
        return self.price is not None and self.change_percent is not None

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {"price": self.price, "change_percent": self.change_percent}


@dataclass(frozen=True, slots=True)
class ProviderDescriptor:
    name: str
    fetch: Callable[[], Awaitable[Optional[PriceInfo]]]


class QuoteSource(ABC):
    name: str

    def __init__(self, fetcher: ProxyFetcher) -> None:
        self._fetcher = fetcher

    @abstractmethod
    async def get_quote(self, symbol: str) -> Optional[PriceInfo]:
        """Return a quote for ``symbol`` or None when the upstream has nothing usable."""

    async def get_quotes(self, symbols: Iterable[str]) -> Dict[str, PriceInfo]:
        quotes: Dict[str, PriceInfo] = {}
        for symbol in symbols:
            info = await self.get_quote(symbol)
            if info is not None:
                quotes[symbol] = info
        return quotes

    def descriptor(self, symbol: str, label: Optional[str] = None) -> ProviderDescriptor:
        async def _fetch() -> Optional[PriceInfo]:
            return await self.get_quote(symbol)

        return ProviderDescriptor(name=label or f"{self.name}:{symbol}", fetch=_fetch)

    async def _fetch_text(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> str:
        response = await self._fetcher.get(url, params=params, headers=headers)
        self._raise_for_status(response)
        return response.text

    async def _fetch_json(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        text = await self._fetch_text(url, params=params, headers=headers)
        return self._decode_json(text, url)

    def _raise_for_status(self, response: httpx.Response) -> None:
        if not response.is_success:
            raise UpstreamStatusError(self.name, response.status_code, str(response.request.url))

    def _decode_json(self, text: str, url: str) -> Any:
        if not text or not text.strip():
            return None
        try:
            return json.loads(text)
        except ValueError as exc:
            logger.debug("{} returned an undecodable body for {}: {}", self.name, url, exc)
            return None
