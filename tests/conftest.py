"""Pytest configuration and fixtures."""

from typing import Callable, Optional

import httpx
import pytest

from market_pulse.providers.proxy_fetch import DIRECT_STRATEGY, ProxyConfig, ProxyFetcher


@pytest.fixture
def make_fetcher():
    """Build a ProxyFetcher whose HTTP traffic is answered by ``handler``."""

    def _make(
        handler: Callable[[httpx.Request], httpx.Response],
        config: Optional[ProxyConfig] = None,
    ) -> ProxyFetcher:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return ProxyFetcher(config or ProxyConfig(strategies=(DIRECT_STRATEGY,)), client=client)

    return _make
