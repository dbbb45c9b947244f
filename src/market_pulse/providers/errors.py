from __future__ import annotations

from typing import Optional, Sequence


class MarketDataError(RuntimeError):
    """Base class for market data failures."""


class NetworkError(MarketDataError):
    """A single transport-level attempt failed (DNS, timeout, abort)."""


class NetworkExhausted(NetworkError):
    """Every proxy strategy raised before any usable response arrived."""

    def __init__(self, url: str, attempts: Sequence[str]) -> None:
        self.url = url
        self.attempts = list(attempts)
        detail = "; ".join(self.attempts) if self.attempts else "no strategies configured"
        super().__init__(f"All proxy strategies failed for {url}: {detail}")


class UpstreamStatusError(MarketDataError):
    def __init__(self, provider: str, status: int, url: Optional[str] = None) -> None:
        self.provider = provider
        self.status = status
        self.url = url
        super().__init__(f"{provider} responded with status {status}")


class MalformedResponseError(MarketDataError):
    """Payload decoded but carried no recognizable price fields."""


class AllProvidersExhausted(MarketDataError):
    def __init__(self, instrument: str, attempts: Sequence[str]) -> None:
        self.instrument = instrument
        self.attempts = list(attempts)
        detail = "; ".join(self.attempts) if self.attempts else "no providers configured"
        super().__init__(f"No data available for {instrument}: {detail}")
