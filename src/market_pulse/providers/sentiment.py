from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from loguru import logger

from ..utils.numeric import parse_numeric
from .cascade import REFERENCE_LABEL, first_meaningful
from .errors import UpstreamStatusError
from .proxy_fetch import ProxyFetcher
from .reference_data import FEAR_GREED_NOTICE, reference_fear_greed_history
from .sentiment_schemas import FearGreedEntry, FearGreedHistory

CRYPTO_FEAR_GREED_URL = "https://api.alternative.me/fng/"
FEAR_GREED_PARAMS = {"limit": "30", "format": "json"}
VARIANTS = ("us-market", "crypto")

TONES = {
    "extreme greed": "extreme-greed",
    "greed": "greed",
    "neutral": "neutral",
    "fear": "fear",
    "extreme fear": "extreme-fear",
}


def classify_value(value: float) -> str:
    if value >= 75:
        return "extreme-greed"
    if value >= 55:
        return "greed"
    if value > 45:
        return "neutral"
    if value > 25:
        return "fear"
    return "extreme-fear"


def resolve_tone(entry: Optional[FearGreedEntry]) -> str:
    if entry is None:
        return "neutral"
    return TONES.get(entry.classification.lower()) or classify_value(entry.value)


def _parse_timestamp(raw: Any) -> Optional[datetime]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        seconds: Optional[float] = float(raw)
    elif isinstance(raw, str) and raw.strip().isdigit():
        seconds = float(raw.strip())
    elif isinstance(raw, str) and raw.strip():
        try:
            parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    else:
        return None

    if seconds is None or not math.isfinite(seconds):
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_fear_greed(payload: Any) -> List[FearGreedEntry]:
    """Entries from an alternative.me style ``{"data": [...]}`` payload, newest first."""
    if not isinstance(payload, Mapping) or not isinstance(payload.get("data"), list):
        return []

    entries: List[FearGreedEntry] = []
    for item in payload["data"]:
        if not isinstance(item, Mapping):
            continue
        value = parse_numeric(item.get("value"))
        timestamp = _parse_timestamp(item.get("timestamp"))
        if value is None or timestamp is None:
            continue
        classification = item.get("value_classification")
        if not isinstance(classification, str) or not classification.strip():
            classification = "Neutral"
        entries.append(FearGreedEntry(value=value, classification=classification.strip(), timestamp=timestamp))

    entries.sort(key=lambda entry: entry.timestamp, reverse=True)
    return entries


class SentimentService:
    def __init__(
        self,
        fetcher: ProxyFetcher,
        *,
        us_market_url: str = CRYPTO_FEAR_GREED_URL,
        live: bool = True,
    ) -> None:
        self._fetcher = fetcher
        self._urls = {"crypto": CRYPTO_FEAR_GREED_URL, "us-market": us_market_url}
        self._live = live

    async def history(self, variant: str = "crypto") -> FearGreedHistory:
        if variant not in self._urls:
            raise ValueError(f"Unknown fear & greed variant '{variant}'")

        if not self._live:
            return self._reference(variant)

        url = self._urls[variant]

        async def _fetch() -> List[FearGreedEntry]:
            response = await self._fetcher.get(url, params=FEAR_GREED_PARAMS)
            if not response.is_success:
                raise UpstreamStatusError("fear-greed", response.status_code, url)
            return parse_fear_greed(response.json())

        outcome = await first_meaningful([(f"fear-greed:{variant}", _fetch)], bool, context=f"sentiment {variant}")
        if outcome.meaningful:
            return FearGreedHistory(variant=variant, entries=outcome.value, provider_label=outcome.provider)

        logger.warning("Fear & greed history for {} unavailable; using reference values", variant)
        return self._reference(variant)

    @staticmethod
    def _reference(variant: str) -> FearGreedHistory:
        return FearGreedHistory(
            variant=variant,
            entries=reference_fear_greed_history(variant),
            fallback_used=True,
            provider_label=REFERENCE_LABEL,
            notice=FEAR_GREED_NOTICE,
        )
