import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

ENABLED_VALUES = frozenset({"1", "true", "on", "yes", "enabled"})
DISABLED_VALUES = frozenset({"0", "false", "off", "no", "disabled"})

DEFAULT_US_FEAR_GREED_URL = "https://api.alternative.me/fng/"


def parse_boolean_flag(raw: Optional[str]) -> Optional[bool]:
    """Return True/False for a recognised flag value, None for anything else."""
    if raw is None:
        return None
    normalized = raw.strip().lower()
    if normalized in DISABLED_VALUES:
        return False
    if normalized in ENABLED_VALUES:
        return True
    return None


def resolve_flag(raw: Optional[str], default: bool) -> bool:
    parsed = parse_boolean_flag(raw)
    return default if parsed is None else parsed


@dataclass(frozen=True, slots=True)
class LiveDataFlags:
    market: bool = True
    ticker: bool = True
    news: bool = True
    calendar: bool = True
    sentiment: bool = True

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "LiveDataFlags":
        default = resolve_flag(env.get("DEFAULT_LIVE_DATA"), True)
        market = resolve_flag(env.get("ENABLE_LIVE_MARKET_DATA"), default)
        return cls(
            market=market,
            ticker=resolve_flag(env.get("ENABLE_LIVE_TICKER_DATA"), market),
            news=resolve_flag(env.get("ENABLE_LIVE_NEWS_DATA"), default),
            calendar=resolve_flag(env.get("ENABLE_LIVE_CALENDAR_DATA"), default),
            sentiment=resolve_flag(env.get("ENABLE_LIVE_SENTIMENT_DATA"), default),
        )


class Config:
    """Loads dashboard configuration from the environment (and ``.env``)."""

    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        if env is None:
            load_dotenv()
            env = os.environ

        self.market_data_proxy: Optional[str] = env.get("MARKET_DATA_PROXY")
        self.retry_cloudflare: bool = resolve_flag(env.get("MARKET_DATA_PROXY_RETRY_CLOUDFLARE"), False)
        self.timeout_seconds: float = self._positive_float(env.get("MARKET_DATA_TIMEOUT_SECONDS"), 12.0)

        self.local_quotes_url: Optional[str] = (env.get("LOCAL_QUOTES_URL") or "").strip() or None
        self.naver_quotes_enabled: bool = resolve_flag(env.get("NAVER_QUOTES_ENABLED"), True)

        self.fmp_api_key: Optional[str] = (env.get("FMP_API_KEY") or "").strip() or None
        self.alpha_vantage_api_key: str = (env.get("ALPHA_VANTAGE_API_KEY") or "").strip() or "demo"
        self.us_fear_greed_url: str = (env.get("US_FEAR_GREED_URL") or "").strip() or DEFAULT_US_FEAR_GREED_URL

        self.live_data: LiveDataFlags = LiveDataFlags.from_env(env)
        self.price_poll_seconds: float = self._positive_float(env.get("PRICE_POLL_SECONDS"), 60.0)

        level = (env.get("LOG_LEVEL") or "DEBUG").strip().upper()
        self.log_level: str = level or "DEBUG"

    @staticmethod
    def _positive_float(raw: Optional[str], default: float) -> float:
        try:
            value = float(raw) if raw is not None else default
        except ValueError:
            return default
        return value if value > 0 else default


config = Config()
