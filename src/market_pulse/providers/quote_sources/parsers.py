"""Response-shape parsers for every quote upstream.

Each parser is a pure function over an already-decoded payload. Malformed or
empty input yields ``None`` (or an empty mapping for batch shapes) instead of
raising, so the cascade treats "broken upstream" and "no data" the same way.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ...utils.numeric import derive_change_percent, parse_numeric, percent_change
from .base import PriceInfo

INVESTING_PRICE_KEYS = (
    "last",
    "last_price",
    "lastPrice",
    "last_close",
    "lastClose",
    "price",
    "last_value",
    "lastValue",
    "close",
    "ltp",
    "value",
    "trade_price",
)
INVESTING_CHANGE_PERCENT_KEYS = (
    "changePct",
    "change_pct",
    "changePercentage",
    "change_percentage",
    "changePercent",
    "change_percent",
    "pctChange",
    "pct_change",
    "change_percent_number",
    "change_percentage_number",
)
INVESTING_CHANGE_KEYS = ("change", "day_change", "change_value", "change_value_number")
INVESTING_PREVIOUS_CLOSE_KEYS = (
    "prevClose",
    "previousClose",
    "prev_close",
    "previous_close",
    "last_close",
    "lastClose",
)
INVESTING_ROOT_KEYS = ("data", "quote", "quotes", "financialData")
INVESTING_MAX_DEPTH = 8

METALS_PRICE_KEYS = ("price", "spot", "value", "ask", "bid", "close", "last", "lastPrice", "current")
METALS_CHANGE_PERCENT_KEYS = (
    "changePercent",
    "change_percent",
    "changePct",
    "pctChange",
    "percentChange",
    "percent_change",
)
METALS_CHANGE_KEYS = ("change", "delta", "diff")
METALS_PREVIOUS_KEYS = ("previous", "previousClose", "prevClose", "prev", "open", "lastClose")

_LINE_SPLIT = re.compile(r"\r?\n")


def _first_number(record: Mapping[str, Any], keys: Iterable[str]) -> Optional[float]:
    for key in keys:
        if key not in record:
            continue
        value = parse_numeric(record[key])
        if value is not None:
            return value
    return None


def _info_or_none(price: Optional[float], change_percent: Optional[float]) -> Optional[PriceInfo]:
    if price is None and change_percent is None:
        return None
    return PriceInfo(price=price, change_percent=change_percent)


def _quote_entry(
    price: Optional[float],
    change_percent: Optional[float],
    change: Optional[float],
    previous_close: Optional[float],
) -> PriceInfo:
    if change_percent is None:
        change_percent = derive_change_percent(change, previous_close, price)
    return PriceInfo(price=price, change_percent=change_percent)


def parse_yahoo_quotes(payload: Any) -> Dict[str, PriceInfo]:
    if not isinstance(payload, Mapping):
        return {}
    response = payload.get("quoteResponse")
    if not isinstance(response, Mapping):
        return {}
    entries = response.get("result")
    if not isinstance(entries, list):
        return {}

    mapped: Dict[str, PriceInfo] = {}
    for entry in entries:
        if not isinstance(entry, Mapping) or not entry.get("symbol"):
            continue
        previous_close = parse_numeric(entry.get("regularMarketPreviousClose"))
        price = parse_numeric(entry.get("regularMarketPrice"))
        if price is None:
            price = previous_close
        mapped[str(entry["symbol"])] = _quote_entry(
            price,
            parse_numeric(entry.get("regularMarketChangePercent")),
            parse_numeric(entry.get("regularMarketChange")),
            previous_close,
        )
    return mapped


def parse_local_quotes(payload: Any) -> Dict[str, PriceInfo]:
    if isinstance(payload, Mapping):
        payload = payload.get("quotes")
    if not isinstance(payload, list):
        return {}

    mapped: Dict[str, PriceInfo] = {}
    for entry in payload:
        if not isinstance(entry, Mapping) or not entry.get("symbol"):
            continue
        mapped[str(entry["symbol"])] = _quote_entry(
            parse_numeric(entry.get("price")),
            parse_numeric(entry.get("changePct")),
            parse_numeric(entry.get("change")),
            parse_numeric(entry.get("prevClose")),
        )
    return mapped


def parse_naver_realtime(payload: Any) -> Optional[PriceInfo]:
    if not isinstance(payload, Mapping):
        return None
    result = payload.get("result")
    if not isinstance(result, Mapping):
        return None
    areas = result.get("areas")
    if not isinstance(areas, list) or not areas or not isinstance(areas[0], Mapping):
        return None
    datas = areas[0].get("datas")
    if not isinstance(datas, list) or not datas or not isinstance(datas[0], Mapping):
        return None

    entry = datas[0]
    price = parse_numeric(entry.get("nv"))
    change_percent = parse_numeric(entry.get("cr"))
    if change_percent is None:
        change_percent = derive_change_percent(parse_numeric(entry.get("cv")), price=price)
    return _info_or_none(price, change_percent)


def parse_binance_tickers(payload: Any) -> Dict[str, PriceInfo]:
    if isinstance(payload, Mapping):
        payload = [payload]
    if not isinstance(payload, list):
        return {}

    mapped: Dict[str, PriceInfo] = {}
    for item in payload:
        if not isinstance(item, Mapping) or not item.get("symbol"):
            continue
        mapped[str(item["symbol"])] = PriceInfo(
            price=parse_numeric(item.get("lastPrice")),
            change_percent=parse_numeric(item.get("priceChangePercent")),
        )
    return mapped


def parse_gateio_tickers(payload: Any, contract: str) -> Optional[PriceInfo]:
    entry: Optional[Mapping[str, Any]] = None
    if isinstance(payload, list):
        candidates = [item for item in payload if isinstance(item, Mapping)]
        entry = next((item for item in candidates if item.get("contract") == contract), None)
        if entry is None and candidates:
            entry = candidates[0]
    elif isinstance(payload, Mapping):
        if payload.get("contract") in (None, "", contract):
            entry = payload

    if entry is None:
        return None
    return _info_or_none(
        parse_numeric(entry.get("last")),
        parse_numeric(entry.get("change_percentage")),
    )


def parse_fmp_quotes(payload: Any) -> Dict[str, PriceInfo]:
    if not isinstance(payload, list):
        return {}

    mapped: Dict[str, PriceInfo] = {}
    for item in payload:
        if not isinstance(item, Mapping) or not item.get("symbol"):
            continue
        mapped[str(item["symbol"])] = _quote_entry(
            parse_numeric(item.get("price")),
            parse_numeric(item.get("changesPercentage")),
            parse_numeric(item.get("change")),
            parse_numeric(item.get("previousClose")),
        )
    return mapped


def _csv_lines(text: Any) -> List[str]:
    if not isinstance(text, str):
        return []
    return [line.strip() for line in _LINE_SPLIT.split(text.strip()) if line.strip()]


def _csv_row(line: str) -> List[str]:
    return [cell.strip() for cell in line.split(",")]


def parse_stooq_daily_csv(text: Any) -> Optional[PriceInfo]:
    lines = _csv_lines(text)
    if len(lines) < 2:
        return None

    header = [cell.lower() for cell in _csv_row(lines[0])]
    close_index = next((index for index, name in enumerate(header) if name in ("close", "c")), 4)

    rows = lines[1:]
    latest_row = _csv_row(rows[-1])
    previous_row = _csv_row(rows[-2]) if len(rows) > 1 else None
    if close_index >= len(latest_row):
        return None

    latest_close = parse_numeric(latest_row[close_index])
    previous_close = None
    if previous_row is not None and close_index < len(previous_row):
        previous_close = parse_numeric(previous_row[close_index])

    return _info_or_none(latest_close, percent_change(latest_close, previous_close))


def parse_stooq_quote_csv(text: Any) -> Optional[PriceInfo]:
    lines = [line for line in _csv_lines(text) if not line.startswith("#")]
    if len(lines) < 2:
        return None

    header = [cell.lower() for cell in _csv_row(lines[0])]
    values = _csv_row(lines[1])
    columns = {name: values[index] if index < len(values) else "" for index, name in enumerate(header)}

    close = parse_numeric(columns.get("close"))
    if close is None:
        return None
    return PriceInfo(price=close, change_percent=percent_change(close, parse_numeric(columns.get("open"))))


def _parse_metals_entry(entry: Any, metal: str) -> Tuple[Optional[float], Optional[float]]:
    if entry is None or isinstance(entry, bool):
        return None, None

    if isinstance(entry, (int, float, str)):
        return parse_numeric(entry), None

    if isinstance(entry, list):
        price: Optional[float] = None
        for item in reversed(entry):
            value = parse_numeric(item)
            if value is None:
                continue
            if price is None:
                price = value
                continue
            return price, value
        return price, None

    if not isinstance(entry, Mapping):
        return None, None

    price = _first_number(entry, (metal, *METALS_PRICE_KEYS))
    change_percent = _first_number(entry, METALS_CHANGE_PERCENT_KEYS)

    if change_percent is None:
        change = _first_number(entry, METALS_CHANGE_KEYS)
        if change is not None:
            for key in METALS_PREVIOUS_KEYS:
                previous = parse_numeric(entry.get(key))
                if previous is not None and previous != 0:
                    change_percent = change / previous * 100
                    break

    if price is None:
        numbers = [value for value in (parse_numeric(item) for item in entry.values()) if value is not None]
        if numbers:
            price = numbers[-1]

    return price, change_percent


def parse_metals_live(payload: Any, metal: str) -> Optional[PriceInfo]:
    """Parse a metals.live spot payload.

    The feed has been seen as a bare number, a ``[..., change, price]``
    array, a keyed object, and a list of any of those. For lists the newest entry
    wins and the change is derived from the entry before it.
    """
    if isinstance(payload, list):
        mapped = [_parse_metals_entry(entry, metal) for entry in payload]
        mapped = [entry for entry in mapped if entry[0] is not None]
        if not mapped:
            return None

        latest_price, change_percent = mapped[-1]
        if change_percent is None:
            for previous_price, _ in reversed(mapped[:-1]):
                if previous_price:
                    change_percent = percent_change(latest_price, previous_price)
                    break
        return PriceInfo(price=latest_price, change_percent=change_percent)

    price, change_percent = _parse_metals_entry(payload, metal)
    if price is None:
        return None
    return PriceInfo(price=price, change_percent=change_percent)


def _rate_from(payload: Any, currency: str) -> Optional[float]:
    if not isinstance(payload, Mapping):
        return None
    rates = payload.get("rates")
    if not isinstance(rates, Mapping):
        return None
    return parse_numeric(rates.get(currency))


def parse_exchange_rate_host(latest: Any, previous: Any, currency: str = "KRW") -> Optional[PriceInfo]:
    latest_rate = _rate_from(latest, currency)
    previous_rate = _rate_from(previous, currency)
    if latest_rate is None and previous_rate is None:
        return None
    return PriceInfo(price=latest_rate, change_percent=percent_change(latest_rate, previous_rate))


def parse_fawaz_rate(payload: Any, currency: str = "krw") -> Tuple[Optional[float], Optional[date]]:
    """Return the rate and the dataset date from a fawazahmed0 currency file."""
    if not isinstance(payload, Mapping):
        return None, None

    rate = parse_numeric(payload.get(currency.lower()))
    dataset_date: Optional[date] = None
    raw_date = payload.get("date")
    if isinstance(raw_date, str):
        try:
            dataset_date = datetime.strptime(raw_date.strip()[:10], "%Y-%m-%d").date()
        except ValueError:
            dataset_date = None
    return rate, dataset_date


def previous_dataset_day(value: date) -> str:
    return (value - timedelta(days=1)).isoformat()


def find_quote_candidate(
    node: Any,
    keys: Sequence[str] = INVESTING_PRICE_KEYS,
    *,
    max_depth: int = INVESTING_MAX_DEPTH,
    _visited: Optional[set] = None,
    _depth: int = 0,
) -> Optional[Mapping[str, Any]]:
    """Depth-first search for the first mapping that carries a price key.

    Containers are tracked by identity so cyclic payloads terminate, and the
    walk stops descending after ``max_depth`` levels.
    """
    if not isinstance(node, (Mapping, list)) or _depth > max_depth:
        return None

    visited = _visited if _visited is not None else set()
    if id(node) in visited:
        return None
    visited.add(id(node))

    if isinstance(node, list):
        children: Iterable[Any] = node
    else:
        if any(key in node for key in keys):
            return node
        children = node.values()

    for child in children:
        found = find_quote_candidate(child, keys, max_depth=max_depth, _visited=visited, _depth=_depth + 1)
        if found is not None:
            return found
    return None


def parse_investing_entry(entry: Optional[Mapping[str, Any]]) -> Optional[PriceInfo]:
    if not entry:
        return None

    price = _first_number(entry, INVESTING_PRICE_KEYS)
    change_percent = _first_number(entry, INVESTING_CHANGE_PERCENT_KEYS)
    if change_percent is None:
        change = _first_number(entry, INVESTING_CHANGE_KEYS)
        previous_close = _first_number(entry, INVESTING_PREVIOUS_CLOSE_KEYS)
        if previous_close == 0:
            previous_close = None
        change_percent = derive_change_percent(change, previous_close, price)
    return _info_or_none(price, change_percent)


def parse_investing_quote(payload: Any) -> Optional[PriceInfo]:
    if not isinstance(payload, (Mapping, list)):
        return None

    roots: List[Any] = []
    if isinstance(payload, Mapping):
        roots.extend(payload.get(key) for key in INVESTING_ROOT_KEYS)
    roots.append(payload)

    for root in roots:
        candidate = find_quote_candidate(root)
        if candidate is not None:
            return parse_investing_entry(candidate)
    return None


PARSERS: Dict[str, Callable[..., Any]] = {
    "yahoo": parse_yahoo_quotes,
    "local": parse_local_quotes,
    "naver": parse_naver_realtime,
    "binance": parse_binance_tickers,
    "gateio": parse_gateio_tickers,
    "fmp": parse_fmp_quotes,
    "stooq": parse_stooq_daily_csv,
    "stooq-quote": parse_stooq_quote_csv,
    "metals-live": parse_metals_live,
    "exchangerate-host": parse_exchange_rate_host,
    "fawaz": parse_fawaz_rate,
    "investing": parse_investing_quote,
}


def parse_payload(provider: str, *args: Any, **kwargs: Any) -> Any:
    try:
        parser = PARSERS[provider]
    except KeyError:
        raise KeyError(f"No parser registered for provider '{provider}'") from None
    return parser(*args, **kwargs)
