from __future__ import annotations

import math
import re
from decimal import Decimal
from typing import Any, Optional

_STRIP_CHARS = re.compile(r"[,%()]")
_LEADING_FLOAT = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_numeric(value: Any) -> Optional[float]:
    """Coerce an upstream numeric field into a float, or None when unknown.

    Numbers pass through when finite. Strings are trimmed, stripped of
    thousands separators, percent signs and parentheses, then parsed from
    their longest leading numeric prefix. Parentheses are removed without
    negating the value. Zero is a valid result; None means "unknown".
    """
    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        try:
            number = float(value)
        except (OverflowError, ValueError):
            return None
        return number if math.isfinite(number) else None

    if isinstance(value, str):
        cleaned = _STRIP_CHARS.sub("", value.strip()).strip()
        if not cleaned:
            return None
        match = _LEADING_FLOAT.match(cleaned)
        if not match:
            return None
        try:
            number = float(match.group(0))
        except ValueError:
            return None
        return number if math.isfinite(number) else None

    return None


def percent_change(current: Optional[float], previous: Optional[float]) -> Optional[float]:
    if current is None or previous is None or previous == 0:
        return None
    return (current - previous) / previous * 100


def derive_change_percent(
    change: Optional[float],
    previous_close: Optional[float] = None,
    price: Optional[float] = None,
) -> Optional[float]:
    """Derive a percentage move from an absolute change.

    Uses ``previous_close`` when it is known; a zero previous close skips the
    derivation. When the previous close is missing it is inferred as
    ``price - change`` and guarded the same way.
    """
    if change is None:
        return None

    if previous_close is None:
        if price is None:
            return None
        previous_close = price - change

    if previous_close == 0:
        return None
    return change / previous_close * 100
