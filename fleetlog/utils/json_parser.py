"""
Helpers for reading loosely-typed backend JSON rows.
Different endpoint versions spell the same field differently and send numbers
as strings, so every read goes through these.
"""

import math
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

URL_PATTERN = re.compile(r"https?://[^\s\"'<>\\]+", re.IGNORECASE)


def is_number(value: Any) -> bool:
    """True for finite int/float values. Booleans and numeric strings are not numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def to_number(value: Any) -> Optional[float]:
    """Coerce a number or numeric string. Returns None when it is not one."""
    if is_number(value):
        return value
    if isinstance(value, str) and value.strip():
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def coerce_number(value: Any, default: float = 0) -> float:
    """Like to_number, but malformed input collapses to `default` instead of failing."""
    parsed = to_number(value)
    return default if parsed is None else parsed


def first_present(row: dict, aliases: Iterable[str]) -> Any:
    """First alias whose value is truthy. Returns None if none is."""
    for key in aliases:
        value = row.get(key)
        if value:
            return value
    return None


def first_number(row: dict, aliases: Iterable[str]) -> Optional[float]:
    """First alias holding an actual (finite) number."""
    for key in aliases:
        value = row.get(key)
        if is_number(value):
            return value
    return None


def is_http_url(value: Any) -> bool:
    return isinstance(value, str) and bool(re.match(r"^https?://", value, re.IGNORECASE))


def find_url(text: str) -> Optional[str]:
    """Scan arbitrary text for the first embedded http(s) URL."""
    match = URL_PATTERN.search(text or "")
    return match.group(0) if match else None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp (with or without trailing Z).
    Naive values are taken as UTC so every result is comparable.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
