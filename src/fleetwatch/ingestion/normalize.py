"""Normalization helpers.

Centralizes lenient parsing of store document values.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--":
        return None
    if isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def safe_coordinate(value: Any) -> float | None:
    """Parse a latitude/longitude value.

    A zero coordinate is treated as missing: store clients write ``0`` when
    the device has not reported a fix yet.
    """
    parsed = safe_float(value)
    if not parsed:
        return None
    return parsed


def normalize_status(value: Any) -> str | None:
    """Lower-case a status string and fold ``_``/spaces into ``-``."""
    text = safe_str(value)
    if text is None:
        return None
    return "-".join(text.lower().replace("_", " ").split())


def normalize_timestamp_seconds(value: Any) -> float | None:
    """Normalize store timestamps to epoch seconds.

    - Empty/missing -> None
    - <= 0 -> None
    - Milliseconds (> 1e11) -> seconds
    - ``{"seconds": ..., "nanoseconds": ...}`` maps (store timestamp type)
    """

    if isinstance(value, dict):
        seconds = safe_float(value.get("seconds", value.get("_seconds")))
        if seconds is None:
            return None
        nanos = safe_float(value.get("nanoseconds", value.get("_nanoseconds"))) or 0.0
        value = seconds + nanos / 1e9
    if value is None or value == "":
        return None
    try:
        ts = float(value)
    except (TypeError, ValueError):
        return None
    if ts <= 0:
        return None
    if ts > 1e11:
        ts /= 1000.0
    return ts


def parse_timestamp(value: Any) -> datetime | None:
    """Convert any supported timestamp representation to a UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            parsed = None
        if parsed is not None:
            return parse_timestamp(parsed)
    ts = normalize_timestamp_seconds(value)
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=UTC)
