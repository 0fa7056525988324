"""UTC timestamp helpers. Stored timestamps are ``%Y-%m-%dT%H:%M:%SZ`` strings."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

ISO_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

TIME_RANGES = {
    "1h": 3600,
    "24h": 24 * 3600,
    "7d": 7 * 24 * 3600,
    "30d": 30 * 24 * 3600,
}


def now_utc() -> str:
    """Current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).strftime(ISO_FORMAT)


def epoch_to_iso(seconds: float) -> str:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime(ISO_FORMAT)


def to_epoch(value: Any) -> float | None:
    """Parse Unix seconds, Unix milliseconds or an ISO 8601 string.

    Returns None when the value is missing or unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        num = float(value)
    else:
        text = str(value).strip()
        try:
            num = float(text)
        except ValueError:
            try:
                dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt.timestamp()
    # values past year 33658 in seconds are milliseconds
    return num / 1000 if num > 1e12 else num


def range_cutoff(time_range: str, now: float) -> str:
    """ISO cutoff for a 1h/24h/7d/30d window; unknown ranges fall back to 24h."""
    seconds = TIME_RANGES.get(time_range, TIME_RANGES["24h"])
    return epoch_to_iso(now - seconds)
