"""Timestamp parsing and formatting utilities."""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

_MS_PER_SECOND = 1000


def parse_timestamp(value: str) -> int:
    """Parse a date string or raw integer into a Unix timestamp.

    Accept ISO 8601 date strings (``2024-01-01``, ``2024-01-01T12:00:00``)
    or raw integer Unix timestamps.

    Args:
        value: Date string or integer timestamp.

    Returns:
        Unix timestamp in seconds.

    Raises:
        ValueError: If the value cannot be parsed.

    """
    try:
        return int(value)
    except ValueError:
        pass

    for fmt in ("%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"):
        try:
            dt = datetime.strptime(value, fmt).replace(tzinfo=UTC)
            return int(dt.timestamp())
        except ValueError:
            continue

    msg = f"Cannot parse timestamp: {value!r}. Use ISO 8601 (YYYY-MM-DD) or a Unix timestamp."
    raise ValueError(msg)


def format_clock_time(epoch_ms: int, timezone: str) -> str:
    """Render epoch milliseconds as ``HH:MM:SS`` wall-clock time in a timezone.

    Args:
        epoch_ms: Epoch milliseconds.
        timezone: IANA timezone name (e.g. ``Europe/Moscow``).

    Returns:
        Time of day string in the given timezone.

    """
    dt = datetime.fromtimestamp(epoch_ms / _MS_PER_SECOND, tz=ZoneInfo(timezone))
    return dt.strftime("%H:%M:%S")
