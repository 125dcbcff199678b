"""
Time utilities.

Wall-clock timestamps are timezone-aware UTC datetimes; durations and
deadlines use the monotonic clock.
"""

import time
from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Get the current time as an aware UTC datetime.

    Returns:
        Current time in UTC.
    """
    return datetime.now(tz=UTC)


def to_iso(moment: datetime | None) -> str | None:
    """
    Format a datetime for JSON responses.

    Naive datetimes are assumed to be UTC.

    Args:
        moment: Datetime to format.

    Returns:
        ISO 8601 string, or None when moment is None.

    Example:
        >>> to_iso(datetime(2024, 1, 1, 12, 0, tzinfo=UTC))
        '2024-01-01T12:00:00+00:00'
    """
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.isoformat()


def monotonic() -> float:
    """Monotonic clock in seconds, for uptime and latency."""
    return time.monotonic()


def format_duration(seconds: float) -> str:
    """
    Format a duration for human-readable display.

    Examples:
        >>> format_duration(0.25)
        '250ms'
        >>> format_duration(42)
        '42.0s'
        >>> format_duration(3725)
        '1h02m05s'
    """
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes:02d}m{secs:02d}s"
    return f"{minutes}m{secs:02d}s"
