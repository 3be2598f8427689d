"""
Shared datetime helpers.
"""

from datetime import date, datetime, timezone

SECONDS_PER_DAY = 24 * 60 * 60


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Return a timezone-aware UTC datetime."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO 8601 timestamp or plain date and normalize it to UTC.

    Accepts ``datetime`` and ``date`` objects as well; anything unparseable
    yields None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc(parsed)


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Number of whole days elapsed from ``earlier`` to ``later`` (floored)."""
    delta = ensure_utc(later) - ensure_utc(earlier)
    return int(delta.total_seconds() // SECONDS_PER_DAY)


def to_date_string(value: datetime | None) -> str | None:
    """Format a datetime as ``YYYY-MM-DD`` in UTC."""
    if value is None:
        return None
    return ensure_utc(value).date().isoformat()


def to_timestamp_string(value: datetime | None) -> str | None:
    """Format a datetime as an ISO 8601 UTC timestamp with a ``Z`` suffix."""
    if value is None:
        return None
    return ensure_utc(value).replace(microsecond=0).isoformat().replace("+00:00", "Z")
