import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt_value: datetime | None) -> datetime | None:
    """
    Ensure a datetime is timezone-aware UTC.

    Naive values read back from MongoDB are treated as UTC.
    """
    if dt_value is None:
        return None
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value.astimezone(timezone.utc)


def elapsed_ms(start: datetime, end: datetime | None = None) -> int:
    """Milliseconds between two datetimes (end defaults to now)."""
    end = end or utc_now()
    return int((ensure_utc(end) - ensure_utc(start)).total_seconds() * 1000)


def log_timestamp(dt_value: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    dt_value = ensure_utc(dt_value or utc_now())
    return dt_value.isoformat(timespec="milliseconds").replace("+00:00", "Z")
