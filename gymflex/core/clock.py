"""Time helpers shared by the check-in domain."""
from collections.abc import Callable
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Convert a datetime to UTC, treating naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def truncate_to_millis(dt: datetime) -> datetime:
    """Drop sub-millisecond precision, which the token format does not carry."""
    return dt.replace(microsecond=dt.microsecond - dt.microsecond % 1000)


def get_timezone(name: str) -> tzinfo:
    """Resolve an IANA zone name; "UTC" works without the system tz database."""
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)
