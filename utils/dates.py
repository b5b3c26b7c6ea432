"""Date parsing helpers for request payloads and query parameters."""
from datetime import date, datetime, time, timedelta, timezone
from typing import Any


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the form MongoDB hands back)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def is_date_only(raw: str) -> bool:
    """True for strings like '2024-01-31' that carry no time component."""
    return len(raw.strip()) == 10 and "T" not in raw and " " not in raw.strip()


def parse_datetime(value: Any) -> datetime:
    """
    Parses a date or datetime given as a string, date or datetime.
    Accepts 'YYYY-MM-DD' and ISO-8601 datetimes (a trailing 'Z' is treated as UTC).
    Raises ValueError when the value cannot be interpreted.
    """
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid date: {value!r}")
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return to_naive_utc(datetime.fromisoformat(raw))
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}")


def end_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min) + timedelta(days=1) - timedelta(milliseconds=1)
