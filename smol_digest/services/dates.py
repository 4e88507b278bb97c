from __future__ import annotations

from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

from smol_digest.models.issue import UNKNOWN_DAY_KEY

UNKNOWN_DATE_LABEL = "Unknown date"


def parse_feed_date(value: str | None) -> datetime | None:
    """Parse an ISO-8601 or RFC 2822 timestamp into an aware UTC datetime."""
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None

    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def format_day_key(date: datetime | None) -> str:
    if date is None:
        return UNKNOWN_DAY_KEY
    return _as_utc(date).strftime("%Y-%m-%d")


def format_day_label(date: datetime | None) -> str:
    if date is None:
        return UNKNOWN_DATE_LABEL
    value = _as_utc(date)
    return f"{value:%B} {value.day}, {value.year}"


def format_date_time(date: datetime | None) -> str:
    if date is None:
        return UNKNOWN_DATE_LABEL
    value = _as_utc(date)
    return f"{value:%A}, {value:%B} {value.day}, {value.year} at {_short_time(value)}"


def format_date_time_short(date: datetime | None) -> str:
    if date is None:
        return UNKNOWN_DATE_LABEL
    value = _as_utc(date)
    return f"{value:%b} {value.day}, {value.year}, {_short_time(value)}"


def _short_time(value: datetime) -> str:
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {meridiem}"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
