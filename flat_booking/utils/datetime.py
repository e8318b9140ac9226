"""UTC and reference-timezone date utilities."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import TypeAdapter, ValidationError

from flat_booking.config import REFERENCE_TIMEZONE

CHECKIN_TIME = time(14, 0)
CHECKOUT_TIME = time(12, 0)

# Accepts any fraction length and a trailing Z, unlike datetime.fromisoformat on 3.10
_DATETIME = TypeAdapter(datetime)


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    This function should be used instead of datetime.now() or datetime.utcnow()
    to ensure all timestamps are timezone-aware and stored in UTC.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def parse_iso_datetime(text: str) -> datetime:
    """
    Parse an ISO 8601 datetime string.

    Raises:
        ValueError: If the text is not a datetime
    """
    try:
        return _DATETIME.validate_python(text.strip())
    except ValidationError as e:
        raise ValueError(f"Invalid datetime: {text!r}") from e


def to_calendar_date(value: Any, tz_name: str = REFERENCE_TIMEZONE) -> date:
    """
    Normalize a date-like value to a calendar date in the reference time zone.

    Plain dates and "YYYY-MM-DD" strings are taken as-is. Datetimes (or ISO
    datetime strings) carrying an offset are first converted to the reference
    zone; naive datetimes are assumed to already be local.

    Args:
        value: date, datetime or ISO 8601 string
        tz_name: IANA zone name used as reference

    Returns:
        date: The normalized calendar date

    Raises:
        ValueError: If the value cannot be interpreted as a date
    """
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        return value
    elif isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        moment = parse_iso_datetime(text)
    else:
        raise ValueError(f"Unsupported date value: {value!r}")

    if moment.tzinfo is not None:
        moment = moment.astimezone(ZoneInfo(tz_name))
    return moment.date()


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a stored timestamp (ISO string or datetime) into an aware UTC datetime.

    Returns None for empty values. Naive values are taken as UTC.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        moment = value
    else:
        moment = parse_iso_datetime(str(value))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def local_instant(day: date, at: time, tz_name: str = REFERENCE_TIMEZONE) -> datetime:
    """Combine a calendar date and a wall-clock time in the given zone."""
    return datetime.combine(day, at, tzinfo=ZoneInfo(tz_name))


def stay_window(
    checkin: date,
    checkout: date,
    tz_name: str = REFERENCE_TIMEZONE,
    checkin_time: time = CHECKIN_TIME,
    checkout_time: time = CHECKOUT_TIME,
) -> tuple[datetime, datetime]:
    """
    Return the (start, end) instants of a stay.

    Example:
        >>> start, end = stay_window(date(2025, 10, 8), date(2025, 10, 10))
        >>> start.isoformat()
        '2025-10-08T14:00:00-03:00'
    """
    return (
        local_instant(checkin, checkin_time, tz_name),
        local_instant(checkout, checkout_time, tz_name),
    )


def plus_minutes(moment: datetime, minutes: int) -> datetime:
    return moment + timedelta(minutes=minutes)
