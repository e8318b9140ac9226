"""Calendar invite (.ics) attached to confirmation emails."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from flat_booking.utils.datetime import utc_now

DEFAULT_LOCATION = "Sucesso Flat’s — Teresina/PI"
PRODID = "-//Sucesso Flats//Booking//PT-BR"
ICS_FILENAME = "sucessoflats.ics"
ICS_MIME_TYPE = "text/calendar"


def to_utc_stamp(moment: datetime) -> str:
    """
    Format an aware datetime as an iCalendar UTC timestamp.

    Example:
        >>> from zoneinfo import ZoneInfo
        >>> to_utc_stamp(datetime(2025, 10, 8, 14, tzinfo=ZoneInfo("America/Fortaleza")))
        '20251008T170000Z'
    """
    if moment.tzinfo is None:
        raise ValueError("ICS timestamps need a timezone-aware datetime")
    return moment.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def reservation_uid(reservation_id: Any) -> str:
    return f"reserva-{reservation_id}@sucessoflats"


def build_ics(
    summary: str,
    description: str,
    start: datetime,
    end: datetime,
    uid: str,
    location: str = DEFAULT_LOCATION,
    now: Optional[datetime] = None,
) -> str:
    """
    Serialize a single-event VCALENDAR document.

    Args:
        summary: Event title
        description: Free text; newlines are escaped as ``\\n``
        start: Aware start instant
        end: Aware end instant
        uid: Stable unique id (see reservation_uid)
        location: Location line
        now: Creation timestamp (defaults to current UTC time)

    Returns:
        str: CRLF-joined iCalendar text
    """
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{uid}",
        f"DTSTAMP:{to_utc_stamp(now or utc_now())}",
        f"DTSTART:{to_utc_stamp(start)}",
        f"DTEND:{to_utc_stamp(end)}",
        f"SUMMARY:{summary}",
        "DESCRIPTION:" + (description or "").replace("\r\n", "\n").replace("\n", "\\n"),
        f"LOCATION:{location}",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines)
