"""Google Calendar client used to block a flat's calendar for a confirmed stay."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import quote

import requests
import structlog

from flat_booking.config import REFERENCE_TIMEZONE
from flat_booking.errors import CalendarError
from flat_booking.gcal.auth import get_access_token, token_cache
from flat_booking.network.client import send_request

logger = structlog.get_logger(__name__)

CALENDAR_API = "https://www.googleapis.com/calendar/v3"
RESERVATION_PROPERTY = "reservaId"


def _rfc3339_utc(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class CalendarClient:
    """
    Minimal events client authenticated as a service account.

    Args:
        client_email: Service account email
        private_key: PEM-encoded RSA private key
        timezone_name: Zone the event wall-clock times are expressed in
    """

    def __init__(
        self,
        client_email: str,
        private_key: str,
        timezone_name: str = REFERENCE_TIMEZONE,
    ) -> None:
        self.client_email = client_email
        self.private_key = private_key
        self.timezone_name = timezone_name

    def _events_url(self, calendar_id: str) -> str:
        return f"{CALENDAR_API}/calendars/{quote(calendar_id, safe='')}/events"

    def _headers(self) -> dict[str, str]:
        token = get_access_token(self.client_email, self.private_key)
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    def _send(
        self, method: str, url: str, endpoint: str, retries: int = 0, **kwargs: Any
    ) -> requests.Response:
        """Send an authenticated request, refreshing the token once on a 401."""
        res = send_request(
            method,
            url,
            provider="google",
            endpoint=endpoint,
            retries=retries,
            headers=self._headers(),
            **kwargs,
        )
        if res.status_code == 401:
            logger.warning("google_token_rejected_refreshing", endpoint=endpoint)
            token_cache.invalidate(self.client_email)
            res = send_request(
                method,
                url,
                provider="google",
                endpoint=endpoint,
                retries=retries,
                headers=self._headers(),
                **kwargs,
            )
        return res

    def find_event(
        self,
        calendar_id: str,
        reservation_id: Any,
        start: datetime,
        end: datetime,
    ) -> Optional[dict[str, Any]]:
        """
        Look for an event already tagged with this reservation id in the stay window.

        Returns:
            Optional[dict]: The first matching event or None
        """
        params = {
            "timeMin": _rfc3339_utc(start),
            "timeMax": _rfc3339_utc(end),
            "privateExtendedProperty": f"{RESERVATION_PROPERTY}={reservation_id}",
            "maxResults": 2,
            "singleEvents": "true",
        }
        try:
            res = self._send(
                "GET", self._events_url(calendar_id), "events.list", retries=1, params=params
            )
        except requests.RequestException as e:
            raise CalendarError("Calendar search failed", detail=str(e)) from e

        if not res.ok:
            raise CalendarError(
                "Calendar search rejected", detail=res.text, status_code=res.status_code
            )
        items = res.json().get("items") or []
        return items[0] if items else None

    def create_event(
        self,
        calendar_id: str,
        reservation_id: Any,
        summary: str,
        description: str,
        start: datetime,
        end: datetime,
    ) -> dict[str, Any]:
        body = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": start.isoformat(), "timeZone": self.timezone_name},
            "end": {"dateTime": end.isoformat(), "timeZone": self.timezone_name},
            "extendedProperties": {"private": {RESERVATION_PROPERTY: str(reservation_id)}},
        }
        try:
            res = self._send("POST", self._events_url(calendar_id), "events.insert", json=body)
        except requests.RequestException as e:
            raise CalendarError("Calendar event creation failed", detail=str(e)) from e

        if not res.ok:
            raise CalendarError(
                "Calendar event creation rejected", detail=res.text, status_code=res.status_code
            )
        event: dict[str, Any] = res.json()
        return event

    def ensure_hold(
        self,
        calendar_id: str,
        reservation_id: Any,
        summary: str,
        description: str,
        start: datetime,
        end: datetime,
    ) -> tuple[dict[str, Any], bool]:
        """
        Create the stay's calendar event unless one already exists.

        Args:
            calendar_id: Target Google Calendar id
            reservation_id: Reservation the event is tagged with
            summary: Event title
            description: Event body
            start: Aware check-in instant
            end: Aware check-out instant

        Returns:
            tuple[dict, bool]: The event and whether it was created by this call
        """
        existing = self.find_event(calendar_id, reservation_id, start, end)
        if existing:
            logger.info(
                "calendar_hold_exists",
                reservation_id=str(reservation_id),
                event_id=existing.get("id"),
            )
            return existing, False

        event = self.create_event(calendar_id, reservation_id, summary, description, start, end)
        logger.info(
            "calendar_hold_created",
            reservation_id=str(reservation_id),
            calendar_id=calendar_id,
            event_id=event.get("id"),
        )
        return event, True
