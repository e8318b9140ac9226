"""
Side effects of a confirmed reservation: the confirmation email (with an
.ics invite) and the hold on the flat's Google Calendar.

Each effect reports a status string instead of raising, so one failing
effect never prevents the other or the webhook acknowledgement.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import structlog

from flat_booking.config import Settings
from flat_booking.db.readers.reservations import get_reservation
from flat_booking.db.writers.reservations import (
    claim_confirmation_email,
    record_confirmation_sent,
    release_confirmation_email,
)
from flat_booking.errors import (
    CalendarError,
    ConfigurationError,
    EmailDeliveryError,
    MissingGuestEmailError,
    ReservationNotConfirmedError,
    ReservationNotFoundError,
    StoreError,
)
from flat_booking.gcal.client import CalendarClient
from flat_booking.metrics import side_effects_total
from flat_booking.notifications import templates
from flat_booking.notifications.email import Attachment, Mailer, OutgoingEmail
from flat_booking.notifications.ics import ICS_FILENAME, ICS_MIME_TYPE, build_ics, reservation_uid
from flat_booking.schemas.reservations import Reservation
from flat_booking.store.base import Store
from flat_booking.utils.datetime import stay_window, utc_now

logger = structlog.get_logger(__name__)


def build_confirmation_email(
    reservation: Reservation,
    settings: Settings,
    resend: bool = False,
    now: Optional[datetime] = None,
) -> OutgoingEmail:
    """Compose the confirmation email with the stay's .ics attached."""
    if reservation.checkin is None or reservation.checkout is None:
        raise ValueError(f"Reservation {reservation.id} has no stay dates")

    start, end = stay_window(reservation.checkin, reservation.checkout, settings.timezone)
    ics = build_ics(
        summary=templates.ics_summary(reservation),
        description=templates.stay_description(reservation),
        start=start,
        end=end,
        uid=reservation_uid(reservation.id),
        now=now,
    )
    return OutgoingEmail(
        to=[reservation.guest_email or ""],
        subject=templates.confirmation_subject(reservation, resend=resend),
        text=templates.confirmation_text(reservation, resend=resend),
        html=templates.confirmation_html(reservation, resend=resend),
        attachments=[Attachment(ICS_FILENAME, ics.encode("utf-8"), ICS_MIME_TYPE)],
    )


def _release_claim(store: Store, reservation_id: Any) -> None:
    """Release the email claim; a store failure here is logged, not raised."""
    try:
        release_confirmation_email(store, reservation_id)
    except StoreError as e:
        logger.error(
            "confirmation_email_release_failed",
            reservation_id=reservation_id,
            error=e.message,
        )


def send_confirmation_email(
    store: Store,
    mailer: Optional[Mailer],
    reservation: Reservation,
    settings: Settings,
    now: Optional[datetime] = None,
) -> str:
    """
    Send the confirmation email at most once per reservation.

    Only the caller that wins the ``confirmacao_enviada_em`` claim sends; a
    failed send releases the claim so a later delivery (or a manual resend)
    can try again. Store and provider failures are reported as "failed".

    Returns:
        str: "sent", "already_sent", "failed" or "skipped"
    """
    now = now or utc_now()

    if mailer is None or not reservation.guest_email:
        logger.info(
            "confirmation_email_skipped",
            reservation_id=reservation.id,
            reason="no_mailer" if mailer is None else "no_guest_email",
        )
        side_effects_total.labels(effect="confirmation_email", status="skipped").inc()
        return "skipped"

    try:
        claimed = claim_confirmation_email(store, reservation.id, now)
    except StoreError as e:
        logger.error(
            "confirmation_email_claim_failed",
            reservation_id=reservation.id,
            error=e.message,
            detail=e.detail,
        )
        side_effects_total.labels(effect="confirmation_email", status="failed").inc()
        return "failed"
    if not claimed:
        logger.info("confirmation_email_already_sent", reservation_id=reservation.id)
        side_effects_total.labels(effect="confirmation_email", status="skipped").inc()
        return "already_sent"

    try:
        mailer.send(build_confirmation_email(reservation, settings, now=now))
    except EmailDeliveryError as e:
        logger.error(
            "confirmation_email_failed",
            reservation_id=reservation.id,
            error=e.message,
            detail=e.detail,
        )
        _release_claim(store, reservation.id)
        side_effects_total.labels(effect="confirmation_email", status="failed").inc()
        return "failed"
    except Exception as e:
        logger.exception("confirmation_email_failed", reservation_id=reservation.id, error=str(e))
        _release_claim(store, reservation.id)
        side_effects_total.labels(effect="confirmation_email", status="failed").inc()
        return "failed"

    logger.info(
        "confirmation_email_sent",
        reservation_id=reservation.id,
        guest_email=reservation.guest_email,
    )
    side_effects_total.labels(effect="confirmation_email", status="sent").inc()
    return "sent"


def place_calendar_hold(
    calendar: Optional[CalendarClient],
    reservation: Reservation,
    settings: Settings,
) -> str:
    """
    Block the stay on the flat's Google Calendar, idempotently.

    Returns:
        str: "created", "reused", "failed" or "skipped" (no calendar for this flat
             or no service account configured)
    """
    calendar_id = settings.flat_calendar_ids.get(reservation.flat_slug or "")
    if calendar is None or not calendar_id:
        side_effects_total.labels(effect="calendar_hold", status="skipped").inc()
        return "skipped"
    if reservation.checkin is None or reservation.checkout is None:
        side_effects_total.labels(effect="calendar_hold", status="skipped").inc()
        return "skipped"

    start, end = stay_window(reservation.checkin, reservation.checkout, settings.timezone)
    try:
        _, created = calendar.ensure_hold(
            calendar_id,
            reservation.id,
            summary=templates.calendar_summary(reservation),
            description=templates.calendar_description(reservation),
            start=start,
            end=end,
        )
    except CalendarError as e:
        logger.error(
            "calendar_hold_failed",
            reservation_id=reservation.id,
            flat_slug=reservation.flat_slug,
            error=e.message,
            detail=e.detail,
        )
        side_effects_total.labels(effect="calendar_hold", status="failed").inc()
        return "failed"
    except Exception as e:
        logger.exception("calendar_hold_failed", reservation_id=reservation.id, error=str(e))
        side_effects_total.labels(effect="calendar_hold", status="failed").inc()
        return "failed"

    status = "created" if created else "reused"
    side_effects_total.labels(effect="calendar_hold", status=status).inc()
    return status


def resend_confirmation(
    store: Store,
    mailer: Optional[Mailer],
    reservation_id: Any,
    settings: Settings,
    now: Optional[datetime] = None,
) -> Reservation:
    """
    Re-send the confirmation email of a confirmed reservation on demand.

    Unlike the webhook path this always sends, then records the send time.

    Raises:
        ReservationNotFoundError: If the reservation does not exist
        ReservationNotConfirmedError: If it is still pending
        MissingGuestEmailError: If it has no guest email
        ConfigurationError: If no email provider is configured
        EmailDeliveryError: If the provider rejects the message
    """
    now = now or utc_now()

    reservation = get_reservation(store, reservation_id)
    if reservation is None:
        raise ReservationNotFoundError(reservation_id)
    if not reservation.is_confirmed:
        raise ReservationNotConfirmedError(
            "Reserva não confirmada", detail={"status": reservation.status}
        )
    if not reservation.guest_email:
        raise MissingGuestEmailError("Reserva sem e-mail do hóspede")
    if mailer is None:
        raise ConfigurationError("No email provider configured")

    try:
        mailer.send(build_confirmation_email(reservation, settings, resend=True, now=now))
    except EmailDeliveryError:
        side_effects_total.labels(effect="resend_email", status="failed").inc()
        raise

    record_confirmation_sent(store, reservation.id, now)
    side_effects_total.labels(effect="resend_email", status="sent").inc()
    logger.info(
        "confirmation_email_resent",
        reservation_id=reservation.id,
        guest_email=reservation.guest_email,
    )
    return reservation
