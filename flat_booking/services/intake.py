"""
Reservation intake: validate a booking request, check availability, then
create (or reuse) a pending reservation and notify the guest.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import structlog

from flat_booking.config import Settings
from flat_booking.db.readers.reservations import get_reservation
from flat_booking.db.writers.reservations import insert_reservation
from flat_booking.errors import DateConflictError, EmailDeliveryError, InvalidReservationError
from flat_booking.metrics import reservations_total, side_effects_total
from flat_booking.notifications import templates
from flat_booking.notifications.email import Mailer, OutgoingEmail
from flat_booking.schemas.reservations import (
    Reservation,
    ReservationCreatePayload,
    ReservationStatus,
)
from flat_booking.services.overlap import find_blocking_reservations, find_reusable_pending
from flat_booking.store.base import Row, Store
from flat_booking.utils.datetime import plus_minutes, utc_now

logger = structlog.get_logger(__name__)


@dataclass
class IntakeResult:
    reservation: Reservation
    reused: bool
    email_status: str

    def to_body(self) -> dict[str, Any]:
        reservation = self.reservation.to_public()
        if self.reused:
            reservation["reuse"] = True
        return {"ok": True, "reservation": reservation, "email_status": self.email_status}


def build_reservation_row(
    request: ReservationCreatePayload, hold_minutes: int, now: datetime
) -> Row:
    """
    Build the column mapping of a new pending reservation.

    Nights and total are derived from the normalized dates and the nightly
    price; the client's own figures are only compared, never stored.
    """
    nights = (request.checkout - request.checkin).days
    total = (request.nightly_price * nights).quantize(Decimal("0.01"))

    if nights != request.nights or total != request.total.quantize(Decimal("0.01")):
        logger.warning(
            "reservation_amount_mismatch",
            flat_id=request.flat_id,
            client_nights=request.nights,
            nights=nights,
            client_total=str(request.total),
            total=str(total),
        )

    guest = request.guest
    return {
        "flat_id": request.flat_id,
        "flat_slug": request.flat_slug,
        "flat_nome": request.flat_name,
        "checkin": request.checkin,
        "checkout": request.checkout,
        "noites": nights,
        "preco_noite": request.nightly_price,
        "total": total,
        "hospede_nome": guest.name,
        "hospede_email": guest.email,
        "hospede_telefone": guest.phone,
        "hospedes": guest.guests,
        "hora_chegada": guest.arrival_time,
        "obs": guest.note or None,
        "status": ReservationStatus.PENDING.value,
        "expira_em": plus_minutes(now, hold_minutes) if hold_minutes > 0 else None,
    }


def send_pending_email(
    mailer: Optional[Mailer], reservation: Reservation, hold_minutes: int
) -> str:
    """
    Tell the guest their reservation is held pending payment.

    Returns:
        str: "sent", "failed" or "skipped" (no mailer configured)
    """
    if mailer is None or not reservation.guest_email:
        side_effects_total.labels(effect="pending_email", status="skipped").inc()
        return "skipped"

    try:
        mailer.send(
            OutgoingEmail(
                to=[reservation.guest_email],
                subject=templates.pending_subject(reservation),
                text=templates.pending_text(reservation, hold_minutes),
            )
        )
    except EmailDeliveryError as e:
        logger.warning(
            "pending_email_failed",
            reservation_id=reservation.id,
            error=e.message,
            detail=e.detail,
        )
        side_effects_total.labels(effect="pending_email", status="failed").inc()
        return "failed"
    except Exception as e:
        logger.exception("pending_email_failed", reservation_id=reservation.id, error=str(e))
        side_effects_total.labels(effect="pending_email", status="failed").inc()
        return "failed"

    side_effects_total.labels(effect="pending_email", status="sent").inc()
    return "sent"


def create_reservation(
    store: Store,
    request: ReservationCreatePayload,
    settings: Settings,
    mailer: Optional[Mailer],
    now: Optional[datetime] = None,
) -> IntakeResult:
    """
    Create a pending reservation, or reuse the guest's own still-valid hold.

    Args:
        store: Store adapter
        request: Validated booking request (dates already normalized)
        settings: Service settings (hold duration)
        mailer: Email provider or None when not configured
        now: Reference time (defaults to current UTC time)

    Returns:
        IntakeResult: The stored reservation, whether it was reused, and the email outcome

    Raises:
        InvalidReservationError: If checkout is not after checkin
        DateConflictError: If another party holds any of the requested nights
    """
    now = now or utc_now()

    if request.checkout <= request.checkin:
        reservations_total.labels(outcome="invalid").inc()
        raise InvalidReservationError(
            "Período inválido (checkout deve ser após checkin)",
            detail={"checkin": str(request.checkin), "checkout": str(request.checkout)},
        )

    blockers = find_blocking_reservations(
        store, request.flat_id, request.checkin, request.checkout, now=now
    )
    if blockers:
        reusable = find_reusable_pending(blockers, request.guest.email, now)
        if reusable is None:
            reservations_total.labels(outcome="conflict").inc()
            logger.info(
                "reservation_conflict",
                flat_id=request.flat_id,
                checkin=str(request.checkin),
                checkout=str(request.checkout),
                blockers=[b.id for b in blockers],
            )
            raise DateConflictError()

        # Overlap reads are narrow; return the full stored row
        reusable = get_reservation(store, reusable.id) or reusable
        reservations_total.labels(outcome="reused").inc()
        logger.info("reservation_reused", reservation_id=reusable.id, flat_id=request.flat_id)
        return IntakeResult(reservation=reusable, reused=True, email_status="skipped")

    row = build_reservation_row(request, settings.pending_hold_minutes, now)
    try:
        created = insert_reservation(store, row)
    except DateConflictError:
        reservations_total.labels(outcome="conflict").inc()
        logger.info("reservation_conflict_constraint", flat_id=request.flat_id)
        raise

    reservations_total.labels(outcome="created").inc()
    logger.info(
        "reservation_created",
        reservation_id=created.id,
        flat_id=created.flat_id,
        guest_email=created.guest_email,
    )

    email_status = send_pending_email(mailer, created, settings.pending_hold_minutes)
    return IntakeResult(reservation=created, reused=False, email_status=email_status)
