from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog

from flat_booking.schemas.reservations import Reservation, ReservationStatus
from flat_booking.store.base import RESERVATIONS_TABLE, Row, Store

logger = structlog.get_logger(__name__)


def insert_reservation(store: Store, row: Row) -> Reservation:
    """
    Insert a new reservation row and return it as stored.

    Args:
        store: Store adapter
        row: Column mapping (see models.reservations.Reservation)

    Returns:
        Reservation: Created reservation with its store-assigned id

    Raises:
        DateConflictError: If the store's exclusion constraint rejects the range
    """
    created = store.insert(RESERVATIONS_TABLE, row)
    logger.info(
        "reservation_inserted",
        reservation_id=created.get("id"),
        flat_id=created.get("flat_id"),
        checkin=str(created.get("checkin")),
        checkout=str(created.get("checkout")),
    )
    return Reservation.model_validate(created)


def mark_confirmed(store: Store, reservation_id: Any) -> None:
    """
    Set a reservation's status to confirmed.

    Writing ``confirmada`` over ``confirmada`` changes nothing, so repeated
    deliveries of the same approved payment are harmless. Callers skip this
    for reservations already confirmed or paid.
    """
    store.patch(
        RESERVATIONS_TABLE,
        reservation_id,
        {"status": ReservationStatus.CONFIRMED.value},
    )


def claim_confirmation_email(store: Store, reservation_id: Any, now: datetime) -> bool:
    """
    Atomically claim the right to send the confirmation email.

    The conditional update only succeeds while ``confirmacao_enviada_em`` is
    null, so among concurrent webhook deliveries exactly one wins.

    Returns:
        bool: True if the caller won the claim and must send the email
    """
    updated = store.patch(
        RESERVATIONS_TABLE,
        reservation_id,
        {"confirmacao_enviada_em": now},
        where={"confirmacao_enviada_em": None},
    )
    return updated > 0


def release_confirmation_email(store: Store, reservation_id: Any) -> None:
    """Undo a claim after a failed send so a redelivery or resend can retry."""
    store.patch(RESERVATIONS_TABLE, reservation_id, {"confirmacao_enviada_em": None})


def record_confirmation_sent(store: Store, reservation_id: Any, now: datetime) -> None:
    store.patch(RESERVATIONS_TABLE, reservation_id, {"confirmacao_enviada_em": now})
