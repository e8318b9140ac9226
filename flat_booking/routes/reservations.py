"""Reservation intake and lookup routes."""

from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, status

from flat_booking.config import Settings
from flat_booking.db.readers.reservations import PUBLIC_COLUMNS, get_reservation
from flat_booking.dependencies import get_mailer, get_settings, get_store
from flat_booking.errors import BookingError, ReservationNotFoundError
from flat_booking.notifications.email import Mailer
from flat_booking.schemas.reservations import ReservationCreatePayload
from flat_booking.services.intake import create_reservation
from flat_booking.store.base import Store
from flat_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/reservations", status_code=status.HTTP_201_CREATED)
def create_reservation_route(
    payload: ReservationCreatePayload,
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
    mailer: Optional[Mailer] = Depends(get_mailer),
) -> dict[str, Any]:
    """
    Create a pending reservation (or resume the guest's own pending one).

    Args:
        payload: Flat, dates, price and guest details

    Returns:
        dict: ``{ok, reservation, email_status}``; a resumed reservation
              carries ``reservation.reuse = true``

    Raises:
        InvalidReservationError: 400 on invalid dates
        DateConflictError: 409 when the dates are taken
    """
    try:
        result = create_reservation(store, payload, settings, mailer)
        return result.to_body()
    except BookingError:
        raise
    except Exception as e:
        logger.exception("reservation_creation_failed", flat_id=payload.flat_id, error=str(e))
        raise BookingError("Erro inesperado", detail=str(e)) from e


@router.get("/reservations/{reservation_id}")
def get_reservation_route(
    reservation_id: str,
    store: Store = Depends(get_store),
) -> dict[str, Any]:
    """
    Public summary of a reservation, polled by the payment result pages.

    Returns:
        dict: Summary columns plus ``stale`` (pending hold already expired)
    """
    reservation = get_reservation(store, reservation_id, select=PUBLIC_COLUMNS)
    if reservation is None:
        raise ReservationNotFoundError(reservation_id)

    body = reservation.to_public()
    body["stale"] = reservation.is_stale(utc_now())
    return body
