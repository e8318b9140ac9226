from __future__ import annotations

from typing import Any, Optional, Sequence

from flat_booking.schemas.reservations import ACTIVE_STATUSES, Reservation
from flat_booking.store.base import FLATS_TABLE, RESERVATIONS_TABLE, Row, Store

# Columns needed to evaluate overlap and same-guest reuse
OVERLAP_COLUMNS = (
    "id",
    "flat_id",
    "checkin",
    "checkout",
    "status",
    "hospede_email",
    "expira_em",
    "created_at",
)

PUBLIC_COLUMNS = (
    "id",
    "status",
    "hospede_nome",
    "hospede_email",
    "flat_slug",
    "checkin",
    "checkout",
    "total",
    "expira_em",
)


def list_active_reservations(store: Store, flat_id: Any) -> list[Reservation]:
    """
    Fetch every reservation of a flat whose status may block new bookings.

    Staleness of pending holds is not filtered here; the overlap checker
    evaluates it against the current time.

    Args:
        store: Store adapter
        flat_id: Flat identifier

    Returns:
        list[Reservation]: Pending, confirmed and paid reservations of the flat
    """
    rows = store.list(
        RESERVATIONS_TABLE,
        {"flat_id": flat_id, "status": [s.value for s in ACTIVE_STATUSES]},
        select=OVERLAP_COLUMNS,
    )
    return [Reservation.model_validate(row) for row in rows]


def get_reservation(
    store: Store, reservation_id: Any, select: Optional[Sequence[str]] = None
) -> Optional[Reservation]:
    """
    Fetch a reservation by id (all columns unless ``select``).

    Returns:
        Optional[Reservation]: The reservation or None if it does not exist
    """
    row = store.get(RESERVATIONS_TABLE, reservation_id, select)
    return Reservation.model_validate(row) if row else None


def get_flat(store: Store, flat_id: Any) -> Optional[Row]:
    return store.get(FLATS_TABLE, flat_id, select=("id", "slug", "nome", "preco_noite", "max_hospedes"))
