"""
Overlap checker: decides whether existing reservations block a date range.

Ranges are half-open ``[checkin, checkout)``: a stay ending on the 12th and
another starting on the 12th do not overlap.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Optional

from flat_booking.db.readers.reservations import list_active_reservations
from flat_booking.schemas.reservations import Reservation
from flat_booking.store.base import Store
from flat_booking.utils.datetime import utc_now


def ranges_overlap(a_checkin: date, a_checkout: date, b_checkin: date, b_checkout: date) -> bool:
    """
    Strict half-open interval intersection.

    Example:
        >>> ranges_overlap(date(2025, 1, 10), date(2025, 1, 12), date(2025, 1, 12), date(2025, 1, 15))
        False
    """
    return a_checkin < b_checkout and a_checkout > b_checkin


def is_blocking(reservation: Reservation, now: datetime) -> bool:
    """
    Whether a reservation holds its dates at ``now``.

    Confirmed/paid reservations always hold. Pending ones hold unless their
    expiry has passed. Any other status never holds.
    """
    if reservation.is_confirmed:
        return True
    if reservation.is_pending:
        return not reservation.is_stale(now)
    return False


def select_blockers(
    reservations: Iterable[Reservation],
    checkin: date,
    checkout: date,
    now: datetime,
    exclude_reservation_id: Optional[Any] = None,
) -> list[Reservation]:
    """Filter reservations down to those overlapping the range and still holding it."""
    excluded = str(exclude_reservation_id) if exclude_reservation_id is not None else None
    blockers = []
    for reservation in reservations:
        if excluded is not None and reservation.id == excluded:
            continue
        if reservation.checkin is None or reservation.checkout is None:
            continue
        if not ranges_overlap(reservation.checkin, reservation.checkout, checkin, checkout):
            continue
        if is_blocking(reservation, now):
            blockers.append(reservation)
    return blockers


def find_blocking_reservations(
    store: Store,
    flat_id: Any,
    checkin: date,
    checkout: date,
    exclude_reservation_id: Optional[Any] = None,
    now: Optional[datetime] = None,
) -> list[Reservation]:
    """
    Return the reservations of ``flat_id`` that block ``[checkin, checkout)``.

    Args:
        store: Store adapter
        flat_id: Flat identifier
        checkin: Candidate check-in date
        checkout: Candidate check-out date (exclusive)
        exclude_reservation_id: Reservation to ignore (e.g. the one being edited)
        now: Reference time for pending expiry (defaults to current UTC time)

    Returns:
        list[Reservation]: Blocking reservations, in store order
    """
    return select_blockers(
        list_active_reservations(store, flat_id),
        checkin,
        checkout,
        now or utc_now(),
        exclude_reservation_id,
    )


def has_blocking_overlap(
    store: Store,
    flat_id: Any,
    checkin: date,
    checkout: date,
    exclude_reservation_id: Optional[Any] = None,
    now: Optional[datetime] = None,
) -> bool:
    return bool(
        find_blocking_reservations(store, flat_id, checkin, checkout, exclude_reservation_id, now)
    )


def find_reusable_pending(
    blockers: Iterable[Reservation], guest_email: str, now: datetime
) -> Optional[Reservation]:
    """
    Return the same guest's still-valid pending hold if it is all that blocks.

    Emails are compared case-insensitively. Blockers come from a single flat,
    so the flat is implicitly the same. If any blocker is confirmed or held by
    someone else, there is nothing to reuse.
    """
    wanted = (guest_email or "").strip().lower()
    blockers = list(blockers)
    if not blockers or not wanted:
        return None
    for reservation in blockers:
        if not reservation.is_pending or reservation.is_stale(now):
            return None
        if (reservation.guest_email or "").strip().lower() != wanted:
            return None
    return blockers[0]
