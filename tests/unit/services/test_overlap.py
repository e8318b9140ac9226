"""
Unit tests for the overlap checker.
"""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from flat_booking.schemas.reservations import Reservation
from flat_booking.services.overlap import (
    find_blocking_reservations,
    find_reusable_pending,
    has_blocking_overlap,
    is_blocking,
    ranges_overlap,
)
from tests.fakes import NOW


def _reservation(**fields: object) -> Reservation:
    data: dict[str, object] = {
        "id": "r-1",
        "flat_id": "1",
        "checkin": date(2025, 10, 8),
        "checkout": date(2025, 10, 10),
        "status": "pendente",
        "hospede_email": "maria@example.com",
        "expira_em": NOW + timedelta(minutes=10),
    }
    data.update(fields)
    return Reservation.model_validate(data)


@pytest.mark.unit
def test_back_to_back_ranges_do_not_overlap() -> None:
    assert not ranges_overlap(date(2025, 1, 10), date(2025, 1, 12), date(2025, 1, 12), date(2025, 1, 15))
    assert not ranges_overlap(date(2025, 1, 12), date(2025, 1, 15), date(2025, 1, 10), date(2025, 1, 12))


@pytest.mark.unit
def test_shared_night_overlaps() -> None:
    assert ranges_overlap(date(2025, 1, 10), date(2025, 1, 13), date(2025, 1, 12), date(2025, 1, 15))
    # Containment
    assert ranges_overlap(date(2025, 1, 10), date(2025, 1, 20), date(2025, 1, 12), date(2025, 1, 13))


@pytest.mark.unit
@pytest.mark.parametrize("status", ["confirmada", "pago", "CONFIRMADA"])
def test_confirmed_reservations_always_block(status: str) -> None:
    reservation = _reservation(status=status, expira_em=NOW - timedelta(days=1))
    assert is_blocking(reservation, NOW)


@pytest.mark.unit
def test_pending_blocks_until_it_expires() -> None:
    assert is_blocking(_reservation(expira_em=NOW + timedelta(seconds=1)), NOW)
    assert not is_blocking(_reservation(expira_em=NOW), NOW)
    assert not is_blocking(_reservation(expira_em=NOW - timedelta(minutes=5)), NOW)


@pytest.mark.unit
def test_pending_without_expiry_blocks() -> None:
    assert is_blocking(_reservation(expira_em=None), NOW)


@pytest.mark.unit
def test_unknown_status_never_blocks() -> None:
    assert not is_blocking(_reservation(status="cancelada"), NOW)


@pytest.mark.unit
def test_find_blocking_reservations_filters_by_flat_and_range(store, make_reservation) -> None:
    blocking = make_reservation(status="confirmada")
    make_reservation(flat_id="2", status="confirmada")
    make_reservation(checkin=date(2025, 10, 10), checkout=date(2025, 10, 12), status="confirmada")
    make_reservation(status="pendente", expira_em=NOW - timedelta(minutes=1))

    blockers = find_blocking_reservations(store, "1", date(2025, 10, 9), date(2025, 10, 10), now=NOW)

    assert [b.id for b in blockers] == [blocking["id"]]


@pytest.mark.unit
def test_exclude_reservation_id_removes_one_record(store, make_reservation) -> None:
    row = make_reservation(status="confirmada")

    assert has_blocking_overlap(store, "1", date(2025, 10, 8), date(2025, 10, 10), now=NOW)
    assert not has_blocking_overlap(
        store, "1", date(2025, 10, 8), date(2025, 10, 10), exclude_reservation_id=row["id"], now=NOW
    )


@pytest.mark.unit
def test_overlap_query_only_reads_active_statuses(store, make_reservation) -> None:
    make_reservation(status="cancelada")

    assert not has_blocking_overlap(store, "1", date(2025, 10, 8), date(2025, 10, 10), now=NOW)


@pytest.mark.unit
def test_reusable_pending_for_same_guest_case_insensitive() -> None:
    hold = _reservation(hospede_email="Maria@Example.com")

    assert find_reusable_pending([hold], "maria@example.COM", NOW) is hold


@pytest.mark.unit
def test_no_reuse_when_other_guest_or_confirmed_blocks() -> None:
    mine = _reservation(id="mine")
    theirs = _reservation(id="theirs", hospede_email="other@example.com")
    confirmed = _reservation(id="confirmed", status="confirmada")

    assert find_reusable_pending([theirs], "maria@example.com", NOW) is None
    assert find_reusable_pending([mine, theirs], "maria@example.com", NOW) is None
    assert find_reusable_pending([mine, confirmed], "maria@example.com", NOW) is None
    assert find_reusable_pending([], "maria@example.com", NOW) is None
