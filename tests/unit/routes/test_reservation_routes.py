"""
Unit tests for the reservation intake and lookup routes.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from tests.fakes import InMemoryStore, RecordingMailer

URL = "/api/reservations"


@pytest.mark.unit
def test_create_returns_201_with_reservation(
    api_client: TestClient, store: InMemoryStore, mailer: RecordingMailer, booking_request: dict
) -> None:
    response = api_client.post(URL, json=booking_request)

    assert response.status_code == 201
    body = response.json()
    assert body["ok"] is True
    assert body["email_status"] == "sent"
    reservation = body["reservation"]
    assert reservation["status"] == "pendente"
    assert reservation["checkin"] == "2025-10-12"
    assert reservation["total"] == 750.0
    assert "reuse" not in reservation
    assert len(store.inserts) == 1
    assert len(mailer.sent) == 1


@pytest.mark.unit
def test_conflict_with_confirmed_stay_returns_409(
    api_client: TestClient,
    make_reservation: Callable[..., dict[str, Any]],
    store: InMemoryStore,
    booking_request: dict,
) -> None:
    make_reservation(
        status="confirmada",
        checkin=date(2025, 10, 14),
        checkout=date(2025, 10, 16),
        expira_em=None,
    )

    response = api_client.post(URL, json=booking_request)

    assert response.status_code == 409
    assert response.json() == {"error": "Conflito de datas", "code": "DATE_CONFLICT"}
    assert store.inserts == []


@pytest.mark.unit
def test_back_to_back_stay_is_accepted(
    api_client: TestClient, make_reservation: Callable[..., dict[str, Any]], booking_request: dict
) -> None:
    make_reservation(
        status="confirmada",
        checkin=date(2025, 10, 10),
        checkout=date(2025, 10, 12),
        expira_em=None,
    )

    response = api_client.post(URL, json=booking_request)

    assert response.status_code == 201


@pytest.mark.unit
def test_same_guest_pending_hold_is_reused(
    api_client: TestClient,
    make_reservation: Callable[..., dict[str, Any]],
    store: InMemoryStore,
    mailer: RecordingMailer,
    booking_request: dict,
) -> None:
    existing = make_reservation(
        checkin=date(2025, 10, 12),
        checkout=date(2025, 10, 15),
        hospede_email="JOAO@example.com",
        expira_em=None,
    )

    response = api_client.post(URL, json=booking_request)

    assert response.status_code == 201
    reservation = response.json()["reservation"]
    assert reservation["id"] == existing["id"]
    assert reservation["reuse"] is True
    assert reservation["hospede_nome"] == "Maria Souza"
    assert store.inserts == []
    assert mailer.sent == []


@pytest.mark.unit
def test_checkout_before_checkin_returns_400(api_client: TestClient, booking_request: dict) -> None:
    response = api_client.post(URL, json={**booking_request, "checkout": "2025-10-12"})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.unit
def test_missing_guest_field_returns_400(api_client: TestClient, booking_request: dict) -> None:
    guest = {k: v for k, v in booking_request["hospede"].items() if k != "telefone"}

    response = api_client.post(URL, json={**booking_request, "hospede": guest})

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert any(item["field"].endswith(("phone", "telefone")) for item in body["detail"])


@pytest.mark.unit
def test_store_failure_returns_structured_error(
    api_client: TestClient, store: InMemoryStore, booking_request: dict, monkeypatch: pytest.MonkeyPatch
) -> None:
    from flat_booking.errors import StoreError

    def failing_list(*args: Any, **kwargs: Any) -> list:
        raise StoreError("Failed to query reservas", detail="timeout", status_code=504)

    monkeypatch.setattr(store, "list", failing_list)

    response = api_client.post(URL, json=booking_request)

    assert response.status_code == 500
    assert response.json()["code"] == "STORE_ERROR"


@pytest.mark.unit
def test_get_reservation_summary(
    api_client: TestClient, make_reservation: Callable[..., dict[str, Any]]
) -> None:
    row = make_reservation(status="confirmada")

    response = api_client.get(f"{URL}/{row['id']}")

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == row["id"]
    assert body["status"] == "confirmada"
    assert body["stale"] is False
    assert "hospede_telefone" not in body


@pytest.mark.unit
def test_get_expired_pending_reservation_is_stale(
    api_client: TestClient, make_reservation: Callable[..., dict[str, Any]], now
) -> None:
    row = make_reservation(expira_em=now - timedelta(minutes=1))

    assert api_client.get(f"{URL}/{row['id']}").json()["stale"] is True


@pytest.mark.unit
def test_get_unknown_reservation_returns_404(api_client: TestClient) -> None:
    response = api_client.get(f"{URL}/does-not-exist")

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"
