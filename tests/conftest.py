"""
Shared fixtures: an in-memory store, a recording mailer, settings and an
API client wired through dependency overrides.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Generator
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from flat_booking.config import Settings
from tests.fakes import NOW, InMemoryStore, RecordingMailer


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        store_backend="postgrest",
        supabase_url="https://db.test",
        supabase_service_key="service-key",
        mp_access_token="TEST-mp-token",
        app_base_url="https://flats.test",
        resend_api_key="re_test",
        email_from="Sucesso Flat's <reservas@flats.test>",
        flat_calendar_ids={"flat-1": "cal-flat-1@group.calendar.google.com"},
        pending_hold_minutes=30,
    )


@pytest.fixture
def make_reservation(store: InMemoryStore) -> Callable[..., dict[str, Any]]:
    """Factory inserting a stored reservation row; keyword arguments override columns."""

    def _make(**overrides: Any) -> dict[str, Any]:
        row: dict[str, Any] = {
            "id": str(uuid.uuid4()),
            "flat_id": "1",
            "flat_slug": "flat-1",
            "flat_nome": "Flat 1 — Vista Parque",
            "checkin": date(2025, 10, 8),
            "checkout": date(2025, 10, 10),
            "noites": 2,
            "preco_noite": Decimal("250.00"),
            "total": Decimal("500.00"),
            "hospede_nome": "Maria Souza",
            "hospede_email": "maria@example.com",
            "hospede_telefone": "+55 86 99999-0000",
            "hospedes": 2,
            "hora_chegada": "15:00",
            "obs": None,
            "status": "pendente",
            "expira_em": NOW + timedelta(minutes=30),
            "confirmacao_enviada_em": None,
            "created_at": NOW - timedelta(minutes=1),
        }
        row.update(overrides)
        return store.add("reservas", row)

    return _make


@pytest.fixture
def booking_request() -> dict[str, Any]:
    """Body posted by the reservation page (Portuguese keys, as the site sends them)."""
    return {
        "flat_id": "1",
        "flat_slug": "flat-1",
        "flat_nome": "Flat 1 — Vista Parque",
        "checkin": "2025-10-12",
        "checkout": "2025-10-15",
        "noites": 3,
        "preco_noite": 250,
        "total": 750,
        "hospede": {
            "nome": "João Lima",
            "email": "joao@example.com",
            "telefone": "+55 86 98888-1111",
            "hospedes": 2,
            "hora_chegada": "16:00",
            "obs": "Chegamos de carro",
        },
    }


@pytest.fixture
def payment_client() -> Mock:
    return Mock()


@pytest.fixture
def api_client(
    store: InMemoryStore,
    mailer: RecordingMailer,
    settings: Settings,
    payment_client: Mock,
) -> Generator[TestClient, None, None]:
    """TestClient with every external collaborator replaced by a test double."""
    from flat_booking import dependencies
    from flat_booking.main import app

    app.dependency_overrides[dependencies.get_settings] = lambda: settings
    app.dependency_overrides[dependencies.get_store] = lambda: store
    app.dependency_overrides[dependencies.get_optional_store] = lambda: store
    app.dependency_overrides[dependencies.get_mailer] = lambda: mailer
    app.dependency_overrides[dependencies.get_calendar] = lambda: None
    app.dependency_overrides[dependencies.get_payment_client] = lambda: payment_client
    app.dependency_overrides[dependencies.get_optional_payment_client] = lambda: payment_client

    yield TestClient(app)

    app.dependency_overrides.clear()
