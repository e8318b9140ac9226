"""
Unit tests for metrics endpoint.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from flat_booking.main import app
from flat_booking.metrics import (
    api_latency,
    api_requests,
    reservations_total,
    side_effects_total,
    webhook_notifications_total,
)


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client."""
    return TestClient(app)


@pytest.mark.unit
def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    """Test that /metrics endpoint returns Prometheus text format."""
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]


@pytest.mark.unit
def test_metrics_endpoint_contains_booking_metrics(client: TestClient) -> None:
    """Test that /metrics includes the reservation, webhook and provider metrics."""
    reservations_total.labels(outcome="created").inc()
    webhook_notifications_total.labels(event_type="payment", outcome="confirmed").inc()
    side_effects_total.labels(effect="confirmation_email", status="sent").inc()
    api_requests.labels(provider="mercadopago", endpoint="payments", status_code="200").inc()
    api_latency.labels(provider="mercadopago", endpoint="payments").observe(0.3)

    content = client.get("/metrics").text

    assert "booking_reservations_total" in content
    assert "booking_webhook_notifications_total" in content
    assert "booking_side_effects_total" in content
    assert "booking_api_requests_total" in content
    assert "booking_api_latency_seconds" in content
    assert "# HELP booking_reservations_total" in content
    assert "# TYPE booking_reservations_total counter" in content
