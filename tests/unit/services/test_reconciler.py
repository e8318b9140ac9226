"""
Unit tests for the payment webhook reconciler.
"""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import Mock

import pytest

from flat_booking.errors import DateConflictError, PaymentProviderError, StoreError
from flat_booking.services.reconciler import (
    Notification,
    ReconcileDeps,
    classify,
    parse_body,
    reconcile_notification,
    resolve_merchant_order,
)
from tests.fakes import NOW, FailingPatchStore, RecordingMailer


def _payments(payment: dict[str, Any] | None = None, order: dict[str, Any] | None = None) -> Mock:
    client = Mock()
    client.get_payment.return_value = payment or {}
    client.get_merchant_order.return_value = order or {}
    return client


def _approved(reservation_id: str) -> dict[str, Any]:
    return {"id": 987, "status": "approved", "external_reference": reservation_id}


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw, expected",
    [
        (b'{"type": "payment"}', {"type": "payment"}),
        ('"{\\"type\\": \\"payment\\"}"', {"type": "payment"}),
        ({"topic": "merchant_order"}, {"topic": "merchant_order"}),
        (b"", {}),
        (b"not json", None),
        (b"[1, 2]", None),
        (b'"just a string"', None),
    ],
)
def test_parse_body(raw: Any, expected: Any) -> None:
    assert parse_body(raw) == expected


@pytest.mark.unit
def test_classify_truncates_action_and_reads_data_id() -> None:
    notification = classify({"action": "payment.updated", "data": {"id": 123}})

    assert notification == Notification(event_type="payment", resource_id="123")


@pytest.mark.unit
def test_classify_takes_last_segment_of_resource_url() -> None:
    notification = classify(
        {"topic": "merchant_order", "resource": "https://api.mercadolibre.com/merchant_orders/555"}
    )

    assert notification == Notification(event_type="merchant_order", resource_id="555")


@pytest.mark.unit
def test_classify_falls_back_to_query_string() -> None:
    assert classify({}, {"topic": "payment", "id": "77"}) == Notification("payment", "77")
    assert classify({}, {"type": "payment", "data.id": "78"}) == Notification("payment", "78")


@pytest.mark.unit
def test_classify_rejects_unknown_type_or_missing_id() -> None:
    assert classify({"type": "subscription", "data": {"id": 1}}) is None
    assert classify({"type": "payment"}) is None
    assert classify({}) is None


@pytest.mark.unit
def test_merchant_order_paid_when_approved_payments_cover_total() -> None:
    order = {
        "external_reference": "res-1",
        "total_amount": 500,
        "payments": [
            {"status": "approved", "transaction_amount": 300},
            {"status": "rejected", "transaction_amount": 500},
            {"status": "approved", "transaction_amount": 200},
        ],
    }

    resolution = resolve_merchant_order(order)

    assert resolution.approved
    assert resolution.reservation_id == "res-1"


@pytest.mark.unit
def test_merchant_order_not_paid_when_short_or_empty() -> None:
    short = {"total_amount": 500, "payments": [{"status": "approved", "transaction_amount": 499}]}
    empty = {"total_amount": 0, "payments": []}

    assert not resolve_merchant_order(short).approved
    assert not resolve_merchant_order(empty).approved


@pytest.mark.unit
def test_approved_payment_confirms_reservation(store, mailer, settings, make_reservation) -> None:
    row = make_reservation()
    deps = ReconcileDeps(settings=settings, store=store, payments=_payments(_approved(row["id"])), mailer=mailer)

    result = reconcile_notification({"type": "payment", "data": {"id": "987"}}, {}, deps, now=NOW)

    assert result.to_body() == {"ok": True, "reservaId": row["id"], "status": "confirmada"}
    assert row["status"] == "confirmada"
    assert row["confirmacao_enviada_em"] == NOW
    assert result.email_status == "sent"
    assert len(mailer.sent) == 1
    email = mailer.sent[0]
    assert email.to == ["maria@example.com"]
    assert email.attachments[0].filename == "sucessoflats.ics"
    assert email.attachments[0].mime_type == "text/calendar"


@pytest.mark.unit
def test_duplicate_deliveries_send_one_email(store, mailer, settings, make_reservation) -> None:
    row = make_reservation()
    deps = ReconcileDeps(settings=settings, store=store, payments=_payments(_approved(row["id"])), mailer=mailer)
    body = json.dumps({"type": "payment", "data": {"id": "987"}}).encode()

    first = reconcile_notification(body, {}, deps, now=NOW)
    second = reconcile_notification(body, {}, deps, now=NOW)

    assert first.to_body()["ok"] is True
    assert second.to_body() == {"ok": True, "reservaId": row["id"], "status": "confirmada"}
    assert second.email_status == "already_sent"
    assert len(mailer.sent) == 1
    status_patches = [p for p in store.patches if "status" in p[2]]
    assert len(status_patches) == 1


@pytest.mark.unit
def test_paid_reservation_is_not_rewritten(store, mailer, settings, make_reservation) -> None:
    row = make_reservation(status="pago")
    deps = ReconcileDeps(settings=settings, store=store, payments=_payments(_approved(row["id"])), mailer=mailer)

    result = reconcile_notification({"type": "payment", "data": {"id": "987"}}, {}, deps, now=NOW)

    assert result.ok
    assert row["status"] == "pago"
    assert not [p for p in store.patches if "status" in p[2]]


@pytest.mark.unit
def test_failed_email_is_retried_on_redelivery(store, settings, make_reservation) -> None:
    row = make_reservation()
    failing = RecordingMailer(fail=True)
    deps = ReconcileDeps(settings=settings, store=store, payments=_payments(_approved(row["id"])), mailer=failing)
    body = {"type": "payment", "data": {"id": "987"}}

    first = reconcile_notification(body, {}, deps, now=NOW)
    assert first.ok
    assert first.email_status == "failed"
    assert row["confirmacao_enviada_em"] is None

    failing.fail = False
    second = reconcile_notification(body, {}, deps, now=NOW)
    assert second.email_status == "sent"
    assert len(failing.sent) == 1


@pytest.mark.unit
def test_payment_reference_from_order(store, mailer, settings, make_reservation) -> None:
    row = make_reservation()
    payment = {"status": "approved", "order": {"external_reference": row["id"]}}
    deps = ReconcileDeps(settings=settings, store=store, payments=_payments(payment), mailer=mailer)

    result = reconcile_notification({"type": "payment", "data": {"id": "1"}}, {}, deps, now=NOW)

    assert result.reservation_id == row["id"]


@pytest.mark.unit
def test_merchant_order_notification_confirms(store, mailer, settings, make_reservation) -> None:
    row = make_reservation()
    order = {
        "external_reference": row["id"],
        "total_amount": 500,
        "payments": [{"status": "approved", "transaction_amount": 500}],
    }
    deps = ReconcileDeps(settings=settings, store=store, payments=_payments(order=order), mailer=mailer)

    result = reconcile_notification(
        {"topic": "merchant_order", "resource": "https://api.mercadolibre.com/merchant_orders/9"},
        {},
        deps,
        now=NOW,
    )

    assert result.status == "confirmada"
    deps.payments.get_merchant_order.assert_called_once_with("9")


@pytest.mark.unit
@pytest.mark.parametrize(
    "payment, skipped",
    [
        ({"status": "pending", "external_reference": "res-1"}, "not_approved"),
        ({"status": "approved"}, "missing_external_reference"),
        ({"status": "approved", "external_reference": "missing"}, "reservation_not_found"),
    ],
)
def test_skip_reasons(store, mailer, settings, payment: dict[str, Any], skipped: str) -> None:
    deps = ReconcileDeps(settings=settings, store=store, payments=_payments(payment), mailer=mailer)

    result = reconcile_notification({"type": "payment", "data": {"id": "1"}}, {}, deps, now=NOW)

    assert result.to_body() == {"ok": True, "skipped": skipped}
    assert store.patches == []
    assert mailer.sent == []


@pytest.mark.unit
def test_lookup_failure_is_skipped(store, settings) -> None:
    payments = Mock()
    payments.get_payment.side_effect = PaymentProviderError("not found", detail="{}", status_code=404)
    deps = ReconcileDeps(settings=settings, store=store, payments=payments)

    result = reconcile_notification({"type": "payment", "data": {"id": "1"}}, {}, deps, now=NOW)

    assert result.to_body() == {"ok": True, "skipped": "lookup_not_found"}


@pytest.mark.unit
@pytest.mark.parametrize(
    "body, skipped",
    [
        (b"<xml/>", "invalid_body"),
        ({"type": "plan", "data": {"id": "1"}}, "unknown_type"),
        ({}, "unknown_type"),
    ],
)
def test_malformed_notifications_are_acknowledged(settings, body: Any, skipped: str) -> None:
    deps = ReconcileDeps(settings=settings, store=Mock(), payments=Mock())

    result = reconcile_notification(body, {}, deps, now=NOW)

    assert result.to_body() == {"ok": True, "skipped": skipped}
    deps.payments.get_payment.assert_not_called()


@pytest.mark.unit
def test_unexpected_error_becomes_error_outcome(settings) -> None:
    store = Mock()
    store.get.side_effect = RuntimeError("boom")
    deps = ReconcileDeps(settings=settings, store=store, payments=_payments(_approved("res-1")))

    result = reconcile_notification({"type": "payment", "data": {"id": "1"}}, {}, deps, now=NOW)

    assert result.to_body() == {"ok": False, "skipped": "error"}


@pytest.mark.unit
def test_missing_configuration_becomes_error_outcome(settings) -> None:
    deps = ReconcileDeps(settings=settings, store=None, payments=None)

    result = reconcile_notification({"type": "payment", "data": {"id": "1"}}, {}, deps, now=NOW)

    assert result.to_body() == {"ok": False, "skipped": "error"}


@pytest.mark.unit
def test_calendar_hold_placed_for_mapped_flat(store, mailer, settings, make_reservation) -> None:
    row = make_reservation()
    calendar = Mock()
    calendar.ensure_hold.return_value = ({"id": "evt-1"}, True)
    deps = ReconcileDeps(
        settings=settings,
        store=store,
        payments=_payments(_approved(row["id"])),
        mailer=mailer,
        calendar=calendar,
    )

    result = reconcile_notification({"type": "payment", "data": {"id": "1"}}, {}, deps, now=NOW)

    assert result.calendar_status == "created"
    args, kwargs = calendar.ensure_hold.call_args
    assert args == ("cal-flat-1@group.calendar.google.com", row["id"])
    assert kwargs["start"].isoformat() == "2025-10-08T14:00:00-03:00"
    assert kwargs["end"].isoformat() == "2025-10-10T12:00:00-03:00"


@pytest.mark.unit
def test_email_claim_failure_still_places_calendar_hold(mailer, settings, make_reservation) -> None:
    store = FailingPatchStore(
        "confirmacao_enviada_em", StoreError("Failed to update reservas", detail="no such column")
    )
    row = store.add("reservas", make_reservation())
    calendar = Mock()
    calendar.ensure_hold.return_value = ({"id": "evt-1"}, True)
    deps = ReconcileDeps(
        settings=settings,
        store=store,
        payments=_payments(_approved(row["id"])),
        mailer=mailer,
        calendar=calendar,
    )

    result = reconcile_notification({"type": "payment", "data": {"id": "1"}}, {}, deps, now=NOW)

    assert result.to_body() == {"ok": True, "reservaId": row["id"], "status": "confirmada"}
    assert row["status"] == "confirmada"
    assert result.email_status == "failed"
    assert result.calendar_status == "created"
    assert calendar.ensure_hold.call_count == 1
    assert mailer.sent == []


@pytest.mark.unit
def test_paid_hold_overlapping_confirmed_stay_is_a_date_conflict(mailer, settings, make_reservation) -> None:
    store = FailingPatchStore("status", DateConflictError(detail="overlapping reservation rejected by store"))
    row = store.add("reservas", make_reservation())
    calendar = Mock()
    deps = ReconcileDeps(
        settings=settings,
        store=store,
        payments=_payments(_approved(row["id"])),
        mailer=mailer,
        calendar=calendar,
    )

    result = reconcile_notification({"type": "payment", "data": {"id": "987"}}, {}, deps, now=NOW)

    assert result.to_body() == {"ok": True, "skipped": "date_conflict", "reservaId": row["id"]}
    assert row["status"] == "pendente"
    assert mailer.sent == []
    calendar.ensure_hold.assert_not_called()
