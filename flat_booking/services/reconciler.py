"""
Payment webhook reconciler.

Mercado Pago notifications only say "something happened to resource X".
The reconciler looks the resource up, decides whether it represents an
approved payment for one of our reservations, confirms that reservation
and then triggers the confirmation side effects.

Every outcome, including malformed input and unexpected failures, is
reported as a ``ReconcileResult`` so the HTTP layer can always acknowledge
with 200 (the provider retries anything else).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

import structlog

from flat_booking.config import Settings
from flat_booking.db.readers.reservations import get_flat, get_reservation
from flat_booking.db.writers.reservations import mark_confirmed
from flat_booking.errors import (
    ConfigurationError,
    DateConflictError,
    PaymentProviderError,
    StoreError,
)
from flat_booking.gcal.client import CalendarClient
from flat_booking.metrics import webhook_notifications_total
from flat_booking.notifications.email import Mailer
from flat_booking.payments.mercadopago import MercadoPagoClient
from flat_booking.schemas.reservations import ReservationStatus
from flat_booking.services.confirmation import place_calendar_hold, send_confirmation_email
from flat_booking.store.base import Store
from flat_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

# Checked in order; the first non-empty value wins
TYPE_FIELDS = ("type", "topic", "action")
ID_FIELDS = ("data.id", "resource", "id")

PAYMENT = "payment"
MERCHANT_ORDER = "merchant_order"
SUPPORTED_TYPES = (PAYMENT, MERCHANT_ORDER)


@dataclass
class ReconcileDeps:
    """Collaborators of the reconciler. Unconfigured ones are None."""

    settings: Settings
    store: Optional[Store] = None
    payments: Optional[MercadoPagoClient] = None
    mailer: Optional[Mailer] = None
    calendar: Optional[CalendarClient] = None


@dataclass
class ReconcileResult:
    ok: bool = True
    skipped: Optional[str] = None
    reservation_id: Optional[str] = None
    status: Optional[str] = None
    email_status: Optional[str] = None
    calendar_status: Optional[str] = None

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"ok": self.ok}
        if self.skipped:
            body["skipped"] = self.skipped
        if self.reservation_id is not None:
            body["reservaId"] = self.reservation_id
        if self.status:
            body["status"] = self.status
        return body


@dataclass
class Notification:
    event_type: str
    resource_id: str


@dataclass
class Resolution:
    approved: bool
    reservation_id: Optional[str]


def parse_body(raw: Any) -> Optional[dict[str, Any]]:
    """
    Decode a notification body.

    Accepts a mapping, JSON text/bytes, or JSON text that itself encodes a
    JSON string. An empty body is an empty mapping.

    Returns:
        Optional[dict]: The decoded object, or None if it is not a JSON object
    """
    value = raw
    if isinstance(value, (bytes, bytearray)):
        try:
            value = value.decode("utf-8")
        except UnicodeDecodeError:
            return None
    # Two rounds: the provider sometimes double-encodes the payload
    for _ in range(2):
        if not isinstance(value, str):
            break
        if not value.strip():
            return {}
        try:
            value = json.loads(value)
        except ValueError:
            return None
    if value is None:
        return {}
    return dict(value) if isinstance(value, Mapping) else None


def _lookup(source: Mapping[str, Any], field: str) -> Any:
    """Read ``field`` as a literal key first, then as a dotted path."""
    if field in source:
        return source[field]
    current: Any = source
    for part in field.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def _first(sources: tuple[Mapping[str, Any], ...], fields: tuple[str, ...]) -> Any:
    for source in sources:
        for field in fields:
            value = _lookup(source, field)
            if value not in (None, ""):
                return value
    return None


def _resource_id(value: Any) -> Optional[str]:
    text = str(value).strip()
    if "/" in text:
        # e.g. https://api.mercadolibre.com/merchant_orders/123456
        text = text.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
    return text or None


def classify(
    body: Mapping[str, Any], query: Optional[Mapping[str, Any]] = None
) -> Optional[Notification]:
    """
    Extract the event type and resource id of a notification.

    The body is consulted first, then the query string (IPN style
    ``?topic=payment&id=123``).

    Example:
        >>> classify({"action": "payment.updated", "data": {"id": 42}})
        Notification(event_type='payment', resource_id='42')

    Returns:
        Optional[Notification]: None if the type is unsupported or no id is present
    """
    sources = (body, query or {})
    raw_type = _first(sources, TYPE_FIELDS)
    event_type = str(raw_type).split(".", 1)[0].strip().lower() if raw_type is not None else ""
    if event_type not in SUPPORTED_TYPES:
        return None

    raw_id = _first(sources, ID_FIELDS)
    resource_id = _resource_id(raw_id) if raw_id is not None else None
    if not resource_id:
        return None
    return Notification(event_type=event_type, resource_id=resource_id)


def _amount(value: Any) -> Decimal:
    try:
        return Decimal(str(value if value is not None else 0))
    except InvalidOperation:
        return Decimal(0)


def resolve_payment(payment: Mapping[str, Any]) -> Resolution:
    order = payment.get("order") or {}
    reference = payment.get("external_reference") or order.get("external_reference")
    return Resolution(
        approved=payment.get("status") == "approved",
        reservation_id=str(reference) if reference else None,
    )


def resolve_merchant_order(order: Mapping[str, Any]) -> Resolution:
    """
    A merchant order is paid once its approved payments cover the order total.

    An order with no approved payment at all is never considered paid.
    """
    approved = [p for p in order.get("payments") or [] if p.get("status") == "approved"]
    paid = sum((_amount(p.get("transaction_amount")) for p in approved), Decimal(0))
    reference = order.get("external_reference")
    return Resolution(
        approved=bool(approved) and paid >= _amount(order.get("total_amount")),
        reservation_id=str(reference) if reference else None,
    )


def resolve(client: MercadoPagoClient, notification: Notification) -> Optional[Resolution]:
    """
    Look the notified resource up at the provider.

    Returns:
        Optional[Resolution]: None if the lookup failed
    """
    try:
        if notification.event_type == PAYMENT:
            return resolve_payment(client.get_payment(notification.resource_id))
        return resolve_merchant_order(client.get_merchant_order(notification.resource_id))
    except PaymentProviderError as e:
        logger.warning(
            "webhook_lookup_failed",
            event_type=notification.event_type,
            resource_id=notification.resource_id,
            status_code=e.upstream_status,
            detail=e.detail,
        )
        return None


def _skip(reason: str, event_type: str = "unknown", **context: Any) -> ReconcileResult:
    logger.info("webhook_skipped", reason=reason, event_type=event_type, **context)
    webhook_notifications_total.labels(event_type=event_type, outcome=reason).inc()
    return ReconcileResult(ok=True, skipped=reason)


def _reconcile(
    raw_body: Any,
    query: Optional[Mapping[str, Any]],
    deps: ReconcileDeps,
    now: datetime,
) -> ReconcileResult:
    body = parse_body(raw_body)
    if body is None:
        return _skip("invalid_body")

    notification = classify(body, query)
    if notification is None:
        return _skip("unknown_type")
    event_type = notification.event_type

    if deps.payments is None or deps.store is None:
        raise ConfigurationError("Payment provider or store not configured")

    resolution = resolve(deps.payments, notification)
    if resolution is None:
        return _skip("lookup_not_found", event_type, resource_id=notification.resource_id)
    if not resolution.reservation_id:
        return _skip("missing_external_reference", event_type, resource_id=notification.resource_id)
    if not resolution.approved:
        return _skip("not_approved", event_type, reservation_id=resolution.reservation_id)

    reservation = get_reservation(deps.store, resolution.reservation_id)
    if reservation is None:
        return _skip("reservation_not_found", event_type, reservation_id=resolution.reservation_id)

    if reservation.is_confirmed:
        logger.info(
            "reservation_already_confirmed",
            reservation_id=reservation.id,
            status=reservation.status,
        )
    else:
        try:
            mark_confirmed(deps.store, reservation.id)
        except DateConflictError:
            # Paid, but another confirmed stay already holds these dates
            logger.error(
                "reservation_confirm_conflict",
                reservation_id=reservation.id,
                flat_id=reservation.flat_id,
                event_type=event_type,
                resource_id=notification.resource_id,
            )
            webhook_notifications_total.labels(event_type=event_type, outcome="date_conflict").inc()
            return ReconcileResult(ok=True, skipped="date_conflict", reservation_id=reservation.id)
        reservation = reservation.model_copy(update={"status": ReservationStatus.CONFIRMED.value})
        logger.info("reservation_confirmed", reservation_id=reservation.id, event_type=event_type)

    if not reservation.flat_name and reservation.flat_id is not None:
        try:
            flat = get_flat(deps.store, reservation.flat_id)
        except StoreError as e:
            logger.warning("flat_lookup_failed", flat_id=reservation.flat_id, error=e.message)
            flat = None
        if flat and flat.get("nome"):
            reservation = reservation.model_copy(update={"flat_name": flat["nome"]})

    email_status = send_confirmation_email(deps.store, deps.mailer, reservation, deps.settings, now)
    calendar_status = place_calendar_hold(deps.calendar, reservation, deps.settings)

    webhook_notifications_total.labels(event_type=event_type, outcome="confirmed").inc()
    return ReconcileResult(
        ok=True,
        reservation_id=reservation.id,
        status=ReservationStatus.CONFIRMED.value,
        email_status=email_status,
        calendar_status=calendar_status,
    )


def reconcile_notification(
    body: Any,
    query: Optional[Mapping[str, Any]],
    deps: ReconcileDeps,
    now: Optional[datetime] = None,
) -> ReconcileResult:
    """
    Process one payment notification end to end.

    Args:
        body: Raw request body (bytes, text or already decoded mapping)
        query: Query string parameters, used as fallback for type and id
        deps: Store, payment client, mailer, calendar and settings
        now: Reference time (defaults to current UTC time)

    Returns:
        ReconcileResult: Never raises; unexpected failures become ``ok=False, skipped="error"``
    """
    try:
        return _reconcile(body, query, deps, now or utc_now())
    except Exception as e:
        logger.exception("webhook_failed", error=str(e))
        webhook_notifications_total.labels(event_type="unknown", outcome="error").inc()
        return ReconcileResult(ok=False, skipped="error")
