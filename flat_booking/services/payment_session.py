"""Checkout session creation for an existing pending reservation."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

import structlog

from flat_booking.config import CURRENCY, Settings
from flat_booking.errors import InvalidReservationError, PaymentProviderError
from flat_booking.metrics import payment_sessions_total
from flat_booking.payments.mercadopago import MercadoPagoClient
from flat_booking.schemas.payments import PaymentSession, PaymentSessionPayload

logger = structlog.get_logger(__name__)

MINIMUM_AMOUNT = Decimal("0.01")
CENTS = Decimal("0.01")


def normalize_amount(value: Any) -> Decimal:
    """
    Round an amount half-up to cents, never below the provider minimum.

    Example:
        >>> normalize_amount(100)
        Decimal('100.00')
        >>> normalize_amount(0)
        Decimal('0.01')

    Raises:
        InvalidReservationError: If the value is not a finite number
    """
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InvalidReservationError("Valor inválido", detail=str(value)) from e
    if not amount.is_finite():
        raise InvalidReservationError("Valor inválido", detail=str(value))
    return max(MINIMUM_AMOUNT, amount.quantize(CENTS, rounding=ROUND_HALF_UP))


def item_title(request: PaymentSessionPayload) -> str:
    if request.checkin and request.checkout:
        return f"Reserva — {request.flat_name} • {request.checkin} → {request.checkout}"
    return f"Reserva — {request.flat_name}"


def build_preference(
    request: PaymentSessionPayload, amount: Decimal, settings: Settings
) -> dict[str, Any]:
    """Assemble the checkout preference body for one reservation."""
    preference: dict[str, Any] = {
        "items": [
            {
                "title": item_title(request),
                "quantity": 1,
                "unit_price": float(amount),
                "currency_id": CURRENCY,
            }
        ],
        "payer": {"name": request.guest_name, "email": request.guest_email},
        "back_urls": {
            "success": settings.back_url("success"),
            "failure": settings.back_url("failure"),
            "pending": settings.back_url("pending"),
        },
        "auto_return": "approved",
        "external_reference": request.reservation_id,
        "payment_methods": {"excluded_payment_types": [], "installments": 1},
        "metadata": {
            "reserva_id": request.reservation_id,
            "flat_id": request.flat_id,
            "checkin": request.checkin.isoformat() if request.checkin else None,
            "checkout": request.checkout.isoformat() if request.checkout else None,
        },
    }
    if settings.notification_url:
        preference["notification_url"] = settings.notification_url
    return preference


def create_payment_session(
    client: MercadoPagoClient,
    request: PaymentSessionPayload,
    settings: Settings,
) -> PaymentSession:
    """
    Open a Mercado Pago checkout for a reservation.

    The reservation itself is not touched; it stays pending until the
    payment webhook confirms it.

    Args:
        client: Mercado Pago client
        request: Reservation id, amount and display fields
        settings: Service settings (back URLs, notification URL)

    Returns:
        PaymentSession: Preference id and the checkout URL to redirect the guest to

    Raises:
        InvalidReservationError: If the amount is not a finite number
        PaymentProviderError: If Mercado Pago rejects the preference
    """
    amount = normalize_amount(request.total)
    preference = build_preference(request, amount, settings)

    try:
        created = client.create_preference(preference)
    except PaymentProviderError as e:
        payment_sessions_total.labels(status="failure").inc()
        logger.error(
            "payment_session_failed",
            reservation_id=request.reservation_id,
            status_code=e.upstream_status,
            detail=e.detail,
        )
        raise

    payment_sessions_total.labels(status="success").inc()
    session = PaymentSession(
        preference_id=str(created.get("id")),
        redirect_url=created.get("init_point") or created.get("sandbox_init_point"),
        amount=amount,
    )
    logger.info(
        "payment_session_created",
        reservation_id=request.reservation_id,
        preference_id=session.preference_id,
        amount=str(amount),
    )
    return session
