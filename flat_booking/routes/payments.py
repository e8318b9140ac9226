"""Checkout session and Mercado Pago notification routes."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from flat_booking.config import Settings
from flat_booking.dependencies import get_payment_client, get_reconcile_deps, get_settings
from flat_booking.errors import BookingError
from flat_booking.payments.mercadopago import MercadoPagoClient
from flat_booking.schemas.payments import PaymentSessionPayload
from flat_booking.services.payment_session import create_payment_session
from flat_booking.services.reconciler import ReconcileDeps, reconcile_notification

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/payments", status_code=status.HTTP_201_CREATED)
def create_payment_route(
    payload: PaymentSessionPayload,
    client: MercadoPagoClient = Depends(get_payment_client),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Open a Mercado Pago checkout for an existing reservation.

    Returns:
        dict: ``{ok, reservation_id, preference_id, redirect_url}``
    """
    try:
        session = create_payment_session(client, payload, settings)
    except BookingError:
        raise
    except Exception as e:
        logger.exception(
            "payment_session_unexpected_error",
            reservation_id=payload.reservation_id,
            error=str(e),
        )
        raise BookingError("Erro inesperado", detail=str(e)) from e

    return {
        "ok": True,
        "reservation_id": payload.reservation_id,
        "preference_id": session.preference_id,
        "redirect_url": session.redirect_url,
    }


@router.post("/payments/webhook")
async def payment_webhook(
    request: Request,
    deps: ReconcileDeps = Depends(get_reconcile_deps),
) -> JSONResponse:
    """
    Receive Mercado Pago notifications (webhooks and IPN).

    Always answers 200: anything else makes the provider redeliver, and
    skipped or failed notifications are not fixed by redelivery. The
    outcome is reported in the body, e.g.
    ``{"ok": true, "reservaId": "...", "status": "confirmada"}`` or
    ``{"ok": true, "skipped": "not_approved"}``.
    """
    raw_body = await request.body()
    query = dict(request.query_params)

    logger.info(
        "webhook_received",
        body_size=len(raw_body),
        topic=query.get("topic") or query.get("type"),
    )

    # Provider lookups and store writes are blocking calls
    result = await run_in_threadpool(reconcile_notification, raw_body, query, deps)
    return JSONResponse(status_code=status.HTTP_200_OK, content=result.to_body())
