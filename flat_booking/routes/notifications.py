from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends

from flat_booking.config import Settings
from flat_booking.dependencies import get_mailer, get_settings, get_store
from flat_booking.notifications.email import Mailer
from flat_booking.services.confirmation import resend_confirmation
from flat_booking.store.base import Store

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/reservations/{reservation_id}/confirmation/resend")
def resend_confirmation_route(
    reservation_id: str,
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
    mailer: Optional[Mailer] = Depends(get_mailer),
) -> dict[str, Any]:
    """
    Send the confirmation email (with .ics) of a confirmed reservation again.

    Responses:
        200 ``{ok: true}``; 404 unknown reservation; 409 not confirmed;
        422 no guest email; 500 no email provider or delivery failure
    """
    resend_confirmation(store, mailer, reservation_id, settings)
    return {"ok": True}
