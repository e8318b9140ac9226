from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from flat_booking.schemas.reservations import OpaqueId


class PaymentSessionPayload(BaseModel):
    """
    Request to open a checkout for an existing reservation.

    The reservation page posts either the flat fields below or the intake
    response nested under ``reserva``; both shapes are accepted.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    reservation_id: OpaqueId = Field(
        ..., min_length=1, validation_alias=AliasChoices("reservation_id", "reserva_id", "id")
    )
    total: Decimal
    flat_name: str = Field(..., min_length=1, validation_alias=AliasChoices("flat_name", "flat_nome"))
    guest_name: str = Field("", validation_alias=AliasChoices("guest_name", "hospede_nome"))
    guest_email: str = Field("", validation_alias=AliasChoices("guest_email", "hospede_email"))
    flat_id: Optional[OpaqueId] = None
    checkin: Optional[date] = None
    checkout: Optional[date] = None

    @model_validator(mode="before")
    @classmethod
    def _unwrap_reserva(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("reserva"), dict):
            return data["reserva"]
        return data


class PaymentSession(BaseModel):
    """Checkout preference created at the payment provider."""

    preference_id: str
    redirect_url: Optional[str] = None
    amount: Decimal
