from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)

from flat_booking.utils.datetime import parse_timestamp, to_calendar_date


def _as_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


OpaqueId = Annotated[str, BeforeValidator(_as_str)]


class ReservationStatus(str, Enum):
    """Stored reservation statuses. ``pago`` is a legacy alias of a confirmed stay."""

    PENDING = "pendente"
    CONFIRMED = "confirmada"
    PAID = "pago"


ACTIVE_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED, ReservationStatus.PAID)
CONFIRMED_STATUSES = frozenset({ReservationStatus.CONFIRMED.value, ReservationStatus.PAID.value})


class Reservation(BaseModel):
    """
    A reservation row as returned by the store.

    Field aliases are the column names of the hosted ``reservas`` table, so a
    row dict can be validated directly. Rows read with a narrow ``select``
    simply leave the other fields as None.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: OpaqueId
    flat_id: Optional[OpaqueId] = None
    flat_slug: Optional[str] = None
    flat_name: Optional[str] = Field(None, alias="flat_nome")
    checkin: Optional[date] = None
    checkout: Optional[date] = None
    nights: Optional[int] = Field(None, alias="noites")
    nightly_price: Optional[Decimal] = Field(None, alias="preco_noite")
    total: Optional[Decimal] = None
    guest_name: Optional[str] = Field(None, alias="hospede_nome")
    guest_email: Optional[str] = Field(None, alias="hospede_email")
    guest_phone: Optional[str] = Field(None, alias="hospede_telefone")
    guests: Optional[int] = Field(None, alias="hospedes")
    arrival_time: Optional[str] = Field(None, alias="hora_chegada")
    note: Optional[str] = Field(None, alias="obs")
    status: str = ReservationStatus.PENDING.value
    expires_at: Optional[datetime] = Field(None, alias="expira_em")
    confirmation_sent_at: Optional[datetime] = Field(None, alias="confirmacao_enviada_em")
    created_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> str:
        return str(value or "").strip().lower()

    @field_validator("expires_at", "confirmation_sent_at", "created_at", mode="before")
    @classmethod
    def _aware_timestamp(cls, value: Any) -> Optional[datetime]:
        return parse_timestamp(value)

    @field_serializer("nightly_price", "total", when_used="json")
    def _money_as_number(self, value: Optional[Decimal]) -> Optional[float]:
        return float(value) if value is not None else None

    @property
    def is_confirmed(self) -> bool:
        return self.status in CONFIRMED_STATUSES

    @property
    def is_pending(self) -> bool:
        return self.status == ReservationStatus.PENDING.value

    def is_stale(self, now: datetime) -> bool:
        """A pending reservation whose hold expired. Never true without an expiry."""
        return self.is_pending and self.expires_at is not None and self.expires_at <= now

    def to_public(self) -> dict[str, Any]:
        """Row-shaped JSON representation (column names, ISO dates)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GuestPayload(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, validation_alias=AliasChoices("name", "nome"))
    email: str = Field(..., min_length=3, validation_alias=AliasChoices("email"))
    phone: str = Field(..., min_length=1, validation_alias=AliasChoices("phone", "telefone"))
    guests: int = Field(..., ge=1, validation_alias=AliasChoices("guests", "hospedes"))
    arrival_time: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("arrival_time", "hora_chegada")
    )
    note: Optional[str] = Field(None, validation_alias=AliasChoices("note", "obs"))

    @field_validator("email")
    @classmethod
    def _looks_like_email(cls, value: str) -> str:
        if "@" not in value:
            raise ValueError("invalid email address")
        return value


class ReservationCreatePayload(BaseModel):
    """
    Booking request sent by the reservation page.

    Accepts both the English field names and the Portuguese keys the site
    front-end posts (``flat_nome``, ``noites``, ``preco_noite``, ``hospede``...).
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    flat_id: OpaqueId = Field(..., min_length=1)
    flat_slug: str = Field(..., min_length=1)
    flat_name: str = Field(..., min_length=1, validation_alias=AliasChoices("flat_name", "flat_nome"))
    checkin: date
    checkout: date
    nights: int = Field(..., ge=1, validation_alias=AliasChoices("nights", "noites"))
    nightly_price: Decimal = Field(
        ..., gt=0, validation_alias=AliasChoices("nightly_price", "preco_noite")
    )
    total: Decimal = Field(..., ge=0)
    guest: GuestPayload = Field(..., validation_alias=AliasChoices("guest", "hospede"))

    @field_validator("checkin", "checkout", mode="before")
    @classmethod
    def _calendar_date(cls, value: Any) -> date:
        if value in (None, ""):
            raise ValueError("date is required")
        return to_calendar_date(value)
