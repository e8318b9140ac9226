"""
Exception taxonomy for the booking service.

Services and clients raise these; the FastAPI exception handler registered in
``flat_booking.main`` is the only place that turns them into HTTP responses.
The payment webhook never lets them escape (it always acknowledges with 200).
"""

from __future__ import annotations

from typing import Any, Optional


class BookingError(Exception):
    """Base class for every error the service reports to a caller."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, detail: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.detail is not None:
            body["detail"] = self.detail
        return body


class InvalidReservationError(BookingError):
    """Missing/malformed field or invalid date order."""

    status_code = 400
    code = "VALIDATION_ERROR"


class DateConflictError(BookingError):
    """The requested range overlaps an active reservation of another guest."""

    status_code = 409
    code = "DATE_CONFLICT"

    def __init__(self, message: str = "Conflito de datas", detail: Optional[Any] = None) -> None:
        super().__init__(message, detail)


class ReservationNotFoundError(BookingError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, reservation_id: Any) -> None:
        super().__init__(f"Reservation {reservation_id} not found")
        self.reservation_id = reservation_id


class ReservationNotConfirmedError(BookingError):
    status_code = 409
    code = "NOT_CONFIRMED"


class MissingGuestEmailError(BookingError):
    status_code = 422
    code = "MISSING_GUEST_EMAIL"


class ConfigurationError(BookingError):
    """A collaborator needed by this request has no credentials configured."""

    code = "CONFIGURATION_ERROR"


class UpstreamError(BookingError):
    """An external dependency failed or answered with a non-success status."""

    code = "UPSTREAM_ERROR"

    def __init__(
        self,
        message: str,
        detail: Optional[Any] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, detail)
        # HTTP status reported by the upstream itself (not ours)
        self.upstream_status = status_code


class StoreError(UpstreamError):
    code = "STORE_ERROR"


class PaymentProviderError(UpstreamError):
    code = "PAYMENT_PROVIDER_ERROR"


class CalendarError(UpstreamError):
    code = "CALENDAR_ERROR"


class EmailDeliveryError(UpstreamError):
    code = "EMAIL_ERROR"
