"""
Mercado Pago REST client.

Covers the three calls the booking flow needs: creating a checkout
preference, and reading back payments and merchant orders when a
notification arrives.
"""

from __future__ import annotations

from typing import Any, Optional

import requests
import structlog

from flat_booking.errors import PaymentProviderError
from flat_booking.network.client import send_request

logger = structlog.get_logger(__name__)

BASE_URL = "https://api.mercadopago.com"
PROVIDER = "mercadopago"


class MercadoPagoClient:
    """Authenticated client for the Mercado Pago API."""

    def __init__(self, access_token: str, base_url: str = BASE_URL, timeout: float = 15) -> None:
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    def _call(
        self,
        method: str,
        path: str,
        endpoint: str,
        retries: int = 0,
        json: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        try:
            res = send_request(
                method,
                f"{self.base_url}{path}",
                provider=PROVIDER,
                endpoint=endpoint,
                retries=retries,
                timeout=self.timeout,
                headers=self._headers(),
                json=json,
            )
        except requests.RequestException as e:
            raise PaymentProviderError("Mercado Pago request failed", detail=str(e)) from e

        if not res.ok:
            logger.warning(
                "mercadopago_request_rejected",
                endpoint=endpoint,
                status_code=res.status_code,
            )
            raise PaymentProviderError(
                "Mercado Pago rejected the request",
                detail=res.text,
                status_code=res.status_code,
            )
        try:
            data = res.json()
        except ValueError as e:
            raise PaymentProviderError(
                "Mercado Pago returned an invalid response",
                detail=res.text,
                status_code=res.status_code,
            ) from e
        if not isinstance(data, dict):
            raise PaymentProviderError(
                "Mercado Pago returned an invalid response",
                detail=res.text,
                status_code=res.status_code,
            )
        return data

    def create_preference(self, preference: dict[str, Any]) -> dict[str, Any]:
        """
        Create a checkout preference.

        Not retried: a second POST would open a second checkout.

        Args:
            preference: Preference body (items, payer, back_urls, external_reference...)

        Returns:
            dict: Provider response including ``id``, ``init_point`` and ``sandbox_init_point``

        Raises:
            PaymentProviderError: On transport failure or non-2xx answer (detail = raw body)
        """
        return self._call("POST", "/checkout/preferences", "checkout/preferences", json=preference)

    def get_payment(self, payment_id: str) -> dict[str, Any]:
        return self._call("GET", f"/v1/payments/{payment_id}", "payments", retries=2)

    def get_merchant_order(self, order_id: str) -> dict[str, Any]:
        return self._call("GET", f"/merchant_orders/{order_id}", "merchant_orders", retries=2)
