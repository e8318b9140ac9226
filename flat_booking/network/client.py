"""
Thin HTTP helper shared by the external provider clients (store, payments,
calendar, email) with metrics and retries for idempotent calls.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import requests
import structlog

from flat_booking.metrics import api_latency, api_requests

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 10
MAX_RETRIES = 2
RETRY_DELAY = 0.5


def should_retry(res: Optional[requests.Response], err: Optional[Exception]) -> bool:
    """
    Determine whether the request should be retried based on response or error.

    Args:
        res (Optional[requests.Response]): Response object if available.
        err (Optional[Exception]): Exception raised by the request, if any.

    Returns:
        bool: True if the request should be retried, False otherwise.
    """
    if res is not None and res.status_code == 429:
        return True
    if isinstance(err, (requests.Timeout, requests.ConnectionError)):
        return True
    if res is not None and 500 <= res.status_code < 600:
        return True
    return False


def send_request(
    method: str,
    url: str,
    *,
    provider: str,
    endpoint: str,
    retries: int = 0,
    timeout: float = DEFAULT_TIMEOUT,
    **kwargs: Any,
) -> requests.Response:
    """
    Send an HTTP request and record provider metrics.

    The response is returned whatever its status; callers decide what a
    failure means for them. Only transport errors raise.

    Args:
        method: HTTP verb
        url: Absolute URL
        provider: Metrics label for the external provider (e.g. "mercadopago")
        endpoint: Metrics label for the logical endpoint (e.g. "payments")
        retries: How many extra attempts on 429/5xx/timeouts. Use 0 for non-idempotent calls.
        timeout: Per-attempt timeout in seconds
        **kwargs: Passed through to requests.request (headers, json, params, data...)

    Returns:
        requests.Response: Last response received

    Raises:
        requests.RequestException: If no response could be obtained
    """
    attempt = 0

    while True:
        res: Optional[requests.Response] = None
        try:
            start_time = time.time()
            res = requests.request(method, url, timeout=timeout, **kwargs)
            latency = time.time() - start_time

            api_requests.labels(
                provider=provider, endpoint=endpoint, status_code=str(res.status_code)
            ).inc()
            api_latency.labels(provider=provider, endpoint=endpoint).observe(latency)

            if attempt < retries and should_retry(res, None):
                attempt += 1
                logger.warning(
                    "provider_request_retry",
                    provider=provider,
                    endpoint=endpoint,
                    status_code=res.status_code,
                    attempt=attempt,
                )
                time.sleep(RETRY_DELAY * attempt)
                continue

            return res

        except requests.RequestException as err:
            api_requests.labels(provider=provider, endpoint=endpoint, status_code="error").inc()
            logger.warning(
                "provider_request_error",
                provider=provider,
                endpoint=endpoint,
                error=str(err),
                attempt=attempt,
            )
            if attempt >= retries or not should_retry(res, err):
                raise
            attempt += 1
            time.sleep(RETRY_DELAY * attempt)
