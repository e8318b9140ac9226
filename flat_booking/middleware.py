"""
FastAPI middleware for request tracing and correlation.

Every request gets an id that is returned as ``X-Request-ID`` and bound into
the structlog context, so all log lines emitted while handling it (including
webhook reconciliation and side effects) can be correlated.
"""

from __future__ import annotations

import uuid
from typing import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add unique request IDs to each HTTP request.

    An incoming ``X-Request-ID`` (e.g. from the hosting proxy) is reused;
    otherwise a UUID4 is generated. The id is:
    1. Stored in request.state.request_id
    2. Bound to structlog contextvars for the duration of the request
    3. Echoed back in the X-Request-ID response header
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=request.url.path,
        )
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.clear_contextvars()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
