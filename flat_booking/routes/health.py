"""
Liveness and readiness endpoints.

``/ready`` reports whether the store configured for this process can be
reached; hosting platforms use it to decide if the instance gets traffic.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from flat_booking.dependencies import get_optional_store
from flat_booking.store.base import Store

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
def health_check() -> JSONResponse:
    """
    Liveness probe endpoint.

    Example:
        >>> GET /health
        {"status": "ok"}
    """
    return JSONResponse(content={"status": "ok"})


@router.get("/ready")
def readiness_check(store: Optional[Store] = Depends(get_optional_store)) -> JSONResponse:
    """
    Readiness probe endpoint.

    Returns 503 if the store is not configured or not reachable.

    Example:
        >>> GET /ready
        {"status": "ready", "checks": {"store": "ok"}}
    """
    checks = {}

    if store is None:
        logger.error("readiness_check_failed", reason="store_not_configured")
        checks["store"] = "not_configured"
    elif store.ping():
        checks["store"] = "ok"
        return JSONResponse(content={"status": "ready", "checks": checks})
    else:
        logger.error("readiness_check_failed", reason="store_not_accessible")
        checks["store"] = "failed"

    return JSONResponse(status_code=503, content={"status": "not ready", "checks": checks})
