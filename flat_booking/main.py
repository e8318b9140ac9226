import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from flat_booking.dependencies import get_settings
from flat_booking.errors import BookingError, UpstreamError
from flat_booking.logging_config import setup_logging
from flat_booking.middleware import RequestIDMiddleware
from flat_booking.routes.health import router as health_router
from flat_booking.routes.metrics import router as metrics_router
from flat_booking.routes.notifications import router as notifications_router
from flat_booking.routes.payments import router as payments_router
from flat_booking.routes.reservations import router as reservations_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Flat Booking API",
    description="Reservations, Mercado Pago checkout and confirmation for Sucesso Flat's",
    version="1.0.0",
)

allowed_origins = get_settings().allowed_origins

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins if "*" not in allowed_origins else ["*"],
    allow_credentials="*" not in allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)

# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(reservations_router, prefix="/api", tags=["Reservations"])
app.include_router(payments_router, prefix="/api", tags=["Payments"])
app.include_router(notifications_router, prefix="/api", tags=["Notifications"])


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Single place where service errors become HTTP responses."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "request_failed",
        code=exc.code,
        error=exc.message,
        upstream_status=exc.upstream_status if isinstance(exc, UpstreamError) else None,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg")}
        for err in exc.errors()
    ]
    logger.info("request_validation_failed", errors=errors)
    return JSONResponse(
        status_code=400,
        content={"error": "Dados inválidos", "code": "VALIDATION_ERROR", "detail": errors},
    )
