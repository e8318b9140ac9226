"""
FastAPI dependency injection providers.

Routes receive settings and external clients through these providers rather
than building them inline, so tests can swap any of them with
``app.dependency_overrides``.

Example:
    >>> from flat_booking.dependencies import get_store
    >>> app.dependency_overrides[get_store] = lambda: InMemoryStore()
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Depends

from flat_booking.config import Settings
from flat_booking.db.engine import get_engine
from flat_booking.errors import ConfigurationError
from flat_booking.gcal.client import CalendarClient
from flat_booking.notifications.email import Mailer, build_mailer
from flat_booking.payments.mercadopago import MercadoPagoClient
from flat_booking.services.reconciler import ReconcileDeps
from flat_booking.store.base import Store
from flat_booking.store.postgrest import PostgrestStore
from flat_booking.store.sql import SqlStore


@lru_cache
def get_settings() -> Settings:
    """Settings are read from the environment once per process."""
    return Settings.from_env()


def build_store(settings: Settings) -> Store:
    """
    Build the store adapter selected by STORE_BACKEND.

    Raises:
        ConfigurationError: If the selected backend has no credentials
    """
    if settings.store_backend == "postgrest":
        if not settings.supabase_url or not settings.supabase_service_key:
            raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_KEY are required")
        return PostgrestStore(settings.supabase_url, settings.supabase_service_key)
    if settings.store_backend == "sql":
        if not settings.database_url:
            raise ConfigurationError("DATABASE_URL is required")
        return SqlStore(get_engine(settings.database_url))
    raise ConfigurationError(f"Unknown STORE_BACKEND: {settings.store_backend}")


def build_payment_client(settings: Settings) -> MercadoPagoClient:
    if not settings.mp_access_token:
        raise ConfigurationError("MP_ACCESS_TOKEN is required")
    return MercadoPagoClient(settings.mp_access_token)


def build_calendar(settings: Settings) -> Optional[CalendarClient]:
    if not settings.calendar_configured:
        return None
    return CalendarClient(
        settings.google_sa_email or "",
        settings.google_sa_private_key or "",
        timezone_name=settings.timezone,
    )


def get_store(settings: Settings = Depends(get_settings)) -> Store:
    return build_store(settings)


def get_payment_client(settings: Settings = Depends(get_settings)) -> MercadoPagoClient:
    return build_payment_client(settings)


def get_mailer(settings: Settings = Depends(get_settings)) -> Optional[Mailer]:
    """Email provider, or None when neither Resend nor SMTP is configured."""
    return build_mailer(settings)


def get_calendar(settings: Settings = Depends(get_settings)) -> Optional[CalendarClient]:
    return build_calendar(settings)


def get_optional_store(settings: Settings = Depends(get_settings)) -> Optional[Store]:
    """Store adapter, or None when its credentials are missing."""
    try:
        return build_store(settings)
    except ConfigurationError:
        return None


def get_optional_payment_client(
    settings: Settings = Depends(get_settings),
) -> Optional[MercadoPagoClient]:
    try:
        return build_payment_client(settings)
    except ConfigurationError:
        return None


def get_reconcile_deps(
    settings: Settings = Depends(get_settings),
    store: Optional[Store] = Depends(get_optional_store),
    payments: Optional[MercadoPagoClient] = Depends(get_optional_payment_client),
    mailer: Optional[Mailer] = Depends(get_mailer),
    calendar: Optional[CalendarClient] = Depends(get_calendar),
) -> ReconcileDeps:
    """
    Collaborators for the payment webhook.

    Missing store or payment credentials are passed as None instead of
    raising, because the webhook must still answer 200; the reconciler
    reports them as an error outcome.
    """
    return ReconcileDeps(
        settings=settings,
        store=store,
        payments=payments,
        mailer=mailer,
        calendar=calendar,
    )
