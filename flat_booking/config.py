from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"
SERVICE_NAME = "flat-booking"
APP_ENV = os.getenv("APP_ENV", "production")

# Flats are in Teresina/PI; all stay times are expressed in this zone.
REFERENCE_TIMEZONE = "America/Fortaleza"
CURRENCY = "BRL"

DEFAULT_PENDING_HOLD_MINUTES = 30


def _env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_calendar_ids(raw: Optional[str]) -> dict[str, str]:
    """
    Parse a ``slug=calendarId`` comma separated mapping.

    Args:
        raw: Value of FLAT_CALENDAR_IDS, e.g. "flat-1=abc@group.calendar.google.com,flat-2=..."

    Returns:
        dict[str, str]: Flat slug to Google Calendar id
    """
    mapping: dict[str, str] = {}
    if not raw:
        return mapping
    for pair in raw.split(","):
        slug, sep, calendar_id = pair.partition("=")
        if not sep or not slug.strip() or not calendar_id.strip():
            continue
        mapping[slug.strip()] = calendar_id.strip()
    return mapping


def legacy_calendar_ids() -> dict[str, str]:
    """Per-flat ids from the older GCALE_FLAT{n}_ID variables (n = 1..9)."""
    mapping: dict[str, str] = {}
    for n in range(1, 10):
        calendar_id = _env(f"GCALE_FLAT{n}_ID")
        if calendar_id:
            mapping[f"flat-{n}"] = calendar_id
    return mapping


@dataclass(frozen=True)
class Settings:
    """
    Process-wide configuration, built once from the environment at startup.

    Every component receives the pieces it needs from this object instead of
    reading os.environ on its own.
    """

    store_backend: str = "postgrest"
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    database_url: Optional[str] = None

    mp_access_token: Optional[str] = None
    mp_back_url_success: Optional[str] = None
    mp_back_url_failure: Optional[str] = None
    mp_back_url_pending: Optional[str] = None
    app_base_url: Optional[str] = None

    resend_api_key: Optional[str] = None
    email_from: Optional[str] = None
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    smtp_from: Optional[str] = None
    smtp_secure: bool = False

    google_sa_email: Optional[str] = None
    google_sa_private_key: Optional[str] = None
    flat_calendar_ids: dict[str, str] = field(default_factory=dict)

    pending_hold_minutes: int = DEFAULT_PENDING_HOLD_MINUTES
    timezone: str = REFERENCE_TIMEZONE
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (and .env, loaded on import)."""
        vercel_url = _env("VERCEL_URL")
        base_url = _env("APP_BASE_URL") or (f"https://{vercel_url}" if vercel_url else None)

        supabase_url = _env("SUPABASE_URL")
        backend = (_env("STORE_BACKEND") or ("postgrest" if supabase_url else "sql")).lower()

        private_key = _env("GOOGLE_SA_PRIVATE_KEY")
        if private_key:
            # Keys pasted into dashboards usually arrive with literal "\n"
            private_key = private_key.replace("\\n", "\n")

        origins_raw = _env("ALLOWED_ORIGINS") or "*"

        return cls(
            store_backend=backend,
            supabase_url=supabase_url.rstrip("/") if supabase_url else None,
            supabase_service_key=_env("SUPABASE_SERVICE_KEY"),
            database_url=_env("DATABASE_URL"),
            mp_access_token=_env("MP_ACCESS_TOKEN"),
            mp_back_url_success=_env("MP_BACK_URL_SUCCESS"),
            mp_back_url_failure=_env("MP_BACK_URL_FAILURE"),
            mp_back_url_pending=_env("MP_BACK_URL_PENDING"),
            app_base_url=base_url.rstrip("/") if base_url else None,
            resend_api_key=_env("RESEND_API_KEY"),
            email_from=_env("EMAIL_FROM"),
            smtp_host=_env("SMTP_HOST"),
            smtp_port=int(_env("SMTP_PORT") or 587),
            smtp_user=_env("SMTP_USER"),
            smtp_pass=_env("SMTP_PASS"),
            smtp_from=_env("SMTP_FROM"),
            smtp_secure=(_env("SMTP_SECURE") or "false").lower() == "true",
            google_sa_email=_env("GOOGLE_SA_EMAIL"),
            google_sa_private_key=private_key,
            flat_calendar_ids={
                **legacy_calendar_ids(),
                **parse_calendar_ids(_env("FLAT_CALENDAR_IDS")),
            },
            pending_hold_minutes=int(
                _env("PENDING_HOLD_MINUTES") or DEFAULT_PENDING_HOLD_MINUTES
            ),
            allowed_origins=[origin.strip() for origin in origins_raw.split(",")],
        )

    def back_url(self, outcome: str) -> Optional[str]:
        """
        Resolve the browser return URL for a checkout outcome.

        Args:
            outcome: "success", "failure" or "pending"

        Returns:
            Optional[str]: Explicit MP_BACK_URL_* value, else a page under the base URL
        """
        explicit = {
            "success": self.mp_back_url_success,
            "failure": self.mp_back_url_failure,
            "pending": self.mp_back_url_pending,
        }[outcome]
        if explicit:
            return explicit
        if not self.app_base_url:
            return None
        page = {"success": "sucesso", "failure": "erro", "pending": "pendente"}[outcome]
        return f"{self.app_base_url}/src/pages/{page}.html"

    @property
    def notification_url(self) -> Optional[str]:
        if not self.app_base_url:
            return None
        return f"{self.app_base_url}/api/payments/webhook"

    @property
    def calendar_configured(self) -> bool:
        return bool(self.google_sa_email and self.google_sa_private_key)
