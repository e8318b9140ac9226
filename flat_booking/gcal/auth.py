"""
Google service-account authentication for the Calendar API.

Uses the OAuth 2.0 JWT-bearer grant: a short-lived RS256 assertion signed
with the service account's private key is exchanged for an access token.
Tokens are cached per service account until shortly before they expire.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

import jwt
import requests
import structlog

from flat_booking.errors import CalendarError
from flat_booking.network.client import send_request
from flat_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar.events"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME = 3600

# Tokens are refreshed this long before Google says they expire
EXPIRY_MARGIN = timedelta(seconds=60)


class TokenCache:
    """
    In-memory access token cache with per-entry expiry.

    Shared by every request thread, so reads and writes hold a lock.

    Example:
        >>> cache = TokenCache()
        >>> cache.set("sa@project.iam.gserviceaccount.com", "ya29.token", expires_in=3600)
        >>> cache.get("sa@project.iam.gserviceaccount.com")
        'ya29.token'
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cache: dict[str, tuple[str, datetime]] = {}

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            token, expires_at = entry
            if utc_now() < expires_at:
                return token
            del self._cache[key]
            return None

    def set(self, key: str, token: str, expires_in: int) -> None:
        expires_at = utc_now() + timedelta(seconds=expires_in) - EXPIRY_MARGIN
        with self._lock:
            self._cache[key] = (token, expires_at)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


token_cache = TokenCache()


def build_assertion(
    client_email: str,
    private_key: str,
    scope: str = CALENDAR_SCOPE,
    now: datetime | None = None,
) -> str:
    """
    Sign the JWT assertion presented to Google's token endpoint.

    Args:
        client_email: Service account email (issuer)
        private_key: PEM-encoded RSA private key
        scope: Space separated OAuth scopes
        now: Issue time (defaults to current UTC time)

    Returns:
        str: Compact RS256-signed JWT
    """
    issued_at = int((now or utc_now()).timestamp())
    claims = {
        "iss": client_email,
        "scope": scope,
        "aud": TOKEN_URL,
        "iat": issued_at,
        "exp": issued_at + ASSERTION_LIFETIME,
    }
    return jwt.encode(claims, private_key, algorithm="RS256")


def create_access_token(client_email: str, private_key: str) -> tuple[str, int]:
    """
    Exchange a signed assertion for an access token.

    Returns:
        tuple[str, int]: Bearer token and its lifetime in seconds

    Raises:
        CalendarError: If signing fails or Google rejects the grant
    """
    logger.info("google_token_requested", client_email=client_email)

    try:
        assertion = build_assertion(client_email, private_key)
    except (ValueError, TypeError, jwt.PyJWTError) as e:
        raise CalendarError("Could not sign Google service account assertion", detail=str(e)) from e

    try:
        res = send_request(
            "POST",
            TOKEN_URL,
            provider="google",
            endpoint="token",
            retries=1,
            data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
    except requests.RequestException as e:
        raise CalendarError("Google token request failed", detail=str(e)) from e

    if not res.ok:
        logger.error("google_token_rejected", status_code=res.status_code, body=res.text)
        raise CalendarError(
            "Google rejected the token request", detail=res.text, status_code=res.status_code
        )

    data = res.json()
    token = data.get("access_token")
    if not isinstance(token, str):
        raise CalendarError("No access_token in Google response", detail=res.text)
    return token, int(data.get("expires_in") or ASSERTION_LIFETIME)


def get_access_token(client_email: str, private_key: str) -> str:
    """
    Get a valid Calendar access token, from cache when possible.

    Args:
        client_email: Service account email
        private_key: PEM-encoded RSA private key

    Returns:
        str: Bearer token
    """
    cached = token_cache.get(client_email)
    if cached:
        logger.debug("token_cache_hit", client_email=client_email)
        return cached

    logger.debug("token_cache_miss", client_email=client_email)
    token, expires_in = create_access_token(client_email, private_key)
    token_cache.set(client_email, token, expires_in)
    return token
