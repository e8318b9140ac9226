"""
Store adapter for the hosted database's REST interface (Supabase / PostgREST).

Authenticates every call with the service key (``apikey`` header and bearer
token). Filters are rendered in PostgREST's query dialect, e.g.
``flat_id=eq.3&status=in.("pendente","confirmada")``.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Sequence

import requests
import structlog

from flat_booking.errors import DateConflictError, StoreError
from flat_booking.metrics import store_operations
from flat_booking.network.client import send_request
from flat_booking.store.base import Filters, Row

logger = structlog.get_logger(__name__)

PROVIDER = "postgrest"

# Postgres SQLSTATEs
EXCLUSION_VIOLATION = "23P01"
INVALID_TEXT_REPRESENTATION = "22P02"


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _quoted(value: Any) -> str:
    text = _literal(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def render_filters(filters: Optional[Filters]) -> dict[str, str]:
    """
    Render a filter mapping into PostgREST query parameters.

    Example:
        >>> render_filters({"flat_id": 3, "status": ["pendente", "pago"], "expira_em": None})
        {'flat_id': 'eq.3', 'status': 'in.("pendente","pago")', 'expira_em': 'is.null'}
    """
    params: dict[str, str] = {}
    for column, value in (filters or {}).items():
        if value is None:
            params[column] = "is.null"
        elif isinstance(value, (list, tuple, set, frozenset)):
            params[column] = "in.(" + ",".join(_quoted(v) for v in value) + ")"
        else:
            params[column] = f"eq.{_literal(value)}"
    return params


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class PostgrestStore:
    """Store implementation over PostgREST using ``requests``."""

    def __init__(self, base_url: str, service_key: str, timeout: float = 10) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        }

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _send(
        self,
        method: str,
        table: str,
        operation: str,
        retries: int = 0,
        **kwargs: Any,
    ) -> requests.Response:
        store_operations.labels(operation=operation, table=table).inc()
        try:
            return send_request(
                method,
                self._url(table),
                provider=PROVIDER,
                endpoint=table,
                retries=retries,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise StoreError(f"Store {operation} on {table} failed", detail=str(e)) from e

    def _select(
        self,
        table: str,
        filters: Optional[Filters],
        select: Optional[Sequence[str]],
    ) -> requests.Response:
        params = render_filters(filters)
        params["select"] = ",".join(select) if select else "*"
        return self._send("GET", table, "list", retries=1, headers=self.headers, params=params)

    def list(
        self,
        table: str,
        filters: Optional[Filters] = None,
        select: Optional[Sequence[str]] = None,
    ) -> list[Row]:
        res = self._select(table, filters, select)
        if not res.ok:
            raise StoreError(
                f"Failed to query {table}", detail=res.text, status_code=res.status_code
            )
        rows: list[Row] = res.json()
        return rows

    def get(self, table: str, row_id: Any, select: Optional[Sequence[str]] = None) -> Optional[Row]:
        res = self._select(table, {"id": row_id}, select)
        if not res.ok:
            # A malformed id (e.g. not a uuid) cannot match any row
            if _error_code(res) == INVALID_TEXT_REPRESENTATION:
                logger.info("store_get_invalid_id", table=table, row_id=str(row_id))
                return None
            raise StoreError(
                f"Failed to query {table}", detail=res.text, status_code=res.status_code
            )
        rows = res.json()
        return rows[0] if rows else None

    def insert(self, table: str, row: Row) -> Row:
        headers = {**self.headers, "Prefer": "return=representation"}
        res = self._send(
            "POST",
            table,
            "insert",
            headers=headers,
            data=json.dumps(row, default=_json_default),
        )
        if not res.ok:
            if _is_exclusion_violation(res):
                raise DateConflictError(detail="overlapping reservation rejected by store")
            raise StoreError(
                f"Failed to insert into {table}", detail=res.text, status_code=res.status_code
            )
        created = res.json()
        if isinstance(created, list):
            if not created:
                raise StoreError(f"Insert into {table} returned no row")
            return dict(created[0])
        return dict(created)

    def patch(
        self,
        table: str,
        row_id: Any,
        fields: Row,
        where: Optional[Filters] = None,
    ) -> int:
        params = render_filters({**(where or {}), "id": row_id})
        params["select"] = "id"
        headers = {**self.headers, "Prefer": "return=representation"}
        res = self._send(
            "PATCH",
            table,
            "patch",
            headers=headers,
            params=params,
            data=json.dumps(fields, default=_json_default),
        )
        if not res.ok:
            if _is_exclusion_violation(res):
                raise DateConflictError(detail="overlapping reservation rejected by store")
            raise StoreError(
                f"Failed to update {table} id={row_id}",
                detail=res.text,
                status_code=res.status_code,
            )
        try:
            updated = res.json()
        except ValueError:
            # 204 when the server ignores return=representation
            return 1
        return len(updated) if isinstance(updated, list) else 1

    def ping(self) -> bool:
        try:
            res = send_request(
                "GET",
                self._url("flats"),
                provider=PROVIDER,
                endpoint="flats",
                timeout=self.timeout,
                headers=self.headers,
                params={"select": "id", "limit": "1"},
            )
        except requests.RequestException:
            return False
        return res.ok


def _error_code(res: requests.Response) -> Optional[str]:
    """SQLSTATE of a PostgREST error body, if it carries one."""
    try:
        body = res.json()
    except ValueError:
        return None
    return body.get("code") if isinstance(body, dict) else None


def _is_exclusion_violation(res: requests.Response) -> bool:
    return _error_code(res) == EXCLUSION_VIOLATION
