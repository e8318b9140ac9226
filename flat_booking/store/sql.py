"""
Store adapter over a direct Postgres connection (SQLAlchemy Core).

Statements are built from the ORM table metadata so this adapter and the
Alembic migrations share one description of the schema. An exclusion
constraint violation on insert/update is reported as a date conflict.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from sqlalchemy import Table, insert, update
from sqlalchemy import select as sa_select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

import flat_booking.models.flats  # noqa: F401
import flat_booking.models.reservations  # noqa: F401
from flat_booking.db.engine import check_engine_health
from flat_booking.errors import DateConflictError, StoreError
from flat_booking.metrics import store_operations
from flat_booking.models.base import Base
from flat_booking.store.base import Filters, Row

EXCLUSION_VIOLATION = "23P01"
INVALID_TEXT_REPRESENTATION = "22P02"


def _table(name: str) -> Table:
    try:
        return Base.metadata.tables[name]
    except KeyError:
        raise StoreError(f"Unknown table {name}") from None


def _conditions(table: Table, filters: Optional[Filters]) -> list[Any]:
    clauses = []
    for column, value in (filters or {}).items():
        col = table.c[column]
        if value is None:
            clauses.append(col.is_(None))
        elif isinstance(value, (list, tuple, set, frozenset)):
            clauses.append(col.in_(list(value)))
        else:
            clauses.append(col == value)
    return clauses


def _is_exclusion_violation(err: IntegrityError) -> bool:
    return getattr(err.orig, "pgcode", None) == EXCLUSION_VIOLATION


class SqlStore:
    """Store implementation using a pooled SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def list(
        self,
        table: str,
        filters: Optional[Filters] = None,
        select: Optional[Sequence[str]] = None,
    ) -> list[Row]:
        tbl = _table(table)
        cols = [tbl.c[c] for c in select] if select else [tbl]
        stmt = sa_select(*cols).where(*_conditions(tbl, filters))

        store_operations.labels(operation="list", table=table).inc()
        try:
            with self.engine.connect() as conn:
                return [dict(row) for row in conn.execute(stmt).mappings()]
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to query {table}", detail=str(e)) from e

    def get(self, table: str, row_id: Any, select: Optional[Sequence[str]] = None) -> Optional[Row]:
        try:
            rows = self.list(table, {"id": row_id}, select)
        except StoreError as e:
            # A malformed id (e.g. not a uuid) cannot match any row
            cause = getattr(e.__cause__, "orig", None)
            if getattr(cause, "pgcode", None) == INVALID_TEXT_REPRESENTATION:
                return None
            raise
        return rows[0] if rows else None

    def insert(self, table: str, row: Row) -> Row:
        tbl = _table(table)
        stmt = insert(tbl).values(**row).returning(*tbl.c)

        store_operations.labels(operation="insert", table=table).inc()
        try:
            with self.engine.begin() as conn:
                created = conn.execute(stmt).mappings().one()
        except IntegrityError as e:
            if _is_exclusion_violation(e):
                raise DateConflictError(detail="overlapping reservation rejected by store") from e
            raise StoreError(f"Failed to insert into {table}", detail=str(e.orig)) from e
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to insert into {table}", detail=str(e)) from e
        return dict(created)

    def patch(
        self,
        table: str,
        row_id: Any,
        fields: Row,
        where: Optional[Filters] = None,
    ) -> int:
        tbl = _table(table)
        stmt = (
            update(tbl)
            .where(tbl.c.id == row_id, *_conditions(tbl, where))
            .values(**fields)
            .returning(tbl.c.id)
        )

        store_operations.labels(operation="patch", table=table).inc()
        try:
            with self.engine.begin() as conn:
                return len(conn.execute(stmt).fetchall())
        except IntegrityError as e:
            if _is_exclusion_violation(e):
                raise DateConflictError(detail="overlapping reservation rejected by store") from e
            raise StoreError(f"Failed to update {table} id={row_id}", detail=str(e.orig)) from e
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to update {table} id={row_id}", detail=str(e)) from e

    def ping(self) -> bool:
        return check_engine_health(self.engine)
