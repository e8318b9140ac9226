"""
Store adapter contract.

The hosted relational store is the single source of truth; adapters only
translate four primitive operations to a backend and carry no business logic.

Filter mapping semantics (shared by every backend):
    column -> scalar          equality
    column -> list / tuple    membership (IN)
    column -> None            IS NULL
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence

Row = dict[str, Any]
Filters = Mapping[str, Any]

RESERVATIONS_TABLE = "reservas"
FLATS_TABLE = "flats"


class Store(Protocol):
    def list(
        self,
        table: str,
        filters: Optional[Filters] = None,
        select: Optional[Sequence[str]] = None,
    ) -> list[Row]:
        """Return every row of ``table`` matching ``filters`` (all columns unless ``select``)."""
        ...

    def get(self, table: str, row_id: Any, select: Optional[Sequence[str]] = None) -> Optional[Row]:
        """Return the row with primary key ``row_id`` or None."""
        ...

    def insert(self, table: str, row: Row) -> Row:
        """
        Insert a row and return it as stored (with store-assigned id/defaults).

        Raises:
            DateConflictError: If the store's range-exclusion constraint rejects the row
            StoreError: On any other failure
        """
        ...

    def patch(
        self,
        table: str,
        row_id: Any,
        fields: Row,
        where: Optional[Filters] = None,
    ) -> int:
        """
        Update columns of one row, optionally only when ``where`` also matches.

        Returns:
            int: Number of rows updated (0 or 1); a conditional patch returning 0
                 means another writer got there first.
        """
        ...

    def ping(self) -> bool:
        """Cheap connectivity check used by the readiness probe."""
        ...
