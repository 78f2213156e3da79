"""Storage backend protocol shared by the SQL and REST adapters."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence


class BackendState(StrEnum):
    """Lifecycle of the process-wide backend."""

    UNINITIALIZED = "uninitialized"
    SQL_CONNECTED = "sql-connected"
    REST_CONNECTED = "rest-connected"
    CLOSED = "closed"


@runtime_checkable
class TableBackend(Protocol):
    """Narrow table-level query surface used by the manifest, apply and compare layers.

    Filters are equality matches on column values. Backends raise
    ``BackendUnavailableError`` when unreachable, ``TableNotFoundError`` for
    missing tables and ``BackendQueryError`` for rejected statements.
    """

    mode: str
    dialect_name: str

    async def select(
        self,
        table: str,
        columns: Sequence[str] | None = None,
        filters: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Return matching rows as plain dicts."""
        ...

    async def upsert(
        self,
        table: str,
        row: Mapping[str, Any],
        conflict_keys: Sequence[str],
    ) -> None:
        """Insert ``row`` or update the existing row with the same ``conflict_keys``."""
        ...

    async def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        """Delete matching rows and return how many were removed."""
        ...

    async def execute(self, statement: str) -> None:
        """Run a raw SQL statement (DDL, maintenance)."""
        ...

    async def count(self, table: str) -> int:
        """Return the number of rows in ``table``."""
        ...

    async def close(self) -> None:
        """Release connections."""
        ...
