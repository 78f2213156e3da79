"""Raw SQL backend built on SQLAlchemy async Core."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import Table, delete, func, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, SQLAlchemyError

from contentsync.database import create_engine
from contentsync.exceptions import (
    BackendQueryError,
    BackendUnavailableError,
    TableNotFoundError,
    UnknownTableError,
)
from contentsync.models import Base

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _is_missing_table(exc: DBAPIError) -> bool:
    orig = exc.orig
    if orig is not None and type(orig).__name__ == "UndefinedTableError":
        return True
    message = str(orig if orig is not None else exc).lower()
    return "no such table" in message or ("relation" in message and "does not exist" in message)


@contextmanager
def _translate_errors(table: str) -> Iterator[None]:
    """Map driver exceptions onto the backend error hierarchy."""
    try:
        yield
    except DBAPIError as exc:
        if _is_missing_table(exc):
            raise TableNotFoundError(table) from exc
        if exc.connection_invalidated or isinstance(exc, (InterfaceError, OperationalError)):
            raise BackendUnavailableError(f"SQL backend unavailable: {exc.orig or exc}") from exc
        raise BackendQueryError(f"Query on {table} failed: {exc.orig or exc}") from exc
    except OSError as exc:
        raise BackendUnavailableError(f"SQL backend unavailable: {exc}") from exc


class SqlBackend:
    """TableBackend implementation for a relational database reached through SQLAlchemy."""

    mode = "sql"

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self.dialect_name = engine.dialect.name

    @classmethod
    async def connect(cls, database_url: str, *, echo: bool = False) -> SqlBackend:
        """Create the engine and verify the database answers ``SELECT 1``."""
        try:
            engine = create_engine(database_url, echo=echo)
        except (SQLAlchemyError, ImportError, OSError) as exc:
            raise BackendUnavailableError(f"Cannot create SQL engine: {exc}") from exc

        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            await engine.dispose()
            raise BackendUnavailableError(f"SQL backend unreachable: {exc}") from exc

        logger.info("Connected to SQL backend (%s)", engine.dialect.name)
        return cls(engine)

    def _table(self, table: str) -> Table:
        try:
            return Base.metadata.tables[table]
        except KeyError:
            raise UnknownTableError(table) from None

    async def select(
        self,
        table: str,
        columns: Sequence[str] | None = None,
        filters: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        tbl = self._table(table)
        stmt = select(*(tbl.c[name] for name in columns)) if columns else select(tbl)
        for key, value in (filters or {}).items():
            stmt = stmt.where(tbl.c[key] == value)

        with _translate_errors(table):
            async with self.engine.connect() as conn:
                result = await conn.execute(stmt)
                return [dict(row._mapping) for row in result]

    async def upsert(
        self,
        table: str,
        row: Mapping[str, Any],
        conflict_keys: Sequence[str],
    ) -> None:
        insert = _INSERT_BY_DIALECT.get(self.dialect_name)
        if insert is None:
            raise BackendQueryError(f"Upsert is not supported on {self.dialect_name}")

        tbl = self._table(table)
        stmt = insert(tbl).values(**row)
        updates = {key: stmt.excluded[key] for key in row if key not in conflict_keys}
        if updates:
            stmt = stmt.on_conflict_do_update(index_elements=list(conflict_keys), set_=updates)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_keys))

        with _translate_errors(table):
            async with self.engine.begin() as conn:
                await conn.execute(stmt)

    async def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        if not filters:
            raise ValueError("Refusing to delete without filters")
        tbl = self._table(table)
        stmt = delete(tbl)
        for key, value in filters.items():
            stmt = stmt.where(tbl.c[key] == value)

        with _translate_errors(table):
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
                return result.rowcount or 0

    async def execute(self, statement: str) -> None:
        with _translate_errors("<raw>"):
            async with self.engine.begin() as conn:
                await conn.execute(text(statement))

    async def count(self, table: str) -> int:
        tbl = self._table(table)
        with _translate_errors(table):
            async with self.engine.connect() as conn:
                result = await conn.execute(select(func.count()).select_from(tbl))
                return int(result.scalar_one())

    async def close(self) -> None:
        await self.engine.dispose()
