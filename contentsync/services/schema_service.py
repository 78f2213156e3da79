"""Schema management: create the manifest and destination tables, count rows."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.schema import CreateIndex, CreateTable

from contentsync.exceptions import BackendError, TableNotFoundError
from contentsync.models import Base
from contentsync.services.classifier import DESTINATION_TABLES
from contentsync.services.manifest import MANIFEST_TABLE

if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect

    from contentsync.backends.base import TableBackend

logger = logging.getLogger(__name__)

MANAGED_TABLES: tuple[str, ...] = (MANIFEST_TABLE, *DESTINATION_TABLES)


def _dialect(dialect_name: str) -> Dialect:
    if dialect_name == "sqlite":
        return sqlite.dialect()
    if dialect_name == "postgresql":
        return postgresql.dialect()
    raise ValueError(f"Unsupported SQL dialect: {dialect_name}")


def schema_statements(dialect_name: str) -> list[str]:
    """DDL for every managed table and index, safe to run repeatedly."""
    dialect = _dialect(dialect_name)
    statements: list[str] = []
    for table in Base.metadata.sorted_tables:
        if table.name not in MANAGED_TABLES:
            continue
        statements.append(str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)))
        for index in sorted(table.indexes, key=lambda idx: idx.name or ""):
            statements.append(str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect)))
    return statements


async def create_tables(backend: TableBackend) -> int:
    """Run the schema DDL through ``backend``. Returns the number of failed statements.

    A failed statement is logged and the remaining statements are still run.
    """
    failed = 0
    for statement in schema_statements(backend.dialect_name):
        try:
            await backend.execute(statement)
        except BackendError as exc:
            failed += 1
            logger.warning("Schema statement failed: %s", exc)
    if failed:
        logger.warning("Schema creation finished with %d failed statements", failed)
    else:
        logger.info("Schema ready (%s backend)", backend.mode)
    return failed


async def table_counts(backend: TableBackend) -> dict[str, int]:
    """Row count per managed table; a table that does not exist counts as 0."""
    counts: dict[str, int] = {}
    for table in MANAGED_TABLES:
        try:
            counts[table] = await backend.count(table)
        except TableNotFoundError:
            counts[table] = 0
    return counts
