"""Admin API endpoints: table row counts and schema creation."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from contentsync.api.deps import get_backend
from contentsync.backends.base import TableBackend
from contentsync.services.schema_service import create_tables, table_counts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


class TableCountsResponse(BaseModel):
    backend: str
    tables: dict[str, int]


class SchemaResponse(BaseModel):
    status: str
    failed_statements: int


@router.get("/tables", response_model=TableCountsResponse)
async def list_tables(
    backend: Annotated[TableBackend, Depends(get_backend)],
) -> TableCountsResponse:
    """Row count of the manifest and every destination table."""
    return TableCountsResponse(backend=backend.mode, tables=await table_counts(backend))


@router.post("/schema", response_model=SchemaResponse)
async def create_schema(
    backend: Annotated[TableBackend, Depends(get_backend)],
) -> SchemaResponse:
    """Create any missing tables and indexes."""
    failed = await create_tables(backend)
    logger.info("Schema creation requested: %d failed statements", failed)
    return SchemaResponse(status="success" if failed == 0 else "partial", failed_statements=failed)
