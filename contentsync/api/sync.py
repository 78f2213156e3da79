"""Sync API endpoints: scan and pull the content tree, compare a table."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from contentsync.api.deps import get_sync_engine
from contentsync.backends.selector import backend_state
from contentsync.exceptions import UnknownTableError
from contentsync.services.compare import ComparisonItem, ComparisonReport, DeclaredFile
from contentsync.services.datetime_service import format_iso, now_utc
from contentsync.services.sync_service import PullReport, ScanReport, SyncEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])

SUPPORTED_MODES = ("scan", "pull")


# ── Schemas ──────────────────────────────────────────


class SyncRequest(BaseModel):
    """Request to run one sync mode."""

    mode: str = "scan"


class ChangeItem(BaseModel):
    path: str
    status: str
    table: str
    file_type: str
    content_hash: str | None = None


class FailureItem(BaseModel):
    path: str
    status: str
    error: str


class SyncResponse(BaseModel):
    """Result of a scan or pull."""

    status: str
    mode: str
    files_scanned: int
    new_files: int
    modified_files: int
    deleted_files: int
    changes: list[ChangeItem]
    unreadable: list[str] = Field(default_factory=list)
    applied: int | None = None
    failures: list[FailureItem] = Field(default_factory=list)
    timestamp: str


class SyncInfoResponse(BaseModel):
    available_modes: list[str]
    backend: str
    syncing: bool


class DeclaredFileItem(BaseModel):
    """A file the caller expects to find in the table."""

    filename: str
    content_hash: str
    path: str = ""
    lang: str | None = None
    type: str | None = None


class CompareRequest(BaseModel):
    table: str = Field(min_length=1)
    files: list[DeclaredFileItem] | None = None


class CompareItem(BaseModel):
    filename: str
    path: str
    status: str
    message: str
    lang: str | None = None
    type: str | None = None
    content_hash: str | None = None
    database_hash: str | None = None


class CompareSummary(BaseModel):
    total_declared: int
    total_in_table: int
    similar_count: int
    different_count: int
    missing_count: int


class CompareResponse(BaseModel):
    status: str
    table: str
    similar: list[CompareItem]
    different: list[CompareItem]
    missing: list[CompareItem]
    summary: CompareSummary


# ── Conversions ──────────────────────────────────────


def _sync_response(mode: str, report: ScanReport) -> SyncResponse:
    response = SyncResponse(
        status="success",
        mode=mode,
        files_scanned=report.files_scanned,
        new_files=report.new_files,
        modified_files=report.modified_files,
        deleted_files=report.deleted_files,
        changes=[
            ChangeItem(
                path=c.path,
                status=str(c.status),
                table=c.table,
                file_type=c.file_type,
                content_hash=c.content_hash,
            )
            for c in report.changes
        ],
        unreadable=report.unreadable,
        timestamp=format_iso(now_utc()),
    )
    if isinstance(report, PullReport):
        response.applied = report.applied
        response.failures = [
            FailureItem(path=f.path, status=f.status, error=f.error) for f in report.failures
        ]
    return response


def _compare_item(item: ComparisonItem) -> CompareItem:
    return CompareItem(
        filename=item.filename,
        path=item.path,
        status=item.status,
        message=item.message,
        lang=item.lang,
        type=item.doc_type,
        content_hash=item.content_hash,
        database_hash=item.database_hash,
    )


def _compare_response(report: ComparisonReport) -> CompareResponse:
    summary = report.summary
    return CompareResponse(
        status="success",
        table=report.table,
        similar=[_compare_item(i) for i in report.similar],
        different=[_compare_item(i) for i in report.different],
        missing=[_compare_item(i) for i in report.missing],
        summary=CompareSummary(
            total_declared=summary.total_declared,
            total_in_table=summary.total_in_table,
            similar_count=summary.similar_count,
            different_count=summary.different_count,
            missing_count=summary.missing_count,
        ),
    )


# ── Endpoints ────────────────────────────────────────


@router.get("", response_model=SyncInfoResponse)
async def sync_info(
    engine: Annotated[SyncEngine, Depends(get_sync_engine)],
) -> SyncInfoResponse:
    """Report available modes and the backend state."""
    return SyncInfoResponse(
        available_modes=list(SUPPORTED_MODES),
        backend=str(backend_state()),
        syncing=engine.is_syncing,
    )


@router.post("", response_model=SyncResponse)
async def run_sync(
    body: SyncRequest,
    engine: Annotated[SyncEngine, Depends(get_sync_engine)],
) -> SyncResponse:
    """Run a scan (read-only) or a pull (apply changes to the database)."""
    if body.mode == "scan":
        return _sync_response("scan", await engine.scan())
    if body.mode == "pull":
        return _sync_response("pull", await engine.pull())
    if body.mode == "push":
        raise HTTPException(status_code=501, detail="Push mode is not implemented")
    raise HTTPException(
        status_code=400,
        detail=f"Unknown mode: {body.mode}. Use one of: {', '.join(SUPPORTED_MODES)}",
    )


@router.post("/compare", response_model=CompareResponse)
async def compare(
    body: CompareRequest,
    engine: Annotated[SyncEngine, Depends(get_sync_engine)],
) -> CompareResponse:
    """Compare declared files (or the table's content folder) with the table rows."""
    declared = None
    if body.files is not None:
        declared = [
            DeclaredFile(
                filename=f.filename,
                content_hash=f.content_hash,
                path=f.path,
                lang=f.lang,
                doc_type=f.type,
            )
            for f in body.files
        ]
    try:
        report = await engine.compare(body.table, declared)
    except UnknownTableError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _compare_response(report)
