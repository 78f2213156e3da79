"""Apply layer: write each change to its destination table, then to the manifest.

Every change is applied independently. A failure in one change is logged
and collected; the remaining changes are still attempted.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import mimetypes
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from contentsync.exceptions import ContentError
from contentsync.services.classifier import (
    COLLECTIONS_TABLE,
    document_filename,
    parse_collection_path,
)
from contentsync.services.datetime_service import format_iso, now_utc
from contentsync.services.diff import ChangeStatus
from contentsync.services.manifest import ManifestEntry

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from contentsync.backends.base import TableBackend
    from contentsync.services.diff import ChangeRecord
    from contentsync.services.manifest import ManifestStore
    from contentsync.services.scanner import FileRecord

logger = logging.getLogger(__name__)


@dataclass
class ApplyFailure:
    path: str
    status: str
    error: str


@dataclass
class ApplyResult:
    applied: int = 0
    failures: list[ApplyFailure] = field(default_factory=list)


# ── Row builders ─────────────────────────────────────


def parse_json_content(path: str, content: bytes) -> Any:
    """Decode content bytes as UTF-8 JSON, raising ContentError on failure."""
    try:
        return json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ContentError(f"{path}: content is not valid JSON ({exc})") from None


def encode_text_content(content: bytes) -> tuple[str, str]:
    """Return (text, encoding); binary content falls back to base64."""
    try:
        return content.decode("utf-8"), "utf-8"
    except UnicodeDecodeError:
        return base64.b64encode(content).decode("ascii"), "base64"


def _base_row(change: ChangeRecord) -> dict[str, Any]:
    timestamp = format_iso(now_utc())
    return {
        "filename": document_filename(change.path),
        "file_path": change.path,
        "file_hash": change.content_hash,
        "synced_at": timestamp,
        "updated_at": timestamp,
    }


def _collection_row(change: ChangeRecord, content: bytes) -> dict[str, Any]:
    key = parse_collection_path(change.path)
    if key is None:
        raise ContentError(
            f"{change.path}: collection files must live under collections/<lang>/<type>/"
        )
    row = _base_row(change)
    row.update(
        lang=key.lang,
        type=key.doc_type,
        file_content=parse_json_content(change.path, content),
    )
    return row


def _json_file_row(change: ChangeRecord, content: bytes) -> dict[str, Any]:
    row = _base_row(change)
    row.update(
        file_type=change.file_type,
        file_content=parse_json_content(change.path, content),
    )
    return row


def _static_file_row(change: ChangeRecord, content: bytes) -> dict[str, Any]:
    text, encoding = encode_text_content(content)
    row = _base_row(change)
    row.update(file_type=change.file_type, file_content=text, content_encoding=encoding)
    return row


def _javascript_row(change: ChangeRecord, content: bytes) -> dict[str, Any]:
    text, _ = encode_text_content(content)
    row = _base_row(change)
    row.update(file_content=text)
    return row


def _image_row(change: ChangeRecord, content: bytes) -> dict[str, Any]:
    mime_type, _ = mimetypes.guess_type(change.path)
    row = _base_row(change)
    row.update(mime_type=mime_type)
    return row


def _resume_row(change: ChangeRecord, content: bytes) -> dict[str, Any]:
    row = _base_row(change)
    row.update(file_type=change.file_type)
    return row


@dataclass(frozen=True)
class TableLayout:
    """How one destination table is keyed and how a change becomes a row."""

    key_columns: tuple[str, ...]
    build_row: Callable[[ChangeRecord, bytes], dict[str, Any]]


TABLE_LAYOUTS: dict[str, TableLayout] = {
    COLLECTIONS_TABLE: TableLayout(("lang", "type", "filename"), _collection_row),
    "config_files": TableLayout(("filename",), _json_file_row),
    "data_files": TableLayout(("filename",), _json_file_row),
    "static_files": TableLayout(("filename",), _static_file_row),
    "images": TableLayout(("filename",), _image_row),
    "javascript_files": TableLayout(("filename",), _javascript_row),
    "resumes": TableLayout(("filename",), _resume_row),
}


def delete_filters(change: ChangeRecord) -> dict[str, Any]:
    """Match the row owned by ``change.path`` in its destination table.

    Rows are matched on their key and on ``file_path`` so that deleting one
    file never removes a row that another path with the same stem now owns.
    """
    if change.table == COLLECTIONS_TABLE:
        key = parse_collection_path(change.path)
        if key is None:
            return {"file_path": change.path}
        return {
            "lang": key.lang,
            "type": key.doc_type,
            "filename": key.filename,
            "file_path": change.path,
        }
    return {"filename": document_filename(change.path), "file_path": change.path}


# ── Application ──────────────────────────────────────


def _still_owns(files: Mapping[str, FileRecord], owner: str, table: str) -> bool:
    record = files.get(owner)
    return record is not None and record.table == table


async def _apply_upsert(
    backend: TableBackend,
    manifest: ManifestStore,
    change: ChangeRecord,
    files: Mapping[str, FileRecord],
    key_locks: Mapping[tuple[Any, ...], asyncio.Lock],
) -> None:
    record = files.get(change.path)
    if record is None:
        raise ContentError(f"{change.path}: no scanned content available")
    if change.content_hash is None:
        raise ContentError(f"{change.path}: change has no content hash")

    layout = TABLE_LAYOUTS.get(change.table)
    if layout is None:
        raise ContentError(f"{change.path}: no destination table layout for {change.table!r}")
    if change.previous_table:
        logger.info(
            "%s moved from %s to %s; the old row is left in place",
            change.path,
            change.previous_table,
            change.table,
        )

    row = layout.build_row(change, record.content)
    key = {column: row[column] for column in layout.key_columns}
    async with key_locks[(change.table, *key.values())]:
        existing = await backend.select(change.table, ["file_path"], key)
        owner = existing[0].get("file_path") if existing else None
        # A row owned by another file still in this table is never overwritten.
        if owner and owner != change.path and _still_owns(files, owner, change.table):
            raise ContentError(f"{change.path}: key owned by {owner}")
        await backend.upsert(change.table, row, conflict_keys=layout.key_columns)
        await manifest.upsert(
            ManifestEntry(
                path=change.path,
                content_hash=change.content_hash,
                table_name=change.table,
                last_synced=row["synced_at"],
            )
        )


async def _apply_delete(
    backend: TableBackend,
    manifest: ManifestStore,
    change: ChangeRecord,
) -> None:
    if change.table in TABLE_LAYOUTS:
        await backend.delete(change.table, delete_filters(change))
    else:
        logger.warning(
            "Manifest entry %s points at unknown table %r; removing manifest entry only",
            change.path,
            change.table,
        )
    await manifest.delete(change.path)


def _order_changes(changes: Sequence[ChangeRecord]) -> list[ChangeRecord]:
    deletions = [c for c in changes if c.status == ChangeStatus.DELETED]
    writes = [c for c in changes if c.status != ChangeStatus.DELETED]
    return deletions + writes


async def apply_changes(
    backend: TableBackend,
    manifest: ManifestStore,
    changes: Sequence[ChangeRecord],
    files: Mapping[str, FileRecord],
    *,
    concurrency: int = 1,
) -> ApplyResult:
    """Apply ``changes`` with at most ``concurrency`` changes in flight.

    Returns the number of applied changes and one failure per change that
    raised. Only cancellation propagates.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))
    key_locks: defaultdict[tuple[Any, ...], asyncio.Lock] = defaultdict(asyncio.Lock)

    async def _apply_one(change: ChangeRecord) -> ApplyFailure | None:
        async with semaphore:
            try:
                if change.status == ChangeStatus.DELETED:
                    await _apply_delete(backend, manifest, change)
                else:
                    await _apply_upsert(backend, manifest, change, files, key_locks)
            except Exception as exc:
                logger.warning(
                    "Failed to apply %s change for %s: %s", change.status, change.path, exc
                )
                return ApplyFailure(path=change.path, status=str(change.status), error=str(exc))
            logger.debug("Applied %s change for %s", change.status, change.path)
            return None

    ordered = _order_changes(changes)
    outcomes = await asyncio.gather(*(_apply_one(change) for change in ordered))

    result = ApplyResult()
    for outcome in outcomes:
        if outcome is None:
            result.applied += 1
        else:
            result.failures.append(outcome)
    return result
