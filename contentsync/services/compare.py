"""Comparison reporter: read-only audit of a declared file listing against a table."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from contentsync.exceptions import TableNotFoundError, UnknownTableError
from contentsync.services.classifier import (
    COLLECTIONS_TABLE,
    DESTINATION_TABLES,
    document_filename,
    parse_collection_path,
)
from contentsync.services.scanner import scan_content_tree

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Sequence
    from pathlib import Path

    from contentsync.backends.base import TableBackend

logger = logging.getLogger(__name__)


@dataclass
class DeclaredFile:
    """An expected file: what the table should contain for it."""

    filename: str
    content_hash: str
    path: str = ""
    lang: str | None = None
    doc_type: str | None = None


@dataclass
class ComparisonItem:
    filename: str
    path: str
    status: str
    message: str
    lang: str | None = None
    doc_type: str | None = None
    content_hash: str | None = None
    database_hash: str | None = None


@dataclass
class ComparisonSummary:
    total_declared: int = 0
    total_in_table: int = 0
    similar_count: int = 0
    different_count: int = 0
    missing_count: int = 0


@dataclass
class ComparisonReport:
    table: str
    similar: list[ComparisonItem] = field(default_factory=list)
    different: list[ComparisonItem] = field(default_factory=list)
    missing: list[ComparisonItem] = field(default_factory=list)
    summary: ComparisonSummary = field(default_factory=ComparisonSummary)


def _validate_table(table: str) -> None:
    if table not in DESTINATION_TABLES:
        raise UnknownTableError(table)


def _declared_key(table: str, declared: DeclaredFile) -> tuple[str, ...] | None:
    if table != COLLECTIONS_TABLE:
        return (declared.filename,)
    if declared.lang and declared.doc_type:
        return (declared.lang, declared.doc_type, declared.filename)
    parsed = parse_collection_path(declared.path)
    if parsed is None:
        return None
    return (parsed.lang, parsed.doc_type, declared.filename)


def _row_key(table: str, row: dict[str, Any]) -> tuple[str, ...]:
    if table == COLLECTIONS_TABLE:
        return (str(row.get("lang")), str(row.get("type")), str(row.get("filename")))
    return (str(row.get("filename")),)


def compare_files(
    table: str,
    declared: Iterable[DeclaredFile],
    rows: Sequence[dict[str, Any]],
) -> ComparisonReport:
    """Sort declared files into similar, different and missing against ``rows``.

    Rows carry ``filename`` and ``file_hash`` (plus ``lang`` and ``type`` for
    collections). Collection files whose language and type cannot be
    determined are skipped.
    """
    _validate_table(table)
    by_key = {_row_key(table, row): row for row in rows}
    report = ComparisonReport(table=table)
    declared_count = 0

    for item in declared:
        declared_count += 1
        key = _declared_key(table, item)
        if key is None:
            logger.debug("Skipping %s: no language/type in path", item.path or item.filename)
            continue
        lang, doc_type = (key[0], key[1]) if table == COLLECTIONS_TABLE else (None, None)
        row = by_key.get(key)

        if row is None:
            report.missing.append(
                ComparisonItem(
                    filename=item.filename,
                    path=item.path,
                    status="missing",
                    message="Declared but not in database",
                    lang=lang,
                    doc_type=doc_type,
                    content_hash=item.content_hash,
                )
            )
        elif row.get("file_hash") == item.content_hash:
            report.similar.append(
                ComparisonItem(
                    filename=item.filename,
                    path=item.path,
                    status="similar",
                    message="In sync",
                    lang=lang,
                    doc_type=doc_type,
                    content_hash=item.content_hash,
                    database_hash=row.get("file_hash"),
                )
            )
        else:
            report.different.append(
                ComparisonItem(
                    filename=item.filename,
                    path=item.path,
                    status="different",
                    message="Hash mismatch - needs update",
                    lang=lang,
                    doc_type=doc_type,
                    content_hash=item.content_hash,
                    database_hash=row.get("file_hash"),
                )
            )

    report.summary = ComparisonSummary(
        total_declared=declared_count,
        total_in_table=len(rows),
        similar_count=len(report.similar),
        different_count=len(report.different),
        missing_count=len(report.missing),
    )
    return report


async def compare_table(
    backend: TableBackend,
    table: str,
    declared: Iterable[DeclaredFile],
) -> ComparisonReport:
    """Compare ``declared`` against the live contents of ``table``. Never writes."""
    _validate_table(table)
    columns = ["filename", "file_hash"]
    if table == COLLECTIONS_TABLE:
        columns = ["lang", "type", "filename", "file_hash"]
    try:
        rows = await backend.select(table, columns)
    except TableNotFoundError:
        logger.info("Table %s does not exist yet; every declared file is missing", table)
        rows = []
    return compare_files(table, declared, rows)


def declared_files_from_tree(
    root: Path,
    table: str,
    ignored_dirs: Collection[str],
    allowed_extensions: Collection[str],
) -> list[DeclaredFile]:
    """Build the declared listing for ``table`` from the content tree.

    Files are classified the same way ``pull`` classifies them, so a file is
    declared for exactly the table it would be written to.
    """
    _validate_table(table)
    scan = scan_content_tree(root, ignored_dirs, allowed_extensions)
    declared: list[DeclaredFile] = []
    for rel, record in scan.files.items():
        if record.table != table:
            continue
        parsed = parse_collection_path(rel) if table == COLLECTIONS_TABLE else None
        declared.append(
            DeclaredFile(
                filename=document_filename(rel),
                content_hash=record.content_hash,
                path=rel,
                lang=parsed.lang if parsed else None,
                doc_type=parsed.doc_type if parsed else None,
            )
        )
    return declared
