"""Sync engine: scan, pull and compare over one backend and one content root."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from contentsync.services.apply import ApplyFailure, apply_changes
from contentsync.services.compare import compare_table, declared_files_from_tree
from contentsync.services.diff import compute_changes
from contentsync.services.manifest import ManifestStore
from contentsync.services.scanner import scan_content_tree

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from contentsync.backends.base import TableBackend
    from contentsync.config import Settings
    from contentsync.services.compare import ComparisonReport, DeclaredFile
    from contentsync.services.diff import ChangeRecord, ChangeSet
    from contentsync.services.scanner import ScanResult

logger = logging.getLogger(__name__)


@dataclass
class ScanReport:
    """Outcome of a read-only scan."""

    files_scanned: int = 0
    new_files: int = 0
    modified_files: int = 0
    deleted_files: int = 0
    changes: list[ChangeRecord] = field(default_factory=list)
    unreadable: list[str] = field(default_factory=list)


@dataclass
class PullReport(ScanReport):
    """Outcome of a pull: the scan statistics plus what was applied."""

    applied: int = 0
    failures: list[ApplyFailure] = field(default_factory=list)


class SyncEngine:
    """Reconcile the content tree under ``content_dir`` with ``backend``."""

    def __init__(
        self,
        backend: TableBackend,
        content_dir: Path,
        *,
        ignored_dirs: Collection[str],
        allowed_extensions: Collection[str],
        apply_concurrency: int = 1,
    ) -> None:
        self.backend = backend
        self.content_dir = content_dir
        self.ignored_dirs = tuple(ignored_dirs)
        self.allowed_extensions = tuple(allowed_extensions)
        self.apply_concurrency = apply_concurrency
        self.manifest = ManifestStore(backend)
        # One pull at a time per engine.
        self._pull_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, backend: TableBackend, settings: Settings) -> SyncEngine:
        return cls(
            backend,
            Path(settings.content_dir),
            ignored_dirs=settings.ignored_dirs,
            allowed_extensions=settings.allowed_extensions,
            apply_concurrency=settings.apply_concurrency,
        )

    @property
    def is_syncing(self) -> bool:
        return self._pull_lock.locked()

    async def _detect(self) -> tuple[ScanResult, ChangeSet]:
        scan = await asyncio.to_thread(
            scan_content_tree, self.content_dir, self.ignored_dirs, self.allowed_extensions
        )
        entries = await self.manifest.read_all()
        return scan, compute_changes(scan.files, entries)

    async def scan(self) -> ScanReport:
        """Report pending changes without writing anything."""
        scan, change_set = await self._detect()
        report = ScanReport(
            files_scanned=change_set.files_scanned,
            new_files=change_set.new_files,
            modified_files=change_set.modified_files,
            deleted_files=change_set.deleted_files,
            changes=change_set.changes,
            unreadable=scan.unreadable,
        )
        logger.info(
            "Scan: %d files, %d new, %d modified, %d deleted",
            report.files_scanned,
            report.new_files,
            report.modified_files,
            report.deleted_files,
        )
        return report

    async def pull(self) -> PullReport:
        """Push every pending change into the backend and update the manifest.

        Overlapping calls on the same engine wait for the running pull.
        """
        async with self._pull_lock:
            scan, change_set = await self._detect()
            result = await apply_changes(
                self.backend,
                self.manifest,
                change_set.changes,
                scan.files,
                concurrency=self.apply_concurrency,
            )

        report = PullReport(
            files_scanned=change_set.files_scanned,
            new_files=change_set.new_files,
            modified_files=change_set.modified_files,
            deleted_files=change_set.deleted_files,
            changes=change_set.changes,
            unreadable=scan.unreadable,
            applied=result.applied,
            failures=result.failures,
        )
        logger.info(
            "Pull: %d changes applied, %d failed (%d files scanned)",
            report.applied,
            len(report.failures),
            report.files_scanned,
        )
        return report

    async def compare(
        self,
        table: str,
        declared: Iterable[DeclaredFile] | None = None,
    ) -> ComparisonReport:
        """Compare a declared listing with ``table``; defaults to the table's folder."""
        if declared is None:
            declared = await asyncio.to_thread(
                declared_files_from_tree,
                self.content_dir,
                table,
                self.ignored_dirs,
                self.allowed_extensions,
            )
        return await compare_table(self.backend, table, declared)
