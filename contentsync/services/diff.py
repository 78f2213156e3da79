"""Diff engine: reconcile a scan against the manifest."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from contentsync.services.classifier import file_extension

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from contentsync.services.manifest import ManifestEntry
    from contentsync.services.scanner import FileRecord


class ChangeStatus(StrEnum):
    NEW = "new"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass
class ChangeRecord:
    """A single change to apply. ``content_hash`` is None for deletions."""

    path: str
    status: ChangeStatus
    table: str
    file_type: str
    content_hash: str | None = None
    # Table recorded in the manifest when a modified file was reclassified.
    previous_table: str | None = None


@dataclass
class ChangeSet:
    changes: list[ChangeRecord] = field(default_factory=list)
    files_scanned: int = 0

    def _count(self, status: ChangeStatus) -> int:
        return sum(1 for change in self.changes if change.status == status)

    @property
    def new_files(self) -> int:
        return self._count(ChangeStatus.NEW)

    @property
    def modified_files(self) -> int:
        return self._count(ChangeStatus.MODIFIED)

    @property
    def deleted_files(self) -> int:
        return self._count(ChangeStatus.DELETED)


def compute_changes(
    current: Mapping[str, FileRecord],
    manifest_entries: Iterable[ManifestEntry],
) -> ChangeSet:
    """Compute new, modified and deleted changes by path identity and hash equality.

    Scanned paths come first in sorted order, followed by deletions in sorted
    order. A reclassified file keeps its path identity: the change targets
    the new table and records the old one in ``previous_table``.
    """
    manifest = {entry.path: entry for entry in manifest_entries}
    changes: list[ChangeRecord] = []

    for path in sorted(current):
        record = current[path]
        entry = manifest.get(path)
        if entry is None:
            changes.append(
                ChangeRecord(
                    path=path,
                    status=ChangeStatus.NEW,
                    table=record.table,
                    file_type=record.file_type,
                    content_hash=record.content_hash,
                )
            )
        elif entry.content_hash != record.content_hash:
            changes.append(
                ChangeRecord(
                    path=path,
                    status=ChangeStatus.MODIFIED,
                    table=record.table,
                    file_type=record.file_type,
                    content_hash=record.content_hash,
                    previous_table=entry.table_name if entry.table_name != record.table else None,
                )
            )

    for path in sorted(set(manifest) - set(current)):
        changes.append(
            ChangeRecord(
                path=path,
                status=ChangeStatus.DELETED,
                table=manifest[path].table_name,
                file_type=file_extension(path),
            )
        )

    return ChangeSet(changes=changes, files_scanned=len(current))
