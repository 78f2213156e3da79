"""Manifest store: the durable record of what was last pushed for each path."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from contentsync.exceptions import TableNotFoundError
from contentsync.services.datetime_service import format_iso, now_utc

if TYPE_CHECKING:
    from contentsync.backends.base import TableBackend

logger = logging.getLogger(__name__)

MANIFEST_TABLE = "sync_manifest"


@dataclass
class ManifestEntry:
    """Last-synced state of one content path."""

    path: str
    content_hash: str
    table_name: str
    last_synced: str = ""


class ManifestStore:
    """Read and write manifest entries through any TableBackend."""

    def __init__(self, backend: TableBackend) -> None:
        self.backend = backend

    async def read_all(self) -> list[ManifestEntry]:
        """Load every manifest entry. A missing manifest table reads as empty."""
        try:
            rows = await self.backend.select(
                MANIFEST_TABLE, ["file_path", "file_hash", "table_name", "last_synced"]
            )
        except TableNotFoundError:
            logger.info("Manifest table %s does not exist yet; treating as empty", MANIFEST_TABLE)
            return []
        return [
            ManifestEntry(
                path=row["file_path"],
                content_hash=row["file_hash"],
                table_name=row["table_name"],
                last_synced=str(row.get("last_synced") or ""),
            )
            for row in rows
        ]

    async def upsert(self, entry: ManifestEntry) -> None:
        """Insert or update the entry for ``entry.path``."""
        last_synced = entry.last_synced or format_iso(now_utc())
        await self.backend.upsert(
            MANIFEST_TABLE,
            {
                "file_path": entry.path,
                "file_hash": entry.content_hash,
                "table_name": entry.table_name,
                "last_synced": last_synced,
            },
            conflict_keys=["file_path"],
        )

    async def delete(self, path: str) -> bool:
        """Remove the entry for ``path``. Returns True if an entry was removed."""
        removed = await self.backend.delete(MANIFEST_TABLE, {"file_path": path})
        return removed > 0
