"""Tree scanner: walk the content root and hash every qualifying file."""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from contentsync.services.classifier import classify

if TYPE_CHECKING:
    from collections.abc import Collection

logger = logging.getLogger(__name__)


@dataclass
class FileRecord:
    """A scanned file, valid for one scan pass."""

    path: str
    content: bytes
    content_hash: str
    table: str
    file_type: str


@dataclass
class ScanResult:
    files: dict[str, FileRecord] = field(default_factory=dict)
    unreadable: list[str] = field(default_factory=list)


def hash_bytes(data: bytes) -> str:
    """Compute the SHA-256 hex digest of ``data``."""
    return hashlib.sha256(data).hexdigest()


def normalize_extensions(extensions: Collection[str]) -> frozenset[str]:
    return frozenset(ext.strip().lower().lstrip(".") for ext in extensions if ext.strip())


def _log_walk_error(exc: OSError) -> None:
    logger.warning("Cannot list directory %s: %s", exc.filename, exc)


def scan_content_tree(
    root: Path,
    ignored_dirs: Collection[str],
    allowed_extensions: Collection[str],
) -> ScanResult:
    """Scan ``root`` and map relative POSIX paths to file records.

    Ignored directories are pruned, not descended into. Files with a
    disallowed extension or no destination table are skipped. Unreadable
    files are logged and listed in ``ScanResult.unreadable``.
    """
    result = ScanResult()
    if not root.is_dir():
        logger.info("Content root %s does not exist, nothing to scan", root)
        return result

    ignored = set(ignored_dirs)
    allowed = normalize_extensions(allowed_extensions)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_log_walk_error):
        dirnames[:] = sorted(d for d in dirnames if d not in ignored)
        for filename in sorted(filenames):
            extension = PurePosixPath(filename).suffix.lower().lstrip(".")
            if extension not in allowed:
                continue
            full = Path(dirpath) / filename
            rel = full.relative_to(root).as_posix()
            classification = classify(rel)
            if not classification.is_known:
                continue
            try:
                content = full.read_bytes()
            except OSError as exc:
                logger.warning("Skipping unreadable file %s: %s", rel, exc)
                result.unreadable.append(rel)
                continue
            result.files[rel] = FileRecord(
                path=rel,
                content=content,
                content_hash=hash_bytes(content),
                table=classification.table,
                file_type=classification.file_type,
            )

    logger.info("Scanned %s: %d files", root, len(result.files))
    return result
