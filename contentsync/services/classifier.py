"""Content classifier: maps a relative content path to its destination table.

Routing is by directory convention. A directory segment named after one of
the category folders decides the table; when several are present the
earlier entry in ``CATEGORY_TABLES`` wins, so ``collections/fr/data/x.json``
is a collection document rather than a data file.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath, PurePosixPath

UNKNOWN = "unknown"
COLLECTIONS_TABLE = "collections"
JAVASCRIPT_TABLE = "javascript_files"

# (directory segment, destination table), in order of precedence.
CATEGORY_TABLES: tuple[tuple[str, str], ...] = (
    ("collections", COLLECTIONS_TABLE),
    ("files", "static_files"),
    ("config", "config_files"),
    ("data", "data_files"),
    ("image", "images"),
    ("js", JAVASCRIPT_TABLE),
    ("resume", "resumes"),
)

DESTINATION_TABLES: tuple[str, ...] = tuple(table for _, table in CATEGORY_TABLES)

# File types forced by the table regardless of extension.
_FIXED_FILE_TYPES = {
    COLLECTIONS_TABLE: "json",
    JAVASCRIPT_TABLE: "js",
}


@dataclass(frozen=True)
class Classification:
    table: str
    file_type: str

    @property
    def is_known(self) -> bool:
        return self.table != UNKNOWN


@dataclass(frozen=True)
class CollectionKey:
    """Composite identity of a row in the ``collections`` table."""

    lang: str
    doc_type: str
    filename: str


def to_posix(path: str | PurePath) -> str:
    """Normalize a path to forward-slash separators."""
    return str(path).replace("\\", "/")


def _segments(path: str | PurePath) -> list[str]:
    return [part for part in to_posix(path).split("/") if part and part != "."]


def file_extension(path: str | PurePath) -> str:
    """Lowercased extension without the dot, or ``unknown``."""
    segments = _segments(path)
    if not segments:
        return UNKNOWN
    suffix = PurePosixPath(segments[-1]).suffix
    return suffix.lower().lstrip(".") or UNKNOWN


def document_filename(path: str | PurePath) -> str:
    """File name without directory or extension; the row key of a destination table."""
    segments = _segments(path)
    if not segments:
        return ""
    return PurePosixPath(segments[-1]).stem


def classify(path: str | PurePath) -> Classification:
    """Classify a content path. Never raises; unmatched paths are ``unknown``.

    A ``collections`` directory only counts when the path has the
    ``collections/<lang>/<type>/<file>`` shape; shallower paths fall through
    to the remaining categories.
    """
    directories = set(_segments(path)[:-1])
    for folder, table in CATEGORY_TABLES:
        if folder not in directories:
            continue
        if table == COLLECTIONS_TABLE and parse_collection_path(path) is None:
            continue
        return Classification(table, _FIXED_FILE_TYPES.get(table) or file_extension(path))
    return Classification(UNKNOWN, file_extension(path))


def parse_collection_path(path: str | PurePath) -> CollectionKey | None:
    """Extract (language, document type, filename) from a collections path.

    The segment after ``collections`` is the language code and the next one
    the document type; a file must follow them. Returns None otherwise.
    """
    segments = _segments(path)
    try:
        anchor = segments.index(COLLECTIONS_TABLE)
    except ValueError:
        return None
    if anchor + 3 >= len(segments):
        return None
    lang, doc_type = segments[anchor + 1], segments[anchor + 2]
    return CollectionKey(lang=lang, doc_type=doc_type, filename=document_filename(path))
