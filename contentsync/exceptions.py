"""Application-level exception types.

Convention:
- ``BackendError`` and its subclasses: raised by storage backends. The HTTP
  layer maps ``BackendUnavailableError`` to 503 and every other
  ``BackendError`` to 502.
- ``ValueError``: business validation errors that are safe to forward to
  clients (unknown table names, bad modes). Mapped to 422.
- ``ContentError``: a single content file cannot be turned into a row. Only
  ever recorded as a per-file apply failure, never surfaced as an HTTP error.
"""

from __future__ import annotations


class BackendError(Exception):
    """Base class for storage backend failures."""


class BackendUnavailableError(BackendError):
    """Raised when no backend can be constructed or the backend cannot be reached."""


class TableNotFoundError(BackendError):
    """Raised when a query targets a table that does not exist yet."""

    def __init__(self, table: str) -> None:
        super().__init__(f"Table does not exist: {table}")
        self.table = table


class BackendQueryError(BackendError):
    """Raised when the backend rejects a statement (constraint violation, bad data, ...)."""


class ContentError(ValueError):
    """Raised when a content file cannot be converted into a destination row."""


class UnknownTableError(ValueError):
    """Raised for table names outside the known destination tables."""

    def __init__(self, table: str) -> None:
        super().__init__(f"Invalid table name: {table}")
        self.table = table
