"""Backend selection and the process-wide backend accessor."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from contentsync.backends.base import BackendState
from contentsync.backends.rest import RestBackend
from contentsync.backends.sql import SqlBackend
from contentsync.exceptions import BackendUnavailableError

if TYPE_CHECKING:
    from contentsync.backends.base import TableBackend
    from contentsync.config import Settings

logger = logging.getLogger(__name__)

_backend: TableBackend | None = None
_state = BackendState.UNINITIALIZED


async def select_backend(settings: Settings) -> TableBackend:
    """Build the raw SQL backend when reachable, otherwise the REST backend.

    Raises BackendUnavailableError when neither can be constructed.
    """
    if settings.database_url:
        try:
            return await SqlBackend.connect(settings.database_url, echo=settings.debug)
        except BackendUnavailableError as exc:
            if not settings.rest_configured:
                raise
            logger.warning("SQL backend unavailable, falling back to REST: %s", exc)

    if settings.rest_configured:
        logger.info("Using REST backend at %s", settings.supabase_url)
        return RestBackend(
            settings.supabase_url,
            settings.supabase_service_role_key,
            timeout=settings.rest_timeout_seconds,
        )

    raise BackendUnavailableError(
        "No database configured: set DATABASE_URL or SUPABASE_URL + SUPABASE_SERVICE_ROLE_KEY"
    )


async def init_backend(settings: Settings) -> TableBackend:
    """Initialize the process-wide backend. Call once during startup."""
    global _backend, _state
    if _backend is not None:
        raise RuntimeError("Backend already initialized. Call close_backend() first.")
    backend = await select_backend(settings)
    _backend = backend
    _state = BackendState.SQL_CONNECTED if backend.mode == "sql" else BackendState.REST_CONNECTED
    return backend


def get_backend() -> TableBackend:
    """Return the process-wide backend.

    Raises BackendUnavailableError if it was never initialized or has been closed.
    """
    if _backend is None:
        raise BackendUnavailableError(f"Backend not available (state: {_state})")
    return _backend


def backend_state() -> BackendState:
    return _state


async def close_backend() -> None:
    """Close the process-wide backend and reset module state."""
    global _backend, _state
    if _backend is None:
        return
    backend = _backend
    _backend = None
    _state = BackendState.CLOSED
    await backend.close()
