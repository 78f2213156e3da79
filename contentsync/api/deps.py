"""Shared API dependencies: settings, backend, sync engine."""

from __future__ import annotations

from fastapi import Request

from contentsync.backends import selector
from contentsync.backends.base import TableBackend
from contentsync.config import Settings
from contentsync.exceptions import BackendUnavailableError
from contentsync.services.sync_service import SyncEngine


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_backend() -> TableBackend:
    """Get the process-wide storage backend."""
    return selector.get_backend()


def get_sync_engine(request: Request) -> SyncEngine:
    """Get the sync engine from app state."""
    engine: SyncEngine | None = getattr(request.app.state, "sync_engine", None)
    if engine is None:
        raise BackendUnavailableError("Sync engine not initialized")
    return engine
