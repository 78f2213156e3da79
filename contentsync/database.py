"""Database engine creation for the raw SQL backend."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

_ASYNC_DRIVER_PREFIXES = {
    "postgres://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}


def normalize_database_url(database_url: str) -> str:
    """Rewrite plain driver-less URLs to their async driver equivalents."""
    url = database_url.strip()
    for prefix, replacement in _ASYNC_DRIVER_PREFIXES.items():
        if url.startswith(prefix):
            return replacement + url[len(prefix) :]
    return url


def create_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
    """Create the async engine for ``database_url``.

    SQLite database directories are created on demand.
    """
    url = normalize_database_url(database_url)
    if url.startswith("sqlite") and "///" in url:
        db_path = url.split("///", 1)[-1]
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    return create_async_engine(url, echo=echo)
