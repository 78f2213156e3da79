"""Shared test fixtures for ContentSync."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient

from contentsync.backends import selector
from contentsync.backends.sql import SqlBackend
from contentsync.config import DEFAULT_ALLOWED_EXTENSIONS, DEFAULT_IGNORED_DIRS, Settings
from contentsync.exceptions import BackendQueryError, TableNotFoundError
from contentsync.main import create_app
from contentsync.services.schema_service import create_tables
from contentsync.services.sync_service import SyncEngine

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Mapping, Sequence
    from pathlib import Path


def write_content(root: Path, rel_path: str, content: str | bytes) -> Path:
    """Write a file under ``root``, creating parent directories."""
    target = root / rel_path
    target.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        target.write_bytes(content)
    else:
        target.write_text(content, encoding="utf-8")
    return target


_BACKEND_ENV_VARS = (
    "DATABASE_URL",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "APPLY_CONCURRENCY",
)


class InMemoryBackend:
    """TableBackend stand-in keeping rows in dicts, with injectable failures."""

    mode = "memory"
    dialect_name = "sqlite"

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.fail_upsert_for: set[str] = set()
        self.missing_tables: set[str] = set()
        self.executed: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    def _check(self, table: str) -> list[dict[str, Any]]:
        if table in self.missing_tables:
            raise TableNotFoundError(table)
        return self.tables.setdefault(table, [])

    @staticmethod
    def _matches(row: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
        return all(row.get(key) == value for key, value in filters.items())

    async def select(
        self,
        table: str,
        columns: Sequence[str] | None = None,
        filters: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        rows = [r for r in self._check(table) if self._matches(r, filters or {})]
        if columns:
            return [{c: r.get(c) for c in columns} for r in rows]
        return [dict(r) for r in rows]

    async def upsert(
        self,
        table: str,
        row: Mapping[str, Any],
        conflict_keys: Sequence[str],
    ) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if row.get("file_path") in self.fail_upsert_for:
                raise BackendQueryError(f"rejected {row.get('file_path')}")
            rows = self._check(table)
            key = {k: row[k] for k in conflict_keys}
            for existing in rows:
                if self._matches(existing, key):
                    existing.update(row)
                    return
            rows.append(dict(row))
        finally:
            self.in_flight -= 1

    async def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        rows = self._check(table)
        kept = [r for r in rows if not self._matches(r, filters)]
        self.tables[table] = kept
        return len(rows) - len(kept)

    async def execute(self, statement: str) -> None:
        self.executed.append(statement)

    async def count(self, table: str) -> int:
        return len(self._check(table))

    async def close(self) -> None:
        self.closed = True


@asynccontextmanager
async def create_test_client(settings: Settings) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with a fully initialized app.

    Manually performs the work of the application lifespan (backend, schema,
    sync engine) because ASGITransport does not trigger it.
    """
    app = create_app(settings)
    settings.validate_backend_config()

    backend = await selector.init_backend(settings)
    try:
        await create_tables(backend)
        app.state.sync_engine = SyncEngine.from_settings(backend, settings)

        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        await selector.close_backend()


@pytest.fixture(autouse=True)
def _isolate_backend_state(monkeypatch: pytest.MonkeyPatch) -> None:
    """Give every test a fresh process-wide backend slot and a clean environment."""
    for name in _BACKEND_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(selector, "_backend", None)
    monkeypatch.setattr(selector, "_state", selector.BackendState.UNINITIALIZED)


@pytest.fixture
def tmp_content_dir(tmp_path: Path) -> Path:
    """Create an empty content root."""
    content = tmp_path / "public"
    content.mkdir()
    return content


@pytest.fixture
def test_settings(tmp_content_dir: Path, tmp_path: Path) -> Settings:
    """Create test settings with temporary paths."""
    db_path = tmp_path / "test.db"
    return Settings(
        _env_file=None,
        debug=True,
        database_url=f"sqlite+aiosqlite:///{db_path}",
        content_dir=tmp_content_dir,
        apply_concurrency=1,
    )


@pytest.fixture
async def sql_backend(test_settings: Settings) -> AsyncGenerator[SqlBackend]:
    """SQL backend on a temporary SQLite database with the schema created."""
    backend = await SqlBackend.connect(test_settings.database_url)
    await create_tables(backend)
    yield backend
    await backend.close()


@pytest.fixture
def sync_engine(sql_backend: SqlBackend, tmp_content_dir: Path) -> SyncEngine:
    return SyncEngine(
        sql_backend,
        tmp_content_dir,
        ignored_dirs=DEFAULT_IGNORED_DIRS,
        allowed_extensions=DEFAULT_ALLOWED_EXTENSIONS,
        apply_concurrency=1,
    )
