"""Integration tests for the sync engine over a SQLite database."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from contentsync.services.diff import ChangeStatus
from contentsync.services.scanner import hash_bytes
from contentsync.services.sync_service import SyncEngine
from tests.conftest import write_content

if TYPE_CHECKING:
    from pathlib import Path

    from contentsync.backends.sql import SqlBackend
    from contentsync.config import Settings


class TestScan:
    @pytest.mark.asyncio
    async def test_new_file_is_reported_without_writing(
        self, sync_engine: SyncEngine, sql_backend: SqlBackend, tmp_content_dir: Path
    ) -> None:
        write_content(tmp_content_dir, "config/site.json", '{"title": "Site"}')

        report = await sync_engine.scan()

        assert report.files_scanned == 1
        assert report.new_files == 1
        assert [(c.path, c.status) for c in report.changes] == [
            ("config/site.json", ChangeStatus.NEW)
        ]
        assert await sql_backend.count("config_files") == 0
        assert await sql_backend.count("sync_manifest") == 0

    @pytest.mark.asyncio
    async def test_empty_tree(self, sync_engine: SyncEngine) -> None:
        report = await sync_engine.scan()
        assert report.files_scanned == 0
        assert report.changes == []


class TestPull:
    @pytest.mark.asyncio
    async def test_new_file_scenario(
        self, sync_engine: SyncEngine, sql_backend: SqlBackend, tmp_content_dir: Path
    ) -> None:
        write_content(tmp_content_dir, "config/site.json", '{"title": "Site"}')

        report = await sync_engine.pull()

        assert report.applied == 1
        assert report.failures == []
        rows = await sql_backend.select("config_files")
        assert len(rows) == 1
        assert rows[0]["filename"] == "site"
        assert rows[0]["file_type"] == "json"
        assert rows[0]["file_content"] == {"title": "Site"}
        assert rows[0]["file_hash"] == hash_bytes(b'{"title": "Site"}')
        manifest = await sql_backend.select("sync_manifest")
        assert [(m["file_path"], m["table_name"]) for m in manifest] == [
            ("config/site.json", "config_files")
        ]

    @pytest.mark.asyncio
    async def test_pull_is_idempotent(
        self, sync_engine: SyncEngine, tmp_content_dir: Path
    ) -> None:
        write_content(tmp_content_dir, "data/menu.json", "[1, 2]")
        write_content(tmp_content_dir, "js/app.js", "console.log('hi')")
        write_content(tmp_content_dir, "files/notes.txt", "notes")

        first = await sync_engine.pull()
        second = await sync_engine.pull()

        assert first.applied == 3
        assert second.changes == []
        assert second.applied == 0
        assert (await sync_engine.scan()).changes == []

    @pytest.mark.asyncio
    async def test_modification_scenario(
        self, sync_engine: SyncEngine, sql_backend: SqlBackend, tmp_content_dir: Path
    ) -> None:
        write_content(tmp_content_dir, "data/menu.json", '["home"]')
        await sync_engine.pull()
        write_content(tmp_content_dir, "data/menu.json", '["home", "about"]')

        report = await sync_engine.pull()

        assert report.modified_files == 1
        rows = await sql_backend.select("data_files")
        assert len(rows) == 1
        assert rows[0]["file_content"] == ["home", "about"]
        manifest = await sql_backend.select("sync_manifest")
        assert manifest[0]["file_hash"] == hash_bytes(b'["home", "about"]')

    @pytest.mark.asyncio
    async def test_deletion_scenario(
        self, sync_engine: SyncEngine, sql_backend: SqlBackend, tmp_content_dir: Path
    ) -> None:
        target = write_content(tmp_content_dir, "js/app.js", "console.log(1)")
        await sync_engine.pull()
        target.unlink()

        report = await sync_engine.pull()

        assert report.deleted_files == 1
        assert report.applied == 1
        assert await sql_backend.count("javascript_files") == 0
        assert await sql_backend.count("sync_manifest") == 0

    @pytest.mark.asyncio
    async def test_collections_composite_key_scenario(
        self, sync_engine: SyncEngine, sql_backend: SqlBackend, tmp_content_dir: Path
    ) -> None:
        write_content(tmp_content_dir, "collections/en/blog/post.json", '{"lang": "en"}')
        write_content(tmp_content_dir, "collections/fr/blog/post.json", '{"lang": "fr"}')

        report = await sync_engine.pull()

        assert report.applied == 2
        rows = await sql_backend.select("collections", ["lang", "type", "filename"])
        assert sorted((r["lang"], r["type"], r["filename"]) for r in rows) == [
            ("en", "blog", "post"),
            ("fr", "blog", "post"),
        ]

    @pytest.mark.asyncio
    async def test_binary_static_file_is_base64(
        self, sync_engine: SyncEngine, sql_backend: SqlBackend, tmp_content_dir: Path
    ) -> None:
        write_content(tmp_content_dir, "files/report.pdf", b"%PDF-\xff\xfe")

        await sync_engine.pull()

        rows = await sql_backend.select("static_files", ["file_type", "content_encoding"])
        assert rows == [{"file_type": "pdf", "content_encoding": "base64"}]

    @pytest.mark.asyncio
    async def test_convergence_after_failure(
        self, sync_engine: SyncEngine, sql_backend: SqlBackend, tmp_content_dir: Path
    ) -> None:
        bad = write_content(tmp_content_dir, "config/broken.json", "{not json")
        write_content(tmp_content_dir, "config/ok.json", "{}")

        first = await sync_engine.pull()
        assert first.applied == 1
        assert [f.path for f in first.failures] == ["config/broken.json"]

        bad.write_text('{"fixed": true}', encoding="utf-8")
        second = await sync_engine.pull()

        assert second.failures == []
        assert [c.path for c in second.changes] == ["config/broken.json"]
        assert (await sync_engine.scan()).changes == []
        assert await sql_backend.count("config_files") == 2

    @pytest.mark.asyncio
    async def test_same_stem_files_do_not_share_a_row(
        self, sync_engine: SyncEngine, sql_backend: SqlBackend, tmp_content_dir: Path
    ) -> None:
        write_content(tmp_content_dir, "image/logo.png", b"\x89PNG")
        svg = write_content(tmp_content_dir, "image/logo.svg", "<svg/>")

        first = await sync_engine.pull()

        assert first.applied == 1
        assert [(f.path, f.error) for f in first.failures] == [
            ("image/logo.svg", "image/logo.svg: key owned by image/logo.png")
        ]
        manifest = await sql_backend.select("sync_manifest", ["file_path"])
        assert [m["file_path"] for m in manifest] == ["image/logo.png"]

        svg.unlink()
        second = await sync_engine.pull()

        assert second.failures == []
        rows = await sql_backend.select("images", ["file_path"])
        assert rows == [{"file_path": "image/logo.png"}]
        assert (await sync_engine.scan()).changes == []

    @pytest.mark.asyncio
    async def test_same_stem_file_takes_over_when_owner_is_deleted(
        self, sync_engine: SyncEngine, sql_backend: SqlBackend, tmp_content_dir: Path
    ) -> None:
        png = write_content(tmp_content_dir, "image/logo.png", b"\x89PNG")
        write_content(tmp_content_dir, "image/logo.svg", "<svg/>")
        await sync_engine.pull()

        png.unlink()
        report = await sync_engine.pull()

        assert report.failures == []
        rows = await sql_backend.select("images", ["file_path"])
        assert rows == [{"file_path": "image/logo.svg"}]
        assert (await sync_engine.scan()).changes == []

    @pytest.mark.asyncio
    async def test_shallow_collection_file_is_ignored(
        self, sync_engine: SyncEngine, sql_backend: SqlBackend, tmp_content_dir: Path
    ) -> None:
        write_content(tmp_content_dir, "collections/en/post.json", "{}")
        write_content(tmp_content_dir, "collections/en/blog/post.json", "{}")

        first = await sync_engine.pull()
        second = await sync_engine.pull()

        assert first.failures == []
        assert first.applied == 1
        assert second.changes == []
        assert second.failures == []
        assert await sql_backend.count("collections") == 1

    @pytest.mark.asyncio
    async def test_concurrent_pulls_are_serialized(
        self, sync_engine: SyncEngine, sql_backend: SqlBackend, tmp_content_dir: Path
    ) -> None:
        for i in range(4):
            write_content(tmp_content_dir, f"data/item{i}.json", f'{{"n": {i}}}')

        first, second = await asyncio.gather(sync_engine.pull(), sync_engine.pull())

        assert first.applied + second.applied == 4
        assert await sql_backend.count("data_files") == 4
        assert not sync_engine.is_syncing


class TestCompare:
    @pytest.mark.asyncio
    async def test_compare_after_pull(
        self, sync_engine: SyncEngine, tmp_content_dir: Path
    ) -> None:
        write_content(tmp_content_dir, "data/a.json", "{}")
        write_content(tmp_content_dir, "data/b.json", "[]")
        await sync_engine.pull()
        write_content(tmp_content_dir, "data/b.json", "[1]")
        write_content(tmp_content_dir, "data/c.json", "{}")

        report = await sync_engine.compare("data_files")

        assert [i.filename for i in report.similar] == ["a"]
        assert [i.filename for i in report.different] == ["b"]
        assert [i.filename for i in report.missing] == ["c"]

    @pytest.mark.asyncio
    async def test_nested_category_files_compare_clean_after_pull(
        self, sync_engine: SyncEngine, tmp_content_dir: Path
    ) -> None:
        write_content(tmp_content_dir, "data/files/x.json", "{}")
        write_content(tmp_content_dir, "en/config/a.json", "{}")
        await sync_engine.pull()

        static = await sync_engine.compare("static_files")
        config = await sync_engine.compare("config_files")
        data = await sync_engine.compare("data_files")

        assert [i.filename for i in static.similar] == ["x"]
        assert [i.filename for i in config.similar] == ["a"]
        assert static.missing == config.missing == data.missing == []


class TestFromSettings:
    def test_uses_settings_values(self, sql_backend: SqlBackend, test_settings: Settings) -> None:
        engine = SyncEngine.from_settings(sql_backend, test_settings)
        assert engine.content_dir == test_settings.content_dir
        assert engine.apply_concurrency == test_settings.apply_concurrency
        assert "json" in engine.allowed_extensions
        assert "node_modules" in engine.ignored_dirs
