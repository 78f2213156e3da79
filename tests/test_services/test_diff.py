"""Tests for the diff engine."""

from __future__ import annotations

import string

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from contentsync.services.diff import ChangeStatus, compute_changes
from contentsync.services.manifest import ManifestEntry
from contentsync.services.scanner import FileRecord

PROPERTY_SETTINGS = settings(
    max_examples=250,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)

_SEGMENT = st.text(alphabet=string.ascii_lowercase + string.digits, min_size=1, max_size=8)
_PATH = st.builds(
    lambda parts, ext: "data/" + "/".join(parts) + f".{ext}",
    st.lists(_SEGMENT, min_size=1, max_size=3),
    st.sampled_from(["json", "txt", "png"]),
)
_HASH = st.text(alphabet="0123456789abcdef", min_size=1, max_size=16)
_HASH_MAP = st.dictionaries(keys=_PATH, values=_HASH, max_size=12)


def _record(path: str, content_hash: str, table: str = "data_files") -> FileRecord:
    return FileRecord(
        path=path,
        content=b"",
        content_hash=content_hash,
        table=table,
        file_type=path.rsplit(".", 1)[-1],
    )


def _entry(path: str, content_hash: str, table: str = "data_files") -> ManifestEntry:
    return ManifestEntry(path=path, content_hash=content_hash, table_name=table)


class TestComputeChanges:
    def test_new_file(self) -> None:
        result = compute_changes({"data/a.json": _record("data/a.json", "h1")}, [])

        assert len(result.changes) == 1
        change = result.changes[0]
        assert change.status == ChangeStatus.NEW
        assert change.table == "data_files"
        assert change.content_hash == "h1"
        assert result.new_files == 1
        assert result.files_scanned == 1

    def test_unchanged_file_emits_nothing(self) -> None:
        result = compute_changes(
            {"data/a.json": _record("data/a.json", "h1")},
            [_entry("data/a.json", "h1")],
        )
        assert result.changes == []
        assert result.files_scanned == 1

    def test_modified_file(self) -> None:
        result = compute_changes(
            {"data/a.json": _record("data/a.json", "h2")},
            [_entry("data/a.json", "h1")],
        )
        assert [(c.path, c.status, c.content_hash) for c in result.changes] == [
            ("data/a.json", ChangeStatus.MODIFIED, "h2")
        ]
        assert result.changes[0].previous_table is None

    def test_deleted_file_uses_manifest_table(self) -> None:
        result = compute_changes({}, [_entry("js/app.js", "h1", table="javascript_files")])

        change = result.changes[0]
        assert change.status == ChangeStatus.DELETED
        assert change.table == "javascript_files"
        assert change.file_type == "js"
        assert change.content_hash is None
        assert result.deleted_files == 1

    def test_reclassified_file_records_previous_table(self) -> None:
        result = compute_changes(
            {"data/a.json": _record("data/a.json", "h2", table="data_files")},
            [_entry("data/a.json", "h1", table="config_files")],
        )
        assert result.changes[0].table == "data_files"
        assert result.changes[0].previous_table == "config_files"

    def test_order_is_scanned_paths_then_deletions(self) -> None:
        current = {
            "data/b.json": _record("data/b.json", "x"),
            "data/a.json": _record("data/a.json", "y"),
        }
        manifest = [_entry("data/z.json", "1"), _entry("data/c.json", "2")]

        paths = [c.path for c in compute_changes(current, manifest).changes]

        assert paths == ["data/a.json", "data/b.json", "data/c.json", "data/z.json"]

    @PROPERTY_SETTINGS
    @given(current_hashes=_HASH_MAP, manifest_hashes=_HASH_MAP)
    def test_changes_partition_paths(
        self, current_hashes: dict[str, str], manifest_hashes: dict[str, str]
    ) -> None:
        current = {path: _record(path, h) for path, h in current_hashes.items()}
        manifest = [_entry(path, h) for path, h in manifest_hashes.items()]

        result = compute_changes(current, manifest)
        by_status: dict[ChangeStatus, set[str]] = {status: set() for status in ChangeStatus}
        for change in result.changes:
            by_status[change.status].add(change.path)

        paths = [change.path for change in result.changes]
        assert len(paths) == len(set(paths))
        assert by_status[ChangeStatus.NEW] == set(current_hashes) - set(manifest_hashes)
        assert by_status[ChangeStatus.DELETED] == set(manifest_hashes) - set(current_hashes)
        assert by_status[ChangeStatus.MODIFIED] == {
            path
            for path in set(current_hashes) & set(manifest_hashes)
            if current_hashes[path] != manifest_hashes[path]
        }
        assert result.files_scanned == len(current_hashes)

    @PROPERTY_SETTINGS
    @given(hashes=_HASH_MAP)
    def test_matching_manifest_yields_no_changes(self, hashes: dict[str, str]) -> None:
        current = {path: _record(path, h) for path, h in hashes.items()}
        manifest = [_entry(path, h) for path, h in hashes.items()]

        assert compute_changes(current, manifest).changes == []
