"""
Unit tests for CollectionWatcher (change detection) and SyncStorage.
"""

import json

from postman_sync.storage import SyncStorage
from postman_sync.watcher import CollectionWatcher
from postman_sync.watcher import collection_items
from postman_sync.watcher import compute_hash
from tests.conftest import SOURCE_COLLECTION_ID
from tests.conftest import make_collection


def _watcher(storage_dir, enable_json_diff=False) -> CollectionWatcher:
    watcher = CollectionWatcher(SyncStorage(storage_dir, SOURCE_COLLECTION_ID), enable_json_diff)
    watcher.load_previous_state()
    return watcher


class TestFingerprint:
    def test_hash_is_stable_for_equal_content(self):
        assert compute_hash(make_collection("a", "b")) == compute_hash(make_collection("a", "b"))

    def test_hash_respects_key_order(self):
        """Ordering from the source is canonical and not normalized."""
        assert compute_hash({"a": 1, "b": 2}) != compute_hash({"b": 2, "a": 1})

    def test_items_used_when_present(self):
        collection = make_collection("a")
        assert collection_items(collection) is collection["item"]

    def test_whole_document_used_without_items(self):
        document = {"info": {"name": "no items"}}
        assert collection_items(document) is document

    def test_info_changes_are_ignored(self):
        """Only the item list is fingerprinted."""
        assert compute_hash(collection_items(make_collection("a", title="One"))) == compute_hash(
            collection_items(make_collection("a", title="Two"))
        )


class TestDetectChange:
    def test_first_detection_without_snapshot_is_changed(self, storage_dir):
        result = _watcher(storage_dir).detect_change(make_collection("a"))
        assert result.changed is True
        assert result.initial is True
        assert result.diff is None

    def test_identical_content_is_unchanged(self, storage_dir):
        watcher = _watcher(storage_dir)
        watcher.detect_change(make_collection("a"))
        second = watcher.detect_change(make_collection("a"))
        third = watcher.detect_change(make_collection("a"))
        assert second.changed is False
        assert third.changed is False

    def test_change_is_reported_once(self, storage_dir):
        watcher = _watcher(storage_dir)
        watcher.detect_change(make_collection("a"))

        changed = watcher.detect_change(make_collection("a", "b"))
        again = watcher.detect_change(make_collection("a", "b"))

        assert changed.changed is True
        assert changed.initial is False
        assert again.changed is False

    def test_no_snapshot_written_without_diff(self, storage_dir):
        watcher = _watcher(storage_dir)
        watcher.detect_change(make_collection("a"))
        assert not watcher.storage.snapshot_path.exists()


class TestJsonDiff:
    def test_snapshot_written_on_change(self, storage_dir):
        watcher = _watcher(storage_dir, enable_json_diff=True)
        watcher.detect_change(make_collection("a"))

        snapshot = json.loads(watcher.storage.snapshot_path.read_text())
        assert snapshot == make_collection("a")["item"]
        assert watcher.storage.snapshot_path.name == f"collection_{SOURCE_COLLECTION_ID}.json"

    def test_first_change_has_no_diff(self, storage_dir):
        result = _watcher(storage_dir, enable_json_diff=True).detect_change(make_collection("a"))
        assert result.changed is True
        assert result.diff is None

    def test_diff_against_previous_snapshot(self, storage_dir):
        watcher = _watcher(storage_dir, enable_json_diff=True)
        watcher.detect_change(make_collection("a"))

        result = watcher.detect_change(make_collection("a", "b"))

        assert result.changed is True
        assert result.diff == [
            {
                "op": "add",
                "path": "/1",
                "value": {"name": "b", "request": {"method": "GET", "url": "https://example.test/b"}},
            }
        ]

    def test_matching_snapshot_survives_restart(self, storage_dir):
        """A restarted watcher with the same content reports no change."""
        _watcher(storage_dir, enable_json_diff=True).detect_change(make_collection("a"))

        restarted = _watcher(storage_dir, enable_json_diff=True)
        result = restarted.detect_change(make_collection("a"))

        assert result.changed is False

    def test_diff_across_restart(self, storage_dir):
        _watcher(storage_dir, enable_json_diff=True).detect_change(make_collection("a"))

        restarted = _watcher(storage_dir, enable_json_diff=True)
        result = restarted.detect_change(make_collection("b"))

        assert result.changed is True
        assert result.initial is False
        assert sorted(result.diff, key=lambda op: op["path"]) == [
            {"op": "replace", "path": "/0/name", "value": "b"},
            {"op": "replace", "path": "/0/request/url", "value": "https://example.test/b"},
        ]

    def test_snapshot_ignored_when_diff_disabled(self, storage_dir):
        _watcher(storage_dir, enable_json_diff=True).detect_change(make_collection("a"))

        result = _watcher(storage_dir).detect_change(make_collection("a"))

        assert result.changed is True


class TestAuditLog:
    def test_append_and_read(self, storage_dir):
        storage = SyncStorage(storage_dir, SOURCE_COLLECTION_ID)
        line = storage.append_auto_created("ws-1", "https://example.test/ro", "uid-1")

        assert "workspaceId=ws-1" in line
        assert f"mainCollectionId={SOURCE_COLLECTION_ID}" in line
        assert "readonlyUrl=https://example.test/ro" in line
        assert "createdCollectionUid=uid-1" in line
        assert storage.read_audit_lines() == [line]

    def test_append_only(self, storage_dir):
        storage = SyncStorage(storage_dir, SOURCE_COLLECTION_ID)
        for i in range(3):
            storage.append_auto_created(f"ws-{i}", "https://example.test/ro", f"uid-{i}")

        lines = storage.read_audit_lines()
        assert len(lines) == 3
        assert "uid-0" in lines[0]
        assert storage.read_audit_lines(limit=1) == lines[-1:]

    def test_missing_log_reads_empty(self, storage_dir):
        assert SyncStorage(storage_dir, SOURCE_COLLECTION_ID).read_audit_lines() == []
