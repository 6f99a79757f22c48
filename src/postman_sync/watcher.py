"""
Change detection for the source collection.
"""

import hashlib
import json
import logging
from typing import Any

import jsonpatch

from postman_sync.models import ChangeDetection
from postman_sync.storage import SyncStorage

logger = logging.getLogger(__name__)


def collection_items(collection: Any) -> Any:
    """Return the part of the collection that is fingerprinted and diffed.

    That is the ``item`` list when the collection has one, otherwise the
    whole document.
    """
    if isinstance(collection, dict) and collection.get("item") is not None:
        return collection["item"]
    return collection


def compute_hash(content: Any) -> str:
    """
    SHA256 of the compact JSON serialization of ``content``.

    Key order is kept as received; the source's ordering is canonical.
    """
    serialized = json.dumps(content, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


class CollectionWatcher:
    """Tracks the fingerprint of the last seen collection.

    With ``enable_json_diff`` the last content is also kept on disk so that a
    JSON Patch can be produced for each change, including across restarts.
    """

    def __init__(self, storage: SyncStorage, enable_json_diff: bool = False):
        self.storage = storage
        self.enable_json_diff = enable_json_diff
        self.last_hash: str | None = None

    def load_previous_state(self) -> None:
        """Seed the fingerprint from the persisted snapshot, if diffing is on."""
        if not self.enable_json_diff:
            return
        self.storage.ensure_dir()
        previous = self.storage.read_snapshot()
        if previous is not None:
            self.last_hash = compute_hash(previous)
            logger.debug("Loaded previous snapshot from %s", self.storage.snapshot_path)

    def detect_change(self, collection: Any) -> ChangeDetection:
        items = collection_items(collection)
        current_hash = compute_hash(items)
        initial = self.last_hash is None
        changed = self.last_hash != current_hash

        diff = None
        if changed and self.enable_json_diff:
            previous = self.storage.read_snapshot()
            if previous is not None:
                diff = jsonpatch.make_patch(previous, items).patch
            self.storage.write_snapshot(items)

        self.last_hash = current_hash
        return ChangeDetection(changed=changed, diff=diff, initial=initial)
