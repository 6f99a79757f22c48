"""
File persistence for the diff snapshot and the auto-create audit log.
"""

import json
import logging
from datetime import datetime
from datetime import timezone
from pathlib import Path
from typing import Any

AUDIT_LOG_NAME = "auto_created.log"

logger = logging.getLogger(__name__)


class SyncStorage:
    """Manages the files kept under the storage directory.

    One snapshot file per source collection
    (``collection_<collection_id>.json``) and a single append-only audit log
    shared by all sources.
    """

    def __init__(self, storage_dir: Path, collection_id: str):
        self.storage_dir = Path(storage_dir).expanduser()
        self.collection_id = collection_id

    @property
    def snapshot_path(self) -> Path:
        return self.storage_dir / f"collection_{self.collection_id}.json"

    @property
    def audit_log_path(self) -> Path:
        return self.storage_dir / AUDIT_LOG_NAME

    def ensure_dir(self) -> None:
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------ #
    # Snapshot                                                             #
    # ------------------------------------------------------------------ #

    def read_snapshot(self) -> Any | None:
        """Return the stored collection content, or None if there is none."""
        if not self.snapshot_path.exists():
            return None
        return json.loads(self.snapshot_path.read_text(encoding="utf-8"))

    def write_snapshot(self, content: Any) -> None:
        self.ensure_dir()
        self.snapshot_path.write_text(
            json.dumps(content, indent=2, ensure_ascii=False), encoding="utf-8"
        )
        logger.debug("Wrote snapshot %s", self.snapshot_path)

    # ------------------------------------------------------------------ #
    # Audit log                                                            #
    # ------------------------------------------------------------------ #

    def append_auto_created(
        self,
        workspace_id: str,
        read_only_url: str,
        created_collection_uid: str,
        when: datetime | None = None,
    ) -> str:
        """Append one audit line for an auto-created collection and return it."""
        timestamp = (when or datetime.now(timezone.utc)).isoformat()
        line = (
            f"[{timestamp}] Auto-created collection for workspaceId={workspace_id}, "
            f"mainCollectionId={self.collection_id}, readonlyUrl={read_only_url} "
            f"→ createdCollectionUid={created_collection_uid}"
        )
        self.ensure_dir()
        with self.audit_log_path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
        return line

    def read_audit_lines(self, limit: int | None = None) -> list[str]:
        """Return audit log lines, oldest first; the last ``limit`` if given."""
        if not self.audit_log_path.exists():
            return []
        lines = self.audit_log_path.read_text(encoding="utf-8").splitlines()
        if limit is not None:
            lines = lines[-limit:] if limit > 0 else []
        return lines
