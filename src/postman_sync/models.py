"""
Data models and exceptions. No HTTP or filesystem access here.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator
from pydantic import model_validator

DEFAULT_CONFIG = Path.home() / ".config/postman-sync.conf"
DEFAULT_STORAGE_DIR = Path.home() / ".local/share/postman-sync"

MIN_LOOP_INTERVAL_MS = 3000
DEFAULT_INTERVAL_MINUTES = 10

READ_ONLY_URL_RE = re.compile(
    r"^https://api\.postman\.com/collections/[a-zA-Z0-9\-]+\?access_key=PMAT-[a-zA-Z0-9]+$"
)
WORKSPACE_ID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE
)
API_KEY_RE = re.compile(r"^PMAK-[0-9a-f]{24}-[0-9a-f]{34}$", re.IGNORECASE)
# Collection UIDs are "<owner id>-<collection uuid>".
COLLECTION_UID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)

LogLevel = Literal["silent", "error", "warn", "info", "debug"]
LOG_LEVELS = {
    "silent": logging.CRITICAL + 1,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class PostmanSyncError(Exception):
    """Base exception for collection sync errors."""

    pass


class ConfigurationError(PostmanSyncError):
    """Raised at construction time for invalid configuration."""

    pass


class FetchError(PostmanSyncError):
    """The read-only source did not return a collection."""

    pass


class RateLimitExhaustedError(PostmanSyncError):
    """Every API key in the pool was rejected with HTTP 429."""

    pass


class AutoCreateDisabledError(PostmanSyncError):
    """A target needs a new collection but auto-creation is disabled."""

    pass


class SyncSchedule(BaseModel):
    """An hour-of-day window with its own minimum sync interval.

    Windows with ``start_hour > end_hour`` wrap past midnight.
    """

    model_config = ConfigDict(frozen=True)

    start_hour: int = Field(ge=0, le=23)
    end_hour: int = Field(ge=0, le=23)
    interval_minutes: float = Field(ge=0.5)

    @model_validator(mode="after")
    def check_width(self) -> "SyncSchedule":
        if self.start_hour == self.end_hour:
            raise ValueError("start_hour and end_hour cannot be equal")
        return self

    def contains(self, hour: int) -> bool:
        if self.start_hour <= self.end_hour:
            return self.start_hour <= hour < self.end_hour
        return hour >= self.start_hour or hour < self.end_hour

    def __str__(self) -> str:
        return f"{self.start_hour}-{self.end_hour}/{self.interval_minutes:g}"


class TargetWorkspace(BaseModel):
    """A destination workspace and the keys used to write into it.

    ``collection_uid`` is filled in by the synchronizer after an
    auto-create; that assignment is not re-validated.
    """

    id: str
    api_keys: list[str] = Field(min_length=1)
    collection_uid: str | None = None
    tag: str | None = None
    enabled: bool = True
    sync_schedule: list[SyncSchedule] | None = None
    prevent_auto_create: bool = False

    @field_validator("id")
    @classmethod
    def check_id(cls, value: str) -> str:
        value = value.strip()
        if not WORKSPACE_ID_RE.match(value):
            raise ValueError("must be a valid UUID")
        return value

    @field_validator("api_keys")
    @classmethod
    def check_api_keys(cls, value: list[str]) -> list[str]:
        keys = [key.strip() for key in value]
        for i, key in enumerate(keys):
            if not API_KEY_RE.match(key):
                raise ValueError(f"api_keys[{i}] must be a valid Postman API key")
        return keys

    @field_validator("collection_uid")
    @classmethod
    def check_collection_uid(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not COLLECTION_UID_RE.match(value):
            raise ValueError("must match expected format (8-8-4-4-4-12)")
        return value

    @field_validator("tag")
    @classmethod
    def check_tag(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("must be a non-empty string if provided")
        return value

    @model_validator(mode="after")
    def check_auto_create(self) -> "TargetWorkspace":
        if not self.collection_uid and self.prevent_auto_create:
            raise ValueError(
                f"either 'collection_uid' must be defined or 'prevent_auto_create' "
                f"must be disabled for workspace '{self.id}'"
            )
        return self

    @property
    def label(self) -> str:
        return f"{self.id} ({self.tag})" if self.tag else self.id


class SyncConfiguration(BaseModel):
    """Validated, immutable options for a PostmanSync instance."""

    model_config = ConfigDict(frozen=True)

    read_only_url: str
    target_workspaces: list[TargetWorkspace] = Field(min_length=1)
    sync_schedule: list[SyncSchedule] | None = None
    min_interval_ms: int = Field(default=MIN_LOOP_INTERVAL_MS, ge=MIN_LOOP_INTERVAL_MS)
    storage_dir: Path = DEFAULT_STORAGE_DIR
    enable_json_diff: bool = False
    dry_run: bool = False
    log_level: LogLevel = "info"

    @field_validator("read_only_url")
    @classmethod
    def check_url(cls, value: str) -> str:
        value = value.strip()
        if not READ_ONLY_URL_RE.match(value):
            raise ValueError("must be a valid Postman public shareable link in the correct format")
        return value

    @property
    def collection_id(self) -> str:
        """Source collection id: the last path segment of the read-only URL."""
        path = self.read_only_url.split("?", 1)[0]
        return path.rstrip("/").rsplit("/", 1)[-1]


class CollectionResponse(BaseModel):
    """Shape of a successful read-only collection response."""

    model_config = ConfigDict(extra="allow")

    collection: dict[str, Any]


class CreatedCollection(BaseModel):
    model_config = ConfigDict(extra="allow")

    uid: str


class CreatedCollectionResponse(BaseModel):
    """Shape of a successful create-collection response."""

    model_config = ConfigDict(extra="allow")

    collection: CreatedCollection


@dataclass(frozen=True)
class ScheduleOverride:
    """Payload of the schedule_override event."""

    target_id: str
    tag: str | None
    target_schedule: list[SyncSchedule]
    global_schedule: list[SyncSchedule]
    overridden_by: str = "target"


@dataclass(frozen=True)
class ChangeDetection:
    """Result of CollectionWatcher.detect_change()."""

    changed: bool
    diff: list[dict[str, Any]] | None = None
    initial: bool = False


@dataclass
class CycleStats:
    """Statistics for one sync cycle."""

    changed: bool = False
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
