"""
Shared pytest fixtures and config helpers.
"""

import logging
from datetime import datetime
from datetime import timedelta

import pytest

from postman_sync.models import SyncConfiguration

READ_ONLY_URL = (
    "https://api.postman.com/collections/12345678-4f1c-4b6e-9d1a-0c2b3a4d5e6f"
    "?access_key=PMAT-01HX9ABCDEF0123456789"
)
SOURCE_COLLECTION_ID = "12345678-4f1c-4b6e-9d1a-0c2b3a4d5e6f"

WORKSPACE_QA = "1b9d6bcd-bbfd-4b2d-9b5d-ab8dfbbd4bed"
WORKSPACE_STAGING = "6ec0bd7f-11c0-43da-975e-2a8ad9ebae0b"
WORKSPACE_PROD = "a3bb189e-8bf9-4888-9912-ace4e6543002"

EXISTING_UID = "12345678-1b9d6bcd-bbfd-4b2d-9b5d-ab8dfbbd4bed"


def make_api_key(n: int) -> str:
    """Return a well-formed, unique PMAK key."""
    return f"PMAK-{n:024x}-{n:034x}"


def make_collection(*names: str, title: str = "Main API") -> dict:
    """Return a minimal Postman collection with one request item per name."""
    return {
        "info": {"_postman_id": "4f1c-main", "name": title},
        "item": [
            {"name": name, "request": {"method": "GET", "url": f"https://example.test/{name}"}}
            for name in names
        ],
    }


def make_target(workspace_id: str = WORKSPACE_QA, **overrides) -> dict:
    target = {"id": workspace_id, "api_keys": [make_api_key(1)]}
    target.update(overrides)
    return target


def make_options(tmp_path, targets=None, **overrides) -> dict:
    options = {
        "read_only_url": READ_ONLY_URL,
        "target_workspaces": targets if targets is not None else [make_target()],
        "storage_dir": tmp_path / "storage",
    }
    options.update(overrides)
    return options


class FixedClock:
    """Callable clock for the synchronizer; advance() moves it forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now = self.now + timedelta(minutes=minutes)


@pytest.fixture
def storage_dir(tmp_path):
    return tmp_path / "storage"


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 3, 2, 11, 0, 0))


@pytest.fixture
def options(tmp_path):
    return make_options(tmp_path)


@pytest.fixture
def sync_config(tmp_path) -> SyncConfiguration:
    return SyncConfiguration.model_validate(make_options(tmp_path))


@pytest.fixture
def sync_logger():
    return logging.getLogger("test_sync")
