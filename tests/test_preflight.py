"""
Tests for run_preflight_checks().
"""

import io

import httpx
from rich.console import Console

from postman_sync.models import FetchError
from postman_sync.models import SyncConfiguration
from postman_sync.preflight import run_preflight_checks
from tests.conftest import make_collection
from tests.conftest import make_options
from tests.conftest import make_target
from tests.fake_client import FakeSource


def _console() -> Console:
    return Console(file=io.StringIO(), width=120)


def _config(tmp_path, **overrides) -> SyncConfiguration:
    return SyncConfiguration.model_validate(make_options(tmp_path, **overrides))


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://api.postman.com/collections/x")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


def test_all_checks_pass(tmp_path):
    cfg = _config(tmp_path)
    assert run_preflight_checks(cfg, _console(), fetcher=FakeSource(make_collection("a")))
    assert cfg.storage_dir.is_dir()


def test_revoked_access_key(tmp_path):
    source = FakeSource()
    source.error = _status_error(401)
    console = _console()

    assert not run_preflight_checks(_config(tmp_path), console, fetcher=source)

    output = console.file.getvalue()
    assert "Preflight checks failed" in output
    assert "HTTP 401" in output
    assert "regenerate the share link" in output


def test_invalid_source_response(tmp_path):
    source = FakeSource()
    source.error = FetchError("collection missing")
    console = _console()

    assert not run_preflight_checks(_config(tmp_path), console, fetcher=source)
    assert "collection missing" in console.file.getvalue()


def test_all_targets_disabled(tmp_path):
    cfg = _config(tmp_path, target_workspaces=[make_target(enabled=False)])
    console = _console()

    assert not run_preflight_checks(cfg, console, fetcher=FakeSource(make_collection("a")))
    assert "every target is disabled" in console.file.getvalue()


def test_unwritable_storage_dir(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    cfg = _config(tmp_path, storage_dir=blocker / "storage")
    console = _console()

    assert not run_preflight_checks(cfg, console, fetcher=FakeSource(make_collection("a")))
    assert "Storage directory" in console.file.getvalue()


def test_null_collection_info(tmp_path):
    source = FakeSource({"info": None, "item": []})
    assert run_preflight_checks(_config(tmp_path), _console(), fetcher=source)
