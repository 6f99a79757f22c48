"""
Preflight checks run before syncing to catch common misconfigurations early.
"""

import logging
import tempfile
from collections.abc import Callable
from typing import Any

import httpx
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from postman_sync.api_client import fetch_read_only_collection
from postman_sync.models import FetchError
from postman_sync.models import SyncConfiguration

logger = logging.getLogger(__name__)


def run_preflight_checks(
    cfg: SyncConfiguration,
    console: Console,
    fetcher: Callable[[str], dict[str, Any]] = fetch_read_only_collection,
) -> bool:
    """Return True if sync may proceed; print issues and return False otherwise."""
    issues: list[tuple[str, str, str]] = []  # (label, detail, hint)

    # 1. Storage directory exists and is writable
    storage_dir = cfg.storage_dir.expanduser()
    try:
        storage_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryFile(dir=storage_dir):
            pass
    except OSError as e:
        logger.error("Storage directory not writable (%s): %s", storage_dir, e)
        issues.append(
            (
                "Storage directory",
                f"{storage_dir}: {e}",
                f"Check permissions on {storage_dir} or set storage_dir in the config",
            )
        )

    # 2. Source collection reachable
    try:
        collection = fetcher(cfg.read_only_url)
    except httpx.HTTPStatusError as e:
        logger.error("Read-only URL returned HTTP %d", e.response.status_code)
        hint = (
            "The access key may have been revoked; regenerate the share link"
            if e.response.status_code in (401, 403, 404)
            else "Postman API may be unavailable; try again later"
        )
        issues.append(("Source collection", f"HTTP {e.response.status_code}", hint))
    except (FetchError, httpx.HTTPError) as e:
        logger.error("Cannot fetch source collection: %s", e)
        issues.append(("Source collection", str(e), "Check network access and read_only_url"))
    else:
        name = (collection.get("info") or {}).get("name")
        logger.debug("Source collection reachable: %s", name or cfg.collection_id)

    # 3. At least one target can receive the collection
    if not any(t.enabled for t in cfg.target_workspaces):
        issues.append(
            (
                "Target workspaces",
                "every target is disabled",
                "Set enabled = true on at least one [target:...] section",
            )
        )

    if issues:
        _print_issues(issues, console)
        return False

    return True


def _print_issues(issues: list[tuple[str, str, str]], console: Console) -> None:
    body = Text()
    for i, (label, detail, hint) in enumerate(issues):
        if i:
            body.append("\n")
        body.append(f"  ✗  {label}: ", style="bold red")
        body.append(detail, style="bold red")
        body.append(f"\n       → {hint}", style="yellow")

    console.print(Panel(body, title="[bold red]Preflight checks failed[/bold red]"))
