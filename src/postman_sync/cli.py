"""
Command-line interface for Postman Sync.
"""

import logging
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from postman_sync.events import SyncEvent
from postman_sync.models import DEFAULT_CONFIG
from postman_sync.models import LOG_LEVELS
from postman_sync.models import ConfigurationError
from postman_sync.models import SyncConfiguration
from postman_sync.storage import SyncStorage

# ---------------------------------------------------------------------------
# Typer app
# ---------------------------------------------------------------------------

app = typer.Typer(
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Keep Postman workspaces in sync with a read-only source collection.",
)

console = Console()


# ---------------------------------------------------------------------------
# Global state shared across subcommands
# ---------------------------------------------------------------------------


@dataclass
class _State:
    config_path: Path = field(default_factory=lambda: DEFAULT_CONFIG)
    verbose: bool = False


state = _State()


@app.callback()
def _global(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help=f"Config file path (default: {DEFAULT_CONFIG})"),
    ] = DEFAULT_CONFIG,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose debug output"),
    ] = False,
) -> None:
    state.config_path = config
    state.verbose = verbose


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _setup_logging(level: int) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False, console=console)],
    )


def _load(storage_dir: Path | None = None, dry_run: bool | None = None) -> SyncConfiguration:
    """Load and validate the config file, exiting with a message on failure."""
    from postman_sync.config import load_configuration

    overrides = {"storage_dir": storage_dir, "dry_run": dry_run or None}
    if state.verbose:
        overrides["log_level"] = "debug"
    try:
        cfg = load_configuration(state.config_path, **overrides)
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/] {e}")
        raise typer.Exit(1) from None

    _setup_logging(LOG_LEVELS[cfg.log_level])
    return cfg


def _describe_schedule(schedule) -> str:
    if not schedule:
        return "—"
    return ", ".join(str(window) for window in schedule)


def _build_synchronizer(cfg: SyncConfiguration):
    from postman_sync.sync import PostmanSync

    synchronizer = PostmanSync(cfg)

    def _on_change(collection, diff):
        if diff:
            console.print(f"[cyan]Collection changed:[/] {len(diff)} JSON Patch operation(s)")

    def _on_override(override):
        logging.getLogger(__name__).debug(
            "Target %s schedule (%s) overrides global schedule (%s)",
            override.target_id,
            _describe_schedule(override.target_schedule),
            _describe_schedule(override.global_schedule),
        )

    synchronizer.on(SyncEvent.CHANGE, _on_change)
    synchronizer.on(SyncEvent.SCHEDULE_OVERRIDE, _on_override)
    return synchronizer


def _print_header(cfg: SyncConfiguration, mode: str) -> None:
    enabled = sum(1 for t in cfg.target_workspaces if t.enabled)
    info = Text()
    info.append("  Source:     ", style="bold")
    info.append(f"{cfg.collection_id}\n")
    info.append("  Targets:    ", style="bold")
    info.append(f"{enabled} enabled / {len(cfg.target_workspaces)} configured\n")
    info.append("  Interval:   ", style="bold")
    info.append(f"{cfg.min_interval_ms / 1000:g}s\n")
    info.append("  Schedule:   ", style="bold")
    info.append(_describe_schedule(cfg.sync_schedule))
    info.append("\n  JSON diff:  ", style="bold")
    info.append("on" if cfg.enable_json_diff else "off")
    info.append("\n  Operation:  ")
    info.append(mode, style="bold green")
    if cfg.dry_run:
        info.append("\n  Mode:       ")
        info.append("DRY RUN", style="bold magenta")

    console.print(Panel(info, title="[bold]Postman Sync[/bold]"))


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

_STORAGE_OPT = Annotated[
    Path | None,
    typer.Option("--storage-dir", help="Directory for snapshots and the audit log"),
]
_DRY_RUN = Annotated[
    bool, typer.Option("--dry-run", "-n", help="Detect changes without writing to targets")
]


@app.command()
def run(storage_dir: _STORAGE_OPT = None, dry_run: _DRY_RUN = False) -> None:
    """Run the sync loop in the foreground until interrupted."""
    cfg = _load(storage_dir, dry_run)
    _print_header(cfg, "LOOP")

    synchronizer = _build_synchronizer(cfg)
    try:
        synchronizer.run_forever()
    except KeyboardInterrupt:
        synchronizer.stop()
        console.print("[yellow]Interrupted by user[/]")
        raise typer.Exit(130) from None


@app.command()
def once(storage_dir: _STORAGE_OPT = None, dry_run: _DRY_RUN = False) -> None:
    """Run a single sync cycle and report the results."""
    cfg = _load(storage_dir, dry_run)
    _print_header(cfg, "SINGLE CYCLE")

    synchronizer = _build_synchronizer(cfg)
    try:
        stats = synchronizer.tick()
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted by user[/]")
        raise typer.Exit(130) from None

    if stats is None:
        console.print("[bold red]Sync failed[/] (see log above)")
        raise typer.Exit(1)

    results = Table.grid(padding=(0, 2))
    results.add_column(style="bold")
    results.add_column(justify="right")
    results.add_row("Changed", "yes" if stats.changed else "no")
    results.add_row("Inserted", str(stats.inserted))
    results.add_row("Updated", str(stats.updated))
    results.add_row("Skipped", str(stats.skipped))
    error_val = Text(str(stats.errors))
    if stats.errors == 0:
        error_val.append(" ✓", style="green")
    else:
        error_val.stylize("bold red")
    results.add_row("Errors", error_val)

    console.print(Panel(results, title="[bold]Results[/bold]", expand=False))

    if stats.errors:
        raise typer.Exit(1)


@app.command()
def check() -> None:
    """Validate the config file and run preflight checks."""
    from postman_sync.preflight import run_preflight_checks

    cfg = _load()
    if not run_preflight_checks(cfg, console):
        raise typer.Exit(1)
    console.print("[green]Configuration OK — source reachable, storage writable.[/]")


@app.command()
def status(
    lines: Annotated[
        int, typer.Option("--lines", help="Audit log entries to show (default: 10)")
    ] = 10,
) -> None:
    """Show configuration, targets, snapshot and recent auto-creates."""
    cfg = _load()
    storage = SyncStorage(cfg.storage_dir, cfg.collection_id)

    # -- Configuration section -----------------------------------------------
    cfg_info = Text()
    cfg_info.append("  Config:    ", style="bold")
    cfg_info.append(f"{state.config_path} ")
    cfg_info.append("✓", style="green")
    cfg_info.append("\n  Source:    ", style="bold")
    cfg_info.append(cfg.collection_id)
    cfg_info.append("\n  Storage:   ", style="bold")
    cfg_info.append(str(storage.storage_dir))
    cfg_info.append("\n  Snapshot:  ", style="bold")
    if storage.snapshot_path.exists():
        mtime = datetime.fromtimestamp(storage.snapshot_path.stat().st_mtime)
        cfg_info.append(f"saved {mtime:%Y-%m-%d %H:%M:%S}", style="green")
    elif cfg.enable_json_diff:
        cfg_info.append("(none yet)", style="yellow")
    else:
        cfg_info.append("(JSON diff disabled)", style="dim")
    cfg_info.append("\n  Schedule:  ", style="bold")
    cfg_info.append(_describe_schedule(cfg.sync_schedule))

    console.print(Panel(cfg_info, title="[bold]Postman Sync — Status[/bold]"))

    # -- Targets -------------------------------------------------------------
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Tag")
    table.add_column("Workspace", overflow="fold")
    table.add_column("Enabled")
    table.add_column("Schedule")
    table.add_column("Collection", overflow="fold")
    table.add_column("Keys", justify="right")
    for target in cfg.target_workspaces:
        table.add_row(
            target.tag or "",
            target.id,
            Text("yes", style="green") if target.enabled else Text("no", style="yellow"),
            _describe_schedule(target.sync_schedule),
            target.collection_uid
            or Text("auto-create" if not target.prevent_auto_create else "—", style="dim"),
            str(len(target.api_keys)),
        )
    console.print(table)

    # -- Audit log -----------------------------------------------------------
    entries = storage.read_audit_lines(limit=lines)
    if not entries:
        console.print("[dim]No auto-created collections recorded.[/dim]")
        return
    console.print(Panel("\n".join(entries), title="[bold]Recent auto-creates[/bold]"))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    app()
