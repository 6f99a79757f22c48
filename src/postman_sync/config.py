"""
Configuration loading: INI file → validated SyncConfiguration.

Example file::

    [postman-sync]
    read_only_url = https://api.postman.com/collections/1234-abcd?access_key=PMAT-XXXX
    min_interval_ms = 60000
    enable_json_diff = true
    schedule = 9-18/10, 22-6/30

    [target:qa]
    id = 1b9d6bcd-bbfd-4b2d-9b5d-ab8dfbbd4bed
    api_keys = PMAK-..., PMAK-...
    schedule = 10-17/15

Each ``[target:<name>]`` section is one target workspace, in file order.
``<name>`` is used as the tag unless the section sets one.
"""

import re
from collections.abc import Mapping
from configparser import ConfigParser
from configparser import Error as ConfigParserError
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from postman_sync.models import ConfigurationError
from postman_sync.models import SyncConfiguration

MAIN_SECTION = "postman-sync"
TARGET_PREFIX = "target:"

_WINDOW_RE = re.compile(r"^\s*(\d{1,2})\s*-\s*(\d{1,2})\s*/\s*(\d+(?:\.\d+)?)\s*$")
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def parse_configuration(data: Mapping[str, Any] | SyncConfiguration) -> SyncConfiguration:
    """Validate ``data`` into a SyncConfiguration or raise ConfigurationError."""
    if isinstance(data, SyncConfiguration):
        return data
    if not isinstance(data, Mapping):
        raise ConfigurationError("options must be a mapping")
    try:
        return SyncConfiguration.model_validate(dict(data))
    except ValidationError as e:
        raise ConfigurationError(_format_validation_error(e)) from e


def _format_validation_error(error: ValidationError) -> str:
    lines = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"]) or "options"
        lines.append(f"{location}: {err['msg']}")
    return "Invalid configuration:\n  " + "\n  ".join(lines)


def parse_schedule(text: str) -> list[dict[str, float]]:
    """Parse ``"9-18/10, 22-6/30"`` into window dicts (validated later)."""
    windows = []
    for chunk in text.split(","):
        if not chunk.strip():
            continue
        match = _WINDOW_RE.match(chunk)
        if not match:
            raise ConfigurationError(
                f"Invalid schedule window {chunk.strip()!r} (expected START-END/MINUTES)"
            )
        start, end, minutes = match.groups()
        windows.append(
            {"start_hour": int(start), "end_hour": int(end), "interval_minutes": float(minutes)}
        )
    return windows


def _parse_bool(section: str, key: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigurationError(f"[{section}] {key} must be a boolean, got {value!r}")


def _split_list(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _read_target(name: str, section: Mapping[str, str]) -> dict[str, Any]:
    label = f"{TARGET_PREFIX}{name}"
    target: dict[str, Any] = {
        "id": section.get("id", ""),
        "api_keys": _split_list(section.get("api_keys", "")),
        "tag": section.get("tag", name),
    }
    if section.get("collection_uid"):
        target["collection_uid"] = section["collection_uid"]
    if "enabled" in section:
        target["enabled"] = _parse_bool(label, "enabled", section["enabled"])
    if "prevent_auto_create" in section:
        target["prevent_auto_create"] = _parse_bool(
            label, "prevent_auto_create", section["prevent_auto_create"]
        )
    if section.get("schedule"):
        target["sync_schedule"] = parse_schedule(section["schedule"])
    return target


def read_config_file(config_path: Path) -> dict[str, Any]:
    """Read the INI file into a plain options mapping (unvalidated)."""
    parser = ConfigParser()
    try:
        with open(config_path, encoding="utf-8") as f:
            parser.read_file(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Config file not found: {config_path}") from None
    except ConfigParserError as e:
        raise ConfigurationError(f"Cannot parse {config_path}: {e}") from e

    if MAIN_SECTION not in parser:
        raise ConfigurationError(f"{config_path} has no [{MAIN_SECTION}] section")
    main = parser[MAIN_SECTION]

    options: dict[str, Any] = {"read_only_url": main.get("read_only_url", "")}
    if "min_interval_ms" in main:
        options["min_interval_ms"] = main["min_interval_ms"]
    if main.get("storage_dir"):
        options["storage_dir"] = Path(main["storage_dir"]).expanduser()
    for key in ("enable_json_diff", "dry_run"):
        if key in main:
            options[key] = _parse_bool(MAIN_SECTION, key, main[key])
    if main.get("log_level"):
        options["log_level"] = main["log_level"].strip().lower()
    if main.get("schedule"):
        options["sync_schedule"] = parse_schedule(main["schedule"])

    options["target_workspaces"] = [
        _read_target(name[len(TARGET_PREFIX) :], parser[name])
        for name in parser.sections()
        if name.startswith(TARGET_PREFIX)
    ]
    return options


def load_configuration(config_path: Path, **overrides: Any) -> SyncConfiguration:
    """Read and validate ``config_path``; ``overrides`` replace file values."""
    options = read_config_file(config_path)
    options.update({k: v for k, v in overrides.items() if v is not None})
    return parse_configuration(options)
