"""JSON settings for grooming defaults, export options and report text."""
from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

from .paths import get_default_settings_paths, get_logs_dir
from .settings_schema import SETTINGS_VALIDATOR

LOGGER = logging.getLogger("backupcatalog.settings")

__all__ = [
    "DEFAULT_SETTINGS",
    "SETTINGS_VERSION",
    "load_settings",
    "merge_defaults",
    "save_settings",
    "update_settings",
]

SETTINGS_VERSION = 2


DEFAULT_SETTINGS: Dict[str, Any] = {
    "version": SETTINGS_VERSION,
    "grooming": {
        "retain_count": None,
        "retain_size_bytes": None,
        "ignore_errors": False,
    },
    "export": {
        "compression": True,
        "update_catalog_path": False,
        "name_template": "BackupCatalogExport_{stamp}",
        "zip_buffer_bytes": 512 * 1024,
    },
    "report": {
        "null_value": "(not available)",
        "subject_template": "Backup status for {catalog_path}",
    },
    "logging": {
        "level": "INFO",
        "json_file": False,
    },
}


def merge_defaults(data: Dict[str, Any]) -> Dict[str, Any]:
    def _merge(default: Dict[str, Any], payload: Dict[str, Any]) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for key, value in default.items():
            if isinstance(value, dict):
                current = payload.get(key)
                if isinstance(current, dict):
                    result[key] = _merge(value, current)
                else:
                    result[key] = _merge(value, {})
            elif isinstance(value, list):
                current = payload.get(key)
                result[key] = list(current) if isinstance(current, list) else list(value)
            else:
                result[key] = payload.get(key, value)
        for key, value in payload.items():
            if key not in result:
                result[key] = value
        return result

    return _merge(DEFAULT_SETTINGS, data or {})


def _apply_migrations(settings: Dict[str, Any], working_dir: Path) -> Dict[str, Any]:
    version = settings.get("version")
    try:
        version_int = int(version)
    except (TypeError, ValueError):
        version_int = 0
    if version_int < 2:
        # Version 1 kept the size limit in gigabytes.
        grooming = settings.get("grooming")
        if isinstance(grooming, dict) and grooming.get("retain_size_gb") is not None:
            try:
                size_gb = float(grooming.pop("retain_size_gb"))
            except (TypeError, ValueError):
                size_gb = 0.0
            if size_gb > 0 and grooming.get("retain_size_bytes") is None:
                grooming["retain_size_bytes"] = int(size_gb * 1024 ** 3)
    if version_int < SETTINGS_VERSION:
        settings["version"] = SETTINGS_VERSION
    return settings


def _log_unknown_keys(settings: Dict[str, Any], working_dir: Path) -> None:
    unknown = list(SETTINGS_VALIDATOR.unknown_keys(settings))
    if not unknown:
        return
    logs_dir = get_logs_dir(working_dir)
    payload = {
        "ts": time.time(),
        "unknown": unknown,
    }
    target = logs_dir / "settings_unknown.json"
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
    except OSError:
        return


def _read_candidate(candidate: Path) -> Optional[Dict[str, Any]]:
    try:
        with open(candidate, "r", encoding="utf-8") as handle:
            loaded = json.load(handle)
    except FileNotFoundError:
        return None
    except json.JSONDecodeError as exc:
        LOGGER.warning("ignoring malformed settings file %s: %s", candidate, exc)
        return None
    except OSError as exc:
        LOGGER.warning("cannot read settings file %s: %s", candidate, exc)
        return None
    if not isinstance(loaded, dict):
        LOGGER.warning("ignoring settings file %s: top level is not an object", candidate)
        return None
    return loaded


def load_settings(working_dir: Path) -> Dict[str, Any]:
    """Return the first readable settings file merged over the defaults."""

    working_dir = Path(working_dir)
    data: Dict[str, Any] = {}
    for candidate in get_default_settings_paths(working_dir):
        loaded = _read_candidate(candidate)
        if loaded is not None:
            data = loaded
            break
    merged = _apply_migrations(merge_defaults(data), working_dir)
    merged.setdefault("working_dir", str(working_dir))
    _log_unknown_keys(merged, working_dir)
    return merged


def save_settings(settings: Dict[str, Any], working_dir: Path) -> None:
    working_dir = Path(working_dir)
    merged = _apply_migrations(merge_defaults(dict(settings)), working_dir)
    merged.setdefault("working_dir", str(working_dir))
    path = working_dir / "settings.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    staging = path.with_name(path.name + ".tmp")
    with open(staging, "w", encoding="utf-8") as handle:
        json.dump(merged, handle, ensure_ascii=False, indent=2)
    os.replace(staging, path)


def update_settings(working_dir: Path, **values: Any) -> None:
    current = load_settings(working_dir)
    current.update(values)
    save_settings(current, working_dir)
