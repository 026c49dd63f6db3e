from __future__ import annotations

import ntpath
import os
import re
from pathlib import Path
from typing import Optional

__all__ = [
    "INDEX_FILENAME",
    "get_default_settings_paths",
    "get_index_path",
    "get_logs_dir",
    "is_unc",
    "is_windows_path",
    "join_backup_directory",
    "resolve_run_directory",
    "resolve_working_dir",
    "to_long_path",
]

INDEX_FILENAME = "spbrtoc.xml"

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_IS_WINDOWS = os.name == "nt"
_WINDOWS_MAX_PATH = 260
_LONG_PATH_PREFIX = "\\\\?\\"
_UNC_PREFIX = "\\\\"
_LONG_UNC_PREFIX = "\\\\?\\UNC\\"
_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:[\\/]")


def is_unc(path: str | os.PathLike[str]) -> bool:
    """Return True if *path* points to a UNC network location."""

    text = str(path)
    if text.startswith(_LONG_UNC_PREFIX):
        return True
    if text.startswith(_LONG_PATH_PREFIX):
        return text[len(_LONG_PATH_PREFIX) :].startswith(_UNC_PREFIX)
    return text.startswith(_UNC_PREFIX)


def is_windows_path(path: str | os.PathLike[str]) -> bool:
    """Return True for UNC shares and drive-letter paths, whatever the host OS."""

    text = str(path)
    return is_unc(text) or bool(_DRIVE_PATTERN.match(text))


def _needs_long_prefix(path: str) -> bool:
    return len(path) >= (_WINDOWS_MAX_PATH - 12)


def to_long_path(path: str | os.PathLike[str]) -> str:
    """Return a version of *path* that is safe for Windows long-path APIs."""

    text = str(path)
    if not _IS_WINDOWS:
        return text
    normalized = text.replace("/", "\\")
    if normalized.startswith(_LONG_PATH_PREFIX):
        return normalized
    if normalized.startswith(_UNC_PREFIX):
        trimmed = normalized.lstrip("\\")
        return f"{_LONG_UNC_PREFIX}{trimmed}"
    if _needs_long_prefix(normalized):
        return f"{_LONG_PATH_PREFIX}{normalized}"
    return normalized


def join_backup_directory(root: str | os.PathLike[str], directory_name: str) -> str:
    """Join *root* and a run directory name, always ending in a path separator.

    Backup producers write ``SPBackupDirectory`` values with a trailing
    separator, so rewritten values keep that shape. Windows-style roots keep
    backslashes even when the catalog is groomed from a POSIX host.
    """

    text = str(root)
    if is_windows_path(text):
        joined = ntpath.join(text, directory_name)
        separator = "\\"
    else:
        joined = os.path.join(text, directory_name)
        separator = os.sep
    if not joined.endswith(separator):
        joined += separator
    return joined


def resolve_run_directory(root: Path, directory_name: str) -> Path:
    """Return the run directory for *directory_name*, refusing paths that leave *root*."""

    base = Path(root).resolve()
    candidate = (base / directory_name).resolve()
    if candidate == base or base not in candidate.parents:
        raise ValueError(f"run directory {directory_name!r} escapes catalog root {base}")
    return candidate


def get_index_path(catalog_root: Path) -> Path:
    return Path(catalog_root) / INDEX_FILENAME


def _expand_path(value: str) -> Path:
    expanded = os.path.expandvars(os.path.expanduser(value))
    return Path(expanded).resolve()


def _ensure_writable_dir(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    test_file = path / f".write_test_{os.getpid()}"
    try:
        with open(test_file, "w", encoding="utf-8") as handle:
            handle.write("ok")
        test_file.unlink(missing_ok=True)
        return True
    except OSError:
        try:
            if test_file.exists():
                test_file.unlink()
        except OSError:  # pragma: no cover - cleanup only
            pass
        return False


def _prepare_working_dir(candidate: Path) -> Optional[Path]:
    if not _ensure_writable_dir(candidate):
        return None
    try:
        get_logs_dir(candidate).mkdir(parents=True, exist_ok=True)
        return candidate
    except OSError:
        return None


def resolve_working_dir() -> Path:
    """Resolve the working directory that holds settings and grooming logs."""

    env_home = os.environ.get("BACKUPCATALOG_HOME")
    if env_home:
        try:
            env_path = _expand_path(env_home)
        except (OSError, RuntimeError):
            env_path = None
        if env_path:
            prepared = _prepare_working_dir(env_path)
            if prepared is not None:
                return prepared

    prepared = _prepare_working_dir(Path.home() / ".backupcatalog")
    if prepared is not None:
        return prepared

    fallback = _PROJECT_ROOT / ".backupcatalog"
    get_logs_dir(fallback).mkdir(parents=True, exist_ok=True)
    return fallback


def get_logs_dir(working_dir: Path) -> Path:
    return working_dir / "logs"


def get_default_settings_paths(working_dir: Path) -> list[Path]:
    """Return the search order for settings.json files."""

    return [working_dir / "settings.json", _PROJECT_ROOT / "settings.json"]
