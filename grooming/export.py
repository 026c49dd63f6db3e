"""Export selected runs of a backup catalog into an external archive."""
from __future__ import annotations

import re
import shutil
import zipfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from catalog.errors import CatalogExportError, InvalidParametersError
from catalog.index import CatalogIndex, RunEntry
from catalog.model import BackupCatalog
from catalog.rewrite import rewrite_backup_paths
from core.files import COPY_BUFFER_BYTES, copy_tree
from core.paths import INDEX_FILENAME, resolve_run_directory

from .logs import GroomingLogger
from .types import ExportMode, ExportResult

ARCHIVE_EXTENSION = ".zip"
DEFAULT_NAME_TEMPLATE = "BackupCatalogExport_{stamp}"

_EXPORT_ALL = float("inf")
_EXPORT_NOTHING = float("-inf")
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_INVALID_PATH_CHARS = re.compile(r'[<>"|\x00-\x1f]')


def default_export_name(now: Optional[datetime] = None, *, template: str = DEFAULT_NAME_TEMPLATE) -> str:
    now = now or datetime.now()
    stamp = f"{now.year}_{now.month}_{now.day}-{now.hour}_{now.minute}_{now.second}"
    return template.format(stamp=stamp)


def archive_file_name(name: str) -> str:
    if name.lower().endswith(ARCHIVE_EXTENSION):
        return name
    return name + ARCHIVE_EXTENSION


def validate_export_request(
    destination: Path,
    name: str,
    *,
    mode: ExportMode,
    count: int,
    no_compression: bool,
) -> None:
    """Reject an export request before any file is written."""

    if mode is not ExportMode.ALL and count < 1:
        raise InvalidParametersError(f"{mode.value} export needs a positive count, got {count}")
    if not name or not name.strip():
        raise InvalidParametersError("export name must not be empty")
    if no_compression:
        if _INVALID_PATH_CHARS.search(name) or Path(name).is_absolute():
            raise InvalidParametersError(f"export folder name {name!r} is not a valid relative path")
    elif _INVALID_FILENAME_CHARS.search(name):
        raise InvalidParametersError(f"export archive name {name!r} is not a valid file name")
    if not Path(destination).is_dir():
        raise InvalidParametersError(f"export destination {destination} does not exist")
    if no_compression:
        try:
            resolve_run_directory(Path(destination), name)
        except ValueError as exc:
            raise InvalidParametersError(f"export folder name {name!r} leaves {destination}") from exc


def export_cutoff(fulls: Sequence[RunEntry], mode: ExportMode, count: int) -> float:
    """Directory number below which runs are exported.

    *fulls* are the eligible Full runs, newest first. The keep index marks the
    first Full that stays behind; positions past the oldest Full export
    nothing and negative positions export everything.
    """

    if mode is ExportMode.ALL:
        return _EXPORT_ALL
    if mode is ExportMode.INCLUDE_OLDEST:
        keep_index = len(fulls) - count - 1
    elif mode is ExportMode.EXCLUDE_NEWEST:
        keep_index = count - 1
    else:
        raise InvalidParametersError(f"unknown export mode {mode!r}")
    if keep_index >= len(fulls) - 1:
        return _EXPORT_NOTHING
    if keep_index >= 0:
        return fulls[keep_index].directory_number
    return _EXPORT_ALL


def select_export_runs(
    index: CatalogIndex,
    *,
    mode: ExportMode = ExportMode.ALL,
    count: int = 0,
    ignore_errors: bool = False,
) -> Tuple[List[RunEntry], List[RunEntry]]:
    """Return ``(selected, excluded)`` content backups below the export cutoff.

    Configuration-only runs are never exported. Unless *ignore_errors* is set,
    Full runs with errors are dropped together with every Differential that
    depends on them, and Differentials with their own errors are dropped.
    ``selected`` keeps document order.
    """

    fulls = index.eligible_fulls(ignore_errors=ignore_errors)
    cutoff = export_cutoff(fulls, mode, count)
    base = [entry for entry in index.content_backups() if entry.directory_number < cutoff]

    excluded_numbers = set()
    if not ignore_errors:
        bad_chain = False
        for entry in sorted(base, key=lambda item: item.directory_number):
            if entry.is_full:
                bad_chain = entry.has_errors
                if bad_chain:
                    excluded_numbers.add(entry.directory_number)
            elif bad_chain or entry.has_errors:
                excluded_numbers.add(entry.directory_number)

    selected = [entry for entry in base if entry.directory_number not in excluded_numbers]
    excluded = [entry for entry in base if entry.directory_number in excluded_numbers]
    return selected, excluded


def build_export_index(entries: Sequence[RunEntry]) -> CatalogIndex:
    exported = CatalogIndex.empty()
    for entry in entries:
        exported.append(entry)
    return exported


def _export_loose(target: Path, exported: CatalogIndex, sources: Sequence[Tuple[RunEntry, Optional[Path]]]) -> int:
    target.mkdir(parents=True, exist_ok=True)
    exported.save(target / INDEX_FILENAME)
    copied = 0
    for entry, source in sources:
        if source is None:
            continue
        copied += copy_tree(source, target / entry.directory_name)
    return copied


def _add_directory(archive: zipfile.ZipFile, source: Path, arcname: str, *, buffer_size: int) -> int:
    if not source.is_dir():
        raise FileNotFoundError(f"run directory {source} is missing")
    archive.write(source, arcname)
    copied = 0
    for item in sorted(source.rglob("*")):
        name = f"{arcname}/{item.relative_to(source).as_posix()}"
        if item.is_dir():
            archive.write(item, name)
            continue
        info = zipfile.ZipInfo.from_file(item, name)
        info.compress_type = zipfile.ZIP_DEFLATED
        with item.open("rb") as src, archive.open(info, "w", force_zip64=True) as dst:
            shutil.copyfileobj(src, dst, buffer_size)
        copied += info.file_size
    return copied


def _export_archive(
    archive_path: Path,
    exported: CatalogIndex,
    sources: Sequence[Tuple[RunEntry, Optional[Path]]],
    *,
    buffer_size: int,
) -> int:
    if archive_path.exists():
        archive_path.unlink()
    copied = 0
    with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED, allowZip64=True) as archive:
        archive.writestr(INDEX_FILENAME, exported.to_bytes())
        for entry, source in sources:
            if source is None:
                continue
            copied += _add_directory(archive, source, entry.directory_name, buffer_size=buffer_size)
    return copied


def export_catalog(
    catalog: BackupCatalog,
    destination: Path,
    name: str,
    *,
    mode: ExportMode = ExportMode.ALL,
    count: int = 0,
    ignore_errors: bool = False,
    no_compression: bool = False,
    update_catalog_path: bool = False,
    buffer_size: int = COPY_BUFFER_BYTES,
    logger: GroomingLogger,
) -> ExportResult:
    """Copy the selected runs plus a matching index to *destination*.

    Without compression the runs land in ``destination/name``; otherwise a
    single ``name.zip`` archive is written to *destination*, replacing any
    existing file. An export that selects no runs still writes an empty index.
    """

    destination = Path(destination)
    validate_export_request(destination, name, mode=mode, count=count, no_compression=no_compression)
    index = catalog.require_index()
    selected, excluded = select_export_runs(index, mode=mode, count=count, ignore_errors=ignore_errors)
    sources = [(entry, catalog.run_directory(entry)) for entry in selected]

    exported = build_export_index(selected)
    if no_compression:
        target = destination / name
        new_root = target
    else:
        target = destination / archive_file_name(name)
        new_root = destination
    if update_catalog_path:
        exported = rewrite_backup_paths(exported, new_root)

    numbers = [entry.directory_number for entry in selected]
    logger.event(
        event="export_start",
        phase="export",
        ok=True,
        target=str(target),
        mode=mode.value,
        count=count,
        selected=numbers,
        excluded=[entry.directory_number for entry in excluded],
    )
    try:
        if no_compression:
            copied = _export_loose(target, exported, sources)
        else:
            copied = _export_archive(target, exported, sources, buffer_size=buffer_size)
    except OSError as exc:
        logger.error("export_failed", phase="export", target=str(target), error=str(exc))
        raise CatalogExportError(f"export to {target} failed: {exc}") from exc

    logger.event(event="export_complete", phase="export", ok=True, target=str(target), bytes=copied)
    return ExportResult(
        target=target,
        compressed=not no_compression,
        exported=numbers,
        excluded=[entry.directory_number for entry in excluded],
        bytes_copied=copied,
    )


__all__ = [
    "archive_file_name",
    "build_export_index",
    "default_export_name",
    "export_catalog",
    "export_cutoff",
    "select_export_runs",
    "validate_export_request",
]
