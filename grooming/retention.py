"""Retention enforcement for backup catalogs: count trim, size trim and purge."""
from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Tuple

from catalog.errors import InvalidParametersError, RunDeletionError
from catalog.index import CatalogIndex, RunEntry
from catalog.model import BackupCatalog
from core.files import remove_tree, sum_file_sizes

from .logs import GroomingLogger
from .types import RemovedRun, TrimSummary


def _remove_backups(
    catalog: BackupCatalog,
    index: CatalogIndex,
    predicate: Callable[[RunEntry], bool],
    *,
    phase: str,
    logger: GroomingLogger,
) -> List[RemovedRun]:
    """Drop matching runs from the index, persist it, then delete their folders.

    The index is written before any folder is touched, so an interrupted pass
    leaves unreferenced folders behind rather than index entries pointing at
    missing folders. Folder failures do not roll the index back; they are
    collected and raised together once every folder has been attempted.
    """

    pruned = index.copy()
    doomed = pruned.remove_where(predicate)
    if not doomed:
        return []

    runs: List[RemovedRun] = []
    for entry in doomed:
        path = catalog.run_directory(entry)
        runs.append(
            RemovedRun(
                id=entry.id,
                directory_number=entry.directory_number,
                directory_name=entry.directory_name,
                path=path,
                size_bytes=sum_file_sizes(path) if path is not None else 0,
            )
        )

    catalog.save_index(pruned)
    logger.event(
        event="index_saved",
        phase=phase,
        ok=True,
        removed=[run.directory_number for run in runs],
        remaining=len(pruned),
    )

    failures: List[Tuple[Path, OSError]] = []
    for run in runs:
        if run.path is None:
            continue
        try:
            existed = remove_tree(run.path)
        except OSError as exc:
            failures.append((run.path, exc))
            logger.error("run_delete_failed", phase=phase, path=str(run.path), error=str(exc))
            continue
        if existed:
            logger.info("run_removed", phase=phase, number=run.directory_number, path=str(run.path))
        else:
            logger.warning("run_directory_missing", phase=phase, number=run.directory_number, path=str(run.path))
    if failures:
        logger.event(event="run_delete_incomplete", phase=phase, ok=False, failed=len(failures))
        raise RunDeletionError(failures)
    return runs


def _kept_numbers(catalog: BackupCatalog) -> List[int]:
    index = catalog.require_index()
    return sorted(entry.directory_number for entry in index.backups())


def trim_by_count(
    catalog: BackupCatalog,
    retain_count: int,
    *,
    ignore_errors: bool = False,
    logger: GroomingLogger,
) -> TrimSummary:
    """Keep the newest *retain_count* eligible Full runs and everything newer than them.

    Every backup entry older than the oldest retained Full is removed,
    including configuration-only runs and Full runs skipped for errors.
    """

    if retain_count < 1:
        raise InvalidParametersError(f"retain_count must be at least 1, got {retain_count}")
    index = catalog.require_index()
    fulls = index.eligible_fulls(ignore_errors=ignore_errors)
    summary = TrimSummary()
    if len(fulls) <= retain_count:
        summary.kept = _kept_numbers(catalog)
        logger.info("trim_skipped", phase="trim_count", eligible=len(fulls), retain=retain_count)
        return summary

    cutoff = fulls[retain_count - 1].directory_number
    summary.removed = _remove_backups(
        catalog,
        index,
        lambda entry: entry.is_backup and entry.directory_number < cutoff,
        phase="trim_count",
        logger=logger,
    )
    summary.passes = 1
    summary.kept = _kept_numbers(catalog)
    logger.event(
        event="trim_applied",
        phase="trim_count",
        ok=True,
        cutoff=cutoff,
        removed=len(summary.removed),
        kept=len(summary.kept),
    )
    return summary


def trim_by_size(
    catalog: BackupCatalog,
    retain_size: int,
    *,
    ignore_errors: bool = False,
    logger: GroomingLogger,
) -> TrimSummary:
    """Remove the oldest chains until the catalog fits in *retain_size* bytes.

    Each pass drops everything older than the second-oldest eligible Full,
    then reloads the index and the catalog size. At least one eligible Full
    always survives. An unknown catalog size counts as over the limit.
    """

    if retain_size < 0:
        raise InvalidParametersError(f"retain_size must not be negative, got {retain_size}")
    summary = TrimSummary()
    catalog.refresh()
    while True:
        index = catalog.require_index()
        fulls = index.eligible_fulls(ignore_errors=ignore_errors)
        if len(fulls) <= 1:
            break
        size = catalog.catalog_size
        if size is not None and size <= retain_size:
            break
        cutoff = fulls[-2].directory_number
        removed = _remove_backups(
            catalog,
            index,
            lambda entry: entry.is_backup and entry.directory_number < cutoff,
            phase="trim_size",
            logger=logger,
        )
        if not removed:
            break
        summary.removed.extend(removed)
        summary.passes += 1
        logger.info("trim_pass", phase="trim_size", cutoff=cutoff, size=size, removed=len(removed))
        catalog.refresh()

    summary.kept = _kept_numbers(catalog)
    logger.event(
        event="trim_applied",
        phase="trim_size",
        ok=True,
        passes=summary.passes,
        removed=len(summary.removed),
        size=catalog.catalog_size,
        retain_size=retain_size,
    )
    return summary


def purge_catalog(catalog: BackupCatalog, *, logger: GroomingLogger) -> TrimSummary:
    """Remove every backup run. Restore entries stay in the index."""

    index = catalog.require_index()
    summary = TrimSummary()
    summary.removed = _remove_backups(
        catalog,
        index,
        lambda entry: entry.is_backup,
        phase="purge",
        logger=logger,
    )
    summary.passes = 1 if summary.removed else 0
    summary.kept = _kept_numbers(catalog)
    logger.event(event="catalog_purged", phase="purge", ok=True, removed=len(summary.removed))
    return summary


__all__ = ["purge_catalog", "trim_by_count", "trim_by_size"]
