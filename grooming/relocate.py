"""Rewrite a catalog's run directory references after it has been moved."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from catalog.model import BackupCatalog
from catalog.rewrite import rewrite_backup_paths

from .logs import GroomingLogger


def update_catalog_path(
    catalog: BackupCatalog,
    new_root: Optional[str | Path] = None,
    *,
    logger: GroomingLogger,
) -> int:
    """Point every ``SPBackupDirectory`` at *new_root* and save the index.

    *new_root* defaults to the folder the catalog currently lives in, which is
    what a copied or re-mounted catalog needs. Returns the number of entries
    whose reference changed.
    """

    index = catalog.require_index()
    target = str(new_root) if new_root is not None else str(catalog.root)
    before = [entry.backup_directory for entry in index.entries]
    rewritten = rewrite_backup_paths(index, target)
    after = [entry.backup_directory for entry in rewritten.entries]
    changed = sum(1 for old, new in zip(before, after) if old != new)
    catalog.save_index(rewritten)
    logger.event(
        event="catalog_path_updated",
        phase="relocate",
        ok=True,
        root=target,
        changed=changed,
    )
    return changed


__all__ = ["update_catalog_path"]
