"""Point every run's ``SPBackupDirectory`` at a new catalog root."""
from __future__ import annotations

import os

from core.paths import join_backup_directory

from .index import CatalogIndex


def rewrite_backup_paths(index: CatalogIndex, new_root: str | os.PathLike[str]) -> CatalogIndex:
    """Return a copy of *index* whose run directory references live under *new_root*.

    Restores and configuration-only runs are rewritten too. Entries without a
    directory name, or without an ``SPBackupDirectory`` element, are left as
    they are. The input index is not modified.
    """

    rewritten = index.copy()
    for entry in rewritten.entries:
        name = entry.directory_name
        if not name:
            continue
        if entry.element.find("SPBackupDirectory") is None:
            continue
        entry.backup_directory = join_backup_directory(new_root, name)
    return rewritten


__all__ = ["rewrite_backup_paths"]
