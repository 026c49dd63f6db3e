"""Backup catalog index model and facade."""
from __future__ import annotations

from .errors import (
    CatalogError,
    CatalogExportError,
    IndexFormatError,
    InvalidParametersError,
    NotACatalogError,
    RunDeletionError,
)
from .index import CatalogIndex, RunEntry, RunMethod
from .model import BackupCatalog
from .rewrite import rewrite_backup_paths

__all__ = [
    "BackupCatalog",
    "CatalogError",
    "CatalogExportError",
    "CatalogIndex",
    "IndexFormatError",
    "InvalidParametersError",
    "NotACatalogError",
    "RunDeletionError",
    "RunEntry",
    "RunMethod",
    "rewrite_backup_paths",
]
