"""Retention, export and relocation for SharePoint backup catalogs."""
from __future__ import annotations

from .api import CatalogService
from .export import export_catalog
from .relocate import update_catalog_path
from .retention import purge_catalog, trim_by_count, trim_by_size
from .types import ExportMode, ExportResult, GroomResult, RemovedRun, TrimSummary

__all__ = [
    "CatalogService",
    "ExportMode",
    "ExportResult",
    "GroomResult",
    "RemovedRun",
    "TrimSummary",
    "export_catalog",
    "purge_catalog",
    "trim_by_count",
    "trim_by_size",
    "update_catalog_path",
]
