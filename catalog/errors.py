"""Error hierarchy for backup catalog operations."""
from __future__ import annotations

from pathlib import Path
from typing import List, Tuple


class CatalogError(RuntimeError):
    """Base exception for backup catalog failures."""


class NotACatalogError(CatalogError):
    """Raised when a mutating operation needs an index that is missing or unreadable."""


class IndexFormatError(CatalogError):
    """Raised when a run entry carries a malformed field."""


class InvalidParametersError(CatalogError, ValueError):
    """Raised when caller supplied parameters are rejected before any I/O."""


class RunDeletionError(CatalogError):
    """Raised after a persisted index change when some run directories could not be removed."""

    def __init__(self, failures: List[Tuple[Path, OSError]]) -> None:
        self.failures = list(failures)
        paths = ", ".join(str(path) for path, _ in self.failures)
        super().__init__(f"{len(self.failures)} run directories could not be removed: {paths}")


class CatalogExportError(CatalogError):
    """Raised when copying runs into an export target fails."""


__all__ = [
    "CatalogError",
    "CatalogExportError",
    "IndexFormatError",
    "InvalidParametersError",
    "NotACatalogError",
    "RunDeletionError",
]
