"""Common dataclasses shared across grooming modules."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional


class ExportMode(str, Enum):
    """How the export cutoff is chosen among eligible Full runs."""

    ALL = "all"
    INCLUDE_OLDEST = "include_oldest"
    EXCLUDE_NEWEST = "exclude_newest"


@dataclass(slots=True)
class RemovedRun:
    id: Optional[str]
    directory_number: int
    directory_name: Optional[str]
    path: Optional[Path]
    size_bytes: Optional[int]


@dataclass(slots=True)
class TrimSummary:
    removed: List[RemovedRun] = field(default_factory=list)
    kept: List[int] = field(default_factory=list)
    passes: int = 0

    @property
    def removed_numbers(self) -> List[int]:
        return [run.directory_number for run in self.removed]

    @property
    def freed_bytes(self) -> Optional[int]:
        """Bytes released by the removed runs; ``None`` when any size was unknown."""
        sizes = [run.size_bytes for run in self.removed]
        if any(size is None for size in sizes):
            return None
        return sum(sizes)


@dataclass(slots=True)
class GroomResult:
    count: Optional[TrimSummary] = None
    size: Optional[TrimSummary] = None

    @property
    def removed_numbers(self) -> List[int]:
        numbers: List[int] = []
        for summary in (self.count, self.size):
            if summary is not None:
                numbers.extend(summary.removed_numbers)
        return numbers


@dataclass(slots=True)
class ExportResult:
    target: Path
    compressed: bool
    exported: List[int]
    excluded: List[int]
    bytes_copied: int


__all__ = [
    "ExportMode",
    "ExportResult",
    "GroomResult",
    "RemovedRun",
    "TrimSummary",
]
