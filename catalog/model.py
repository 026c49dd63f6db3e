"""Backup catalog facade: index lifecycle plus lazily derived statistics."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import ROUND_HALF_EVEN, Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TypeVar

from core.files import sum_file_sizes
from core.paths import get_index_path, resolve_run_directory

from .errors import IndexFormatError, NotACatalogError
from .index import CatalogIndex, RunEntry

LOGGER = logging.getLogger("backupcatalog.catalog")

_T = TypeVar("_T")
_UNSET = object()


class BackupCatalog:
    """A folder holding an ``spbrtoc.xml`` index and one ``spbrNNNN`` folder per run.

    Construction performs no I/O. The index snapshot is read on first use and
    then kept until :meth:`refresh` or :meth:`save_index` replaces it; derived
    statistics are cached alongside the snapshot and dropped with it.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._index: Optional[CatalogIndex] = None
        self._loaded = False
        self._stats: Dict[str, Any] = {}

    @classmethod
    def load(cls, root: str | Path) -> "BackupCatalog":
        return cls(root)

    # ------------------------------------------------------------------
    @property
    def root(self) -> Path:
        return self._root

    @property
    def index_path(self) -> Path:
        return get_index_path(self._root)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def is_valid(self) -> bool:
        try:
            return self.index_path.is_file()
        except OSError:
            return False

    # ------------------------------------------------------------------
    def refresh(self) -> Optional[CatalogIndex]:
        """Drop cached statistics and re-read the index document.

        A missing or unreadable document leaves the catalog without an index;
        derived queries then report ``None``.
        """
        self._stats.clear()
        self._loaded = True
        try:
            self._index = CatalogIndex.load(self.index_path)
        except (OSError, IndexFormatError) as exc:
            LOGGER.debug("index unavailable at %s: %s", self.index_path, exc)
            self._index = None
        return self._index

    @property
    def index(self) -> Optional[CatalogIndex]:
        if not self._loaded:
            self.refresh()
        return self._index

    def require_index(self) -> CatalogIndex:
        index = self.index
        if index is None:
            raise NotACatalogError(f"{self._root} does not contain a readable {self.index_path.name}")
        return index

    def save_index(self, index: CatalogIndex) -> None:
        """Persist *index* as the catalog's document and adopt it as the current snapshot."""
        index.save(self.index_path)
        self._index = index
        self._loaded = True
        self._stats.clear()

    def run_directory(self, entry: RunEntry) -> Optional[Path]:
        name = entry.directory_name
        if not name:
            return None
        try:
            return resolve_run_directory(self._root, name)
        except ValueError as exc:
            raise IndexFormatError(str(exc)) from exc

    # ------------------------------------------------------------------
    def _cached(self, key: str, compute: Callable[[], _T]) -> Optional[_T]:
        value = self._stats.get(key, _UNSET)
        if value is not _UNSET:
            return value
        try:
            value = compute()
        except (OSError, IndexFormatError, ValueError) as exc:
            LOGGER.debug("could not compute %s for %s: %s", key, self._root, exc)
            value = None
        self._stats[key] = value
        return value

    def _count(self, method_check: Callable[[RunEntry], bool]) -> Optional[int]:
        index = self.index
        if index is None:
            return None
        return sum(1 for entry in index.content_backups() if method_check(entry))

    def _newest(self, full_only: bool) -> Optional[RunEntry]:
        index = self.index
        if index is None:
            return None
        candidates = [entry for entry in index.content_backups() if entry.is_full or not full_only]
        if not candidates:
            return None
        return max(candidates, key=lambda entry: entry.directory_number)

    def _size_of(self, entry: Optional[RunEntry]) -> Optional[int]:
        if entry is None:
            return None
        directory = self.run_directory(entry)
        if directory is None:
            return None
        return sum_file_sizes(directory)

    # ------------------------------------------------------------------
    @property
    def full_backup_count(self) -> Optional[int]:
        return self._cached("full_backup_count", lambda: self._count(lambda entry: entry.is_full))

    @property
    def differential_backup_count(self) -> Optional[int]:
        return self._cached(
            "differential_backup_count", lambda: self._count(lambda entry: entry.is_differential)
        )

    @property
    def last_backup(self) -> Optional[RunEntry]:
        return self._cached("last_backup", lambda: self._newest(full_only=False))

    @property
    def last_full_backup(self) -> Optional[RunEntry]:
        return self._cached("last_full_backup", lambda: self._newest(full_only=True))

    @property
    def catalog_size(self) -> Optional[int]:
        def compute() -> Optional[int]:
            if self.index is None:
                return None
            return sum_file_sizes(self._root)

        return self._cached("catalog_size", compute)

    @property
    def last_backup_size(self) -> Optional[int]:
        return self._cached("last_backup_size", lambda: self._size_of(self.last_backup))

    @property
    def last_full_backup_size(self) -> Optional[int]:
        return self._cached("last_full_backup_size", lambda: self._size_of(self.last_full_backup))

    @property
    def size_percent_of_last_full(self) -> Optional[Decimal]:
        """Size of the newest run as a percentage of the newest Full run, two decimals."""

        def compute() -> Optional[Decimal]:
            last_size = self.last_backup_size
            full_size = self.last_full_backup_size
            if last_size is None or not full_size:
                return None
            ratio = Decimal(last_size) * 100 / Decimal(full_size)
            return ratio.quantize(Decimal("0.01"), rounding=ROUND_HALF_EVEN)

        return self._cached("size_percent_of_last_full", compute)

    # Last-run descriptive accessors -------------------------------------
    def _last_field(self, key: str, getter: Callable[[RunEntry], _T]) -> Optional[_T]:
        def compute() -> Optional[_T]:
            entry = self.last_backup
            return getter(entry) if entry is not None else None

        return self._cached(key, compute)

    @property
    def last_backup_error_count(self) -> Optional[int]:
        return self._last_field("last_backup_error_count", lambda entry: entry.error_count)

    @property
    def last_backup_warning_count(self) -> Optional[int]:
        return self._last_field("last_backup_warning_count", lambda entry: entry.warning_count)

    @property
    def last_backup_method(self) -> Optional[str]:
        return self._last_field(
            "last_backup_method", lambda entry: entry.method.value if entry.method else None
        )

    @property
    def last_backup_path(self) -> Optional[str]:
        return self._last_field("last_backup_path", lambda entry: entry.backup_directory)

    @property
    def last_backup_requestor(self) -> Optional[str]:
        return self._last_field("last_backup_requestor", lambda entry: entry.requested_by)

    @property
    def last_backup_top_component(self) -> Optional[str]:
        return self._last_field("last_backup_top_component", lambda entry: entry.top_component)

    @property
    def last_backup_start(self) -> Optional[datetime]:
        return self._last_field("last_backup_start", lambda entry: entry.start_time)

    @property
    def last_backup_finish(self) -> Optional[datetime]:
        return self._last_field("last_backup_finish", lambda entry: entry.finish_time)

    @property
    def last_backup_duration(self) -> Optional[timedelta]:
        start = self.last_backup_start
        finish = self.last_backup_finish
        if start is None or finish is None:
            return None
        try:
            return finish - start
        except TypeError:
            # one timestamp carries an offset and the other does not
            return None

    def __repr__(self) -> str:
        return f"BackupCatalog(root={str(self._root)!r})"


__all__ = ["BackupCatalog"]
