"""Public API for catalog grooming, export and status reporting."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from catalog.errors import InvalidParametersError, NotACatalogError
from catalog.model import BackupCatalog
from catalog.report import CatalogStatus, collect_status, render_status_body, render_subject, should_notify
from core.files import COPY_BUFFER_BYTES
from core.logging_utils import configure_json_logging
from core.paths import resolve_working_dir
from core.settings import load_settings, merge_defaults

from .export import default_export_name, export_catalog
from .logs import GroomingLogger
from .relocate import update_catalog_path as _update_catalog_path
from .retention import purge_catalog, trim_by_count, trim_by_size
from .types import ExportMode, ExportResult, GroomResult, TrimSummary


class CatalogService:
    """Coordinate grooming, export, relocation and status workflows."""

    def __init__(
        self,
        *,
        working_dir: Optional[Path] = None,
        settings: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._working_dir = Path(working_dir or resolve_working_dir())
        if settings is None:
            self._settings = load_settings(self._working_dir)
        else:
            self._settings = merge_defaults(dict(settings))
        self._logger = GroomingLogger(self._working_dir)
        logging_cfg = self._section("logging")
        if logging_cfg.get("json_file"):
            configure_json_logging(
                "backupcatalog",
                working_dir=self._working_dir,
                level=str(logging_cfg.get("level") or "INFO").upper(),
            )

    # ------------------------------------------------------------------
    @property
    def working_dir(self) -> Path:
        return self._working_dir

    @property
    def logger(self) -> GroomingLogger:
        return self._logger

    def _section(self, name: str) -> Dict[str, Any]:
        raw = self._settings.get(name)
        return raw if isinstance(raw, dict) else {}

    def _ignore_errors(self, value: Optional[bool]) -> bool:
        if value is not None:
            return bool(value)
        return bool(self._section("grooming").get("ignore_errors", False))

    # ------------------------------------------------------------------
    def open_catalog(self, root: str | Path) -> BackupCatalog:
        catalog = BackupCatalog.load(root)
        if not catalog.is_valid():
            raise NotACatalogError(f"{root} is not a backup catalog")
        return catalog

    def _catalog_logger(self, catalog: BackupCatalog) -> GroomingLogger:
        return self._logger.bound(catalog=str(catalog.root))

    # ------------------------------------------------------------------
    def groom(
        self,
        root: str | Path,
        retain_count: Optional[int] = None,
        retain_size: Optional[int] = None,
        ignore_errors: Optional[bool] = None,
    ) -> GroomResult:
        """Apply the count limit, then the size limit, to the catalog at *root*.

        Limits not given here fall back to the ``grooming`` settings. Each
        pass runs only when the catalog currently exceeds its limit.
        """

        grooming = self._section("grooming")
        if retain_count is None:
            retain_count = grooming.get("retain_count")
        if retain_size is None:
            retain_size = grooming.get("retain_size_bytes")
        if retain_count is None and retain_size is None:
            raise InvalidParametersError("groom needs a retain count, a retain size or both")
        if retain_count is not None and int(retain_count) < 1:
            raise InvalidParametersError(f"retain count must be at least 1, got {retain_count}")
        if retain_size is not None and int(retain_size) < 0:
            raise InvalidParametersError(f"retain size must not be negative, got {retain_size}")
        ignore = self._ignore_errors(ignore_errors)

        catalog = self.open_catalog(root)
        log = self._catalog_logger(catalog)
        result = GroomResult()
        if retain_count is not None:
            fulls = catalog.full_backup_count
            if fulls is not None and fulls > int(retain_count):
                result.count = trim_by_count(
                    catalog, int(retain_count), ignore_errors=ignore, logger=log
                )
            catalog.refresh()
        if retain_size is not None:
            size = catalog.catalog_size
            if size is None or size > int(retain_size):
                result.size = trim_by_size(
                    catalog, int(retain_size), ignore_errors=ignore, logger=log
                )
        return result

    def purge(self, root: str | Path) -> TrimSummary:
        catalog = self.open_catalog(root)
        return purge_catalog(catalog, logger=self._catalog_logger(catalog))

    # ------------------------------------------------------------------
    def export(
        self,
        root: str | Path,
        destination: str | Path,
        name: Optional[str] = None,
        include_count: Optional[int] = None,
        exclude_count: Optional[int] = None,
        ignore_errors: Optional[bool] = None,
        no_compression: Optional[bool] = None,
        update_catalog_path: Optional[bool] = None,
    ) -> ExportResult:
        """Export runs of the catalog at *root* into *destination*.

        *include_count* exports the oldest N Full chains, *exclude_count*
        holds back the newest N; giving neither exports every run.
        """

        if include_count is not None and exclude_count is not None:
            raise InvalidParametersError("include_count and exclude_count cannot be combined")
        if include_count is not None:
            mode, count = ExportMode.INCLUDE_OLDEST, int(include_count)
        elif exclude_count is not None:
            mode, count = ExportMode.EXCLUDE_NEWEST, int(exclude_count)
        else:
            mode, count = ExportMode.ALL, 0
        if mode is not ExportMode.ALL and count < 1:
            raise InvalidParametersError(f"export count must be positive, got {count}")

        export_cfg = self._section("export")
        if name is None:
            template = export_cfg.get("name_template") or "BackupCatalogExport_{stamp}"
            name = default_export_name(template=str(template))
        if no_compression is None:
            no_compression = not bool(export_cfg.get("compression", True))
        if update_catalog_path is None:
            update_catalog_path = bool(export_cfg.get("update_catalog_path", False))
        try:
            buffer_size = int(export_cfg.get("zip_buffer_bytes") or COPY_BUFFER_BYTES)
        except (TypeError, ValueError):
            buffer_size = COPY_BUFFER_BYTES

        catalog = self.open_catalog(root)
        try:
            return export_catalog(
                catalog,
                Path(destination),
                name,
                mode=mode,
                count=count,
                ignore_errors=self._ignore_errors(ignore_errors),
                no_compression=bool(no_compression),
                update_catalog_path=bool(update_catalog_path),
                buffer_size=buffer_size,
                logger=self._catalog_logger(catalog),
            )
        finally:
            catalog.refresh()

    # ------------------------------------------------------------------
    def update_catalog_path(self, root: str | Path, new_root: Optional[str | Path] = None) -> int:
        catalog = self.open_catalog(root)
        return _update_catalog_path(catalog, new_root, logger=self._catalog_logger(catalog))

    # ------------------------------------------------------------------
    def status(self, root: str | Path) -> CatalogStatus:
        return collect_status(BackupCatalog.load(root))

    def status_subject(self, status: CatalogStatus) -> str:
        report = self._section("report")
        template = report.get("subject_template") or "Backup status for {catalog_path}"
        return render_subject(status, template=str(template))

    def status_report(self, root: str | Path, on_error_only: bool = False) -> Optional[str]:
        """Return the notification body, or ``None`` when no notification is due."""

        status = self.status(root)
        if not should_notify(status, on_error_only=on_error_only):
            return None
        report = self._section("report")
        null_value = report.get("null_value") or "(not available)"
        return render_status_body(status, null_value=str(null_value))


__all__ = ["CatalogService"]
