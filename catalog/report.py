"""Render the backup status notification body from catalog statistics."""
from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from .model import BackupCatalog

DEFAULT_NULL_VALUE = "(not available)"
DEFAULT_SUBJECT_TEMPLATE = "Backup status for {catalog_path}"


class CatalogStatus(BaseModel):
    """Snapshot of the statistics reported after a backup run."""

    catalog_path: str = Field(..., description="Root folder of the backup catalog.")
    valid: bool = Field(..., description="True when an index document exists at the catalog root.")
    full_backup_count: Optional[int] = Field(None, ge=0, description="Full content backups in the catalog.")
    differential_backup_count: Optional[int] = Field(
        None, ge=0, description="Differential content backups in the catalog."
    )
    catalog_size: Optional[int] = Field(None, ge=0, description="Bytes stored below the catalog root.")
    last_backup_path: Optional[str] = Field(None, description="Directory reference of the newest backup.")
    last_backup_top_component: Optional[str] = Field(None, description="Top-most component in the newest backup.")
    last_backup_method: Optional[str] = Field(None, description="Full or Differential.")
    last_backup_requestor: Optional[str] = Field(None, description="Account that requested the newest backup.")
    last_backup_start: Optional[datetime] = Field(None, description="Start of the newest backup.")
    last_backup_finish: Optional[datetime] = Field(None, description="Finish of the newest backup.")
    last_backup_duration: Optional[timedelta] = Field(None, description="Finish minus start.")
    last_backup_size: Optional[int] = Field(None, ge=0, description="Bytes in the newest backup set.")
    last_backup_error_count: Optional[int] = Field(None, ge=0, description="Errors reported by the newest backup.")
    last_backup_warning_count: Optional[int] = Field(
        None, ge=0, description="Warnings reported by the newest backup."
    )
    size_percent_of_last_full: Optional[Decimal] = Field(
        None, description="Newest backup size relative to the newest Full backup."
    )


def collect_status(catalog: BackupCatalog) -> CatalogStatus:
    return CatalogStatus(
        catalog_path=str(catalog.root),
        valid=catalog.is_valid(),
        full_backup_count=catalog.full_backup_count,
        differential_backup_count=catalog.differential_backup_count,
        catalog_size=catalog.catalog_size,
        last_backup_path=catalog.last_backup_path,
        last_backup_top_component=catalog.last_backup_top_component,
        last_backup_method=catalog.last_backup_method,
        last_backup_requestor=catalog.last_backup_requestor,
        last_backup_start=catalog.last_backup_start,
        last_backup_finish=catalog.last_backup_finish,
        last_backup_duration=catalog.last_backup_duration,
        last_backup_size=catalog.last_backup_size,
        last_backup_error_count=catalog.last_backup_error_count,
        last_backup_warning_count=catalog.last_backup_warning_count,
        size_percent_of_last_full=catalog.size_percent_of_last_full,
    )


def should_notify(status: CatalogStatus, *, on_error_only: bool = False) -> bool:
    if not on_error_only:
        return True
    return (status.last_backup_error_count or 0) > 0


# Formatting helpers -------------------------------------------------------
def format_bytes(value: Optional[int], *, null_value: str = DEFAULT_NULL_VALUE) -> str:
    if value is None:
        return null_value
    if value < 1024:
        return f"{value} bytes"
    if value < 1024 ** 2:
        return f"{value / 1024:.2f} KB"
    if value < 1024 ** 3:
        return f"{value / 1024 ** 2:.2f} MB"
    return f"{value / 1024 ** 3:.2f} GB"


def format_datetime(value: Optional[datetime], *, null_value: str = DEFAULT_NULL_VALUE) -> str:
    if value is None:
        return null_value
    local = value.astimezone() if value.tzinfo is not None else value
    text = f"{local.strftime('%I:%M %p').lstrip('0')} on {local.strftime('%A, %B')} {local.day}, {local.year}"
    zone = local.tzname()
    if zone:
        text += f" ({zone})"
    return text


def format_duration(value: Optional[timedelta], *, null_value: str = DEFAULT_NULL_VALUE) -> str:
    if value is None:
        return null_value
    total = max(int(value.total_seconds()), 0)
    days, remainder = divmod(total, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)
    parts: List[str] = []
    for amount, unit in ((days, "days"), (hours, "hours"), (minutes, "minutes"), (seconds, "seconds")):
        if amount > 0:
            parts.append(f"{amount} {unit}")
    if not parts:
        return "0 seconds"
    if len(parts) == 1:
        return parts[0]
    return ", ".join(parts[:-1]) + " and " + parts[-1]


def format_count(value: Optional[int], *, null_value: str = DEFAULT_NULL_VALUE) -> str:
    if value is None:
        return null_value
    return str(value)


def _text(value: Optional[str], null_value: str) -> str:
    return value if value else null_value


def render_subject(status: CatalogStatus, *, template: str = DEFAULT_SUBJECT_TEMPLATE) -> str:
    return template.format(catalog_path=status.catalog_path)


def render_status_body(
    status: CatalogStatus,
    *,
    now: Optional[datetime] = None,
    null_value: str = DEFAULT_NULL_VALUE,
) -> str:
    """Return the plain-text body of a backup status notification."""

    now = now or datetime.now()
    rows = [
        ("Backup location", _text(status.last_backup_path, null_value)),
        ("Top component", _text(status.last_backup_top_component, null_value)),
        ("Backup method", _text(status.last_backup_method, null_value)),
        ("Requested by", _text(status.last_backup_requestor, null_value)),
        ("Started", format_datetime(status.last_backup_start, null_value=null_value)),
        ("Finished", format_datetime(status.last_backup_finish, null_value=null_value)),
        ("Duration", format_duration(status.last_backup_duration, null_value=null_value)),
        ("Backup set size", format_bytes(status.last_backup_size, null_value=null_value)),
        ("Errors", format_count(status.last_backup_error_count, null_value=null_value)),
        ("Warnings", format_count(status.last_backup_warning_count, null_value=null_value)),
    ]
    width = max(len(label) for label, _ in rows) + 2
    lines = [
        f"Backup status for {status.catalog_path}",
        f"Generated at {now.strftime('%I:%M %p').lstrip('0')} on {now.strftime('%A, %B')} {now.day}, {now.year}",
        "",
    ]
    lines.extend(f"{label + ':':<{width}}{value}" for label, value in rows)
    return "\n".join(lines) + "\n"


__all__ = [
    "CatalogStatus",
    "collect_status",
    "format_bytes",
    "format_count",
    "format_datetime",
    "format_duration",
    "render_status_body",
    "render_subject",
    "should_notify",
]
