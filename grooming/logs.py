"""JSONL event log for grooming, export and relocation runs.

Every record is one JSON object per line in ``<working_dir>/logs/grooming.jsonl``
with at least ``event``, ``ok`` and ``ts``. Records written through a logger
returned by :meth:`GroomingLogger.bound` also carry the bound fields, which is
how each line names the catalog it concerns.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Mapping, Optional

from core.paths import get_logs_dir

LOGGER = logging.getLogger("backupcatalog.grooming")

_LEVEL_OK = {True: logging.INFO, False: logging.ERROR}


class GroomingLogger:
    """Append grooming events to a shared JSONL file."""

    def __init__(
        self,
        working_dir: Path,
        *,
        context: Optional[Mapping[str, Any]] = None,
        _lock: Optional[Lock] = None,
    ) -> None:
        self._working_dir = Path(working_dir)
        self._log_path = get_logs_dir(self._working_dir) / "grooming.jsonl"
        self._log_path.parent.mkdir(parents=True, exist_ok=True)
        self._context: Dict[str, Any] = dict(context or {})
        self._lock = _lock or Lock()

    @property
    def log_path(self) -> Path:
        return self._log_path

    @property
    def context(self) -> Dict[str, Any]:
        return dict(self._context)

    def bound(self, **fields: Any) -> "GroomingLogger":
        """Return a logger writing to the same file with ``fields`` on every record."""
        merged = {**self._context, **fields}
        return GroomingLogger(self._working_dir, context=merged, _lock=self._lock)

    def _append(self, record: Dict[str, Any], level: int) -> None:
        # Explicit fields win over bound context.
        payload = {**self._context, **record}
        payload.setdefault("ts", datetime.now(timezone.utc).isoformat())
        line = json.dumps(payload, sort_keys=True, default=str)
        with self._lock:
            with self._log_path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        LOGGER.log(level, "%s", line)

    def event(self, *, event: str, phase: str, ok: bool, **extra: Any) -> None:
        self._append({"event": event, "phase": phase, "ok": bool(ok), **extra}, _LEVEL_OK[bool(ok)])

    def info(self, event: str, **extra: Any) -> None:
        self._append({**extra, "event": event, "ok": True}, logging.INFO)

    def warning(self, event: str, **extra: Any) -> None:
        self._append({**extra, "event": event, "ok": False}, logging.WARNING)

    def error(self, event: str, **extra: Any) -> None:
        self._append({**extra, "event": event, "ok": False}, logging.ERROR)


__all__ = ["GroomingLogger"]
