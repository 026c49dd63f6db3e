"""In-memory model of the ``spbrtoc.xml`` run history document."""
from __future__ import annotations

import copy
import os
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, List, Optional
from xml.etree import ElementTree as ET

from .errors import IndexFormatError

ROOT_TAG = "SPBackupRestoreHistory"
ENTRY_TAG = "SPHistoryObject"

_TIME_FORMATS = (
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
    "%Y-%m-%d %H:%M:%S",
)


class RunMethod(str, Enum):
    FULL = "Full"
    DIFFERENTIAL = "Differential"


def _parse_bool(text: Optional[str]) -> bool:
    if text is None:
        return False
    return text.strip().upper() == "TRUE"


def parse_timestamp(text: Optional[str]) -> Optional[datetime]:
    """Parse a run timestamp as written by the backup producer."""

    if not text or not text.strip():
        return None
    value = text.strip()
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass
    for pattern in _TIME_FORMATS:
        try:
            return datetime.strptime(value, pattern)
        except ValueError:
            continue
    return None


class RunEntry:
    """Typed view over one ``SPHistoryObject`` element.

    Values are read from the element on every access so that the element stays
    the single source of truth; elements this class does not know about are
    never touched.
    """

    __slots__ = ("_element",)

    def __init__(self, element: ET.Element) -> None:
        self._element = element

    @property
    def element(self) -> ET.Element:
        return self._element

    def _text(self, tag: str) -> Optional[str]:
        child = self._element.find(tag)
        if child is None:
            return None
        return child.text or ""

    def _int(self, tag: str, *, default: Optional[int]) -> int:
        text = self._text(tag)
        if text is None or not text.strip():
            if default is None:
                raise IndexFormatError(f"run {self.id!r} has no {tag}")
            return default
        try:
            return int(text.strip())
        except ValueError as exc:
            raise IndexFormatError(f"run {self.id!r} has a non-integer {tag}: {text!r}") from exc

    # ------------------------------------------------------------------
    @property
    def id(self) -> Optional[str]:
        value = self._text("SPId")
        return value.strip() if value else value

    @property
    def directory_number(self) -> int:
        return self._int("SPDirectoryNumber", default=None)

    @property
    def directory_name(self) -> Optional[str]:
        value = self._text("SPDirectoryName")
        if value is None:
            return None
        return value.strip() or None

    @property
    def backup_directory(self) -> Optional[str]:
        return self._text("SPBackupDirectory")

    @backup_directory.setter
    def backup_directory(self, value: str) -> None:
        child = self._element.find("SPBackupDirectory")
        if child is None:
            child = ET.SubElement(self._element, "SPBackupDirectory")
        child.text = value

    @property
    def method(self) -> Optional[RunMethod]:
        text = self._text("SPBackupMethod")
        if text is None:
            return None
        normalized = text.strip().upper()
        if normalized == "FULL":
            return RunMethod.FULL
        if normalized == "DIFFERENTIAL":
            return RunMethod.DIFFERENTIAL
        return None

    @property
    def is_full(self) -> bool:
        return self.method is RunMethod.FULL

    @property
    def is_differential(self) -> bool:
        return self.method is RunMethod.DIFFERENTIAL

    @property
    def is_backup(self) -> bool:
        return _parse_bool(self._text("SPIsBackup"))

    @property
    def configuration_only(self) -> bool:
        return _parse_bool(self._text("SPConfigurationOnly"))

    @property
    def is_content_backup(self) -> bool:
        """True for backups that carry content, i.e. not configuration-only."""
        return self.is_backup and not self.configuration_only

    @property
    def error_count(self) -> int:
        return self._int("SPErrorCount", default=0)

    @property
    def warning_count(self) -> int:
        return self._int("SPWarningCount", default=0)

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    @property
    def start_time(self) -> Optional[datetime]:
        return parse_timestamp(self._text("SPStartTime"))

    @property
    def finish_time(self) -> Optional[datetime]:
        return parse_timestamp(self._text("SPFinishTime"))

    @property
    def requested_by(self) -> Optional[str]:
        return self._text("SPRequestedBy")

    @property
    def top_component(self) -> Optional[str]:
        return self._text("SPTopComponent")

    def __repr__(self) -> str:
        return (
            f"RunEntry(id={self.id!r}, number={self._text('SPDirectoryNumber')!r}, "
            f"name={self.directory_name!r}, method={self._text('SPBackupMethod')!r})"
        )


class CatalogIndex:
    """Snapshot of the run history held in one index document."""

    def __init__(self, root: Optional[ET.Element] = None) -> None:
        self._root = root if root is not None else ET.Element(ROOT_TAG)

    # ------------------------------------------------------------------
    @classmethod
    def empty(cls) -> "CatalogIndex":
        return cls()

    @classmethod
    def from_bytes(cls, data: bytes) -> "CatalogIndex":
        try:
            root = ET.fromstring(data)
        except ET.ParseError as exc:
            raise IndexFormatError(f"index document is not well-formed XML: {exc}") from exc
        if root.tag != ROOT_TAG:
            raise IndexFormatError(f"index root element is <{root.tag}>, expected <{ROOT_TAG}>")
        return cls(root)

    @classmethod
    def load(cls, path: Path) -> "CatalogIndex":
        """Read the index document at *path*. ``OSError`` propagates unchanged."""
        with Path(path).open("rb") as handle:
            return cls.from_bytes(handle.read())

    def to_bytes(self) -> bytes:
        root = copy.deepcopy(self._root)
        ET.indent(root, space="  ")
        return ET.tostring(root, encoding="utf-8", xml_declaration=True)

    def save(self, path: Path) -> None:
        """Write the document to *path*, replacing any previous file in one step."""
        target = Path(path)
        staging = target.with_name(target.name + ".tmp")
        try:
            with staging.open("wb") as handle:
                handle.write(self.to_bytes())
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(staging, target)
        except BaseException:
            staging.unlink(missing_ok=True)
            raise

    def copy(self) -> "CatalogIndex":
        return CatalogIndex(copy.deepcopy(self._root))

    # ------------------------------------------------------------------
    @property
    def root(self) -> ET.Element:
        return self._root

    @property
    def entries(self) -> List[RunEntry]:
        return [RunEntry(element) for element in self._root]

    def __iter__(self) -> Iterator[RunEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self._root)

    def backups(self) -> List[RunEntry]:
        return [entry for entry in self.entries if entry.is_backup]

    def content_backups(self) -> List[RunEntry]:
        return [entry for entry in self.entries if entry.is_content_backup]

    def eligible_fulls(self, *, ignore_errors: bool = False) -> List[RunEntry]:
        """Full content backups ordered newest first.

        Unless *ignore_errors* is set, Full runs that reported errors are not
        eligible.
        """
        fulls = [
            entry
            for entry in self.content_backups()
            if entry.is_full and (ignore_errors or not entry.has_errors)
        ]
        fulls.sort(key=lambda entry: entry.directory_number, reverse=True)
        return fulls

    def append(self, entry: RunEntry) -> RunEntry:
        element = copy.deepcopy(entry.element)
        self._root.append(element)
        return RunEntry(element)

    def remove_where(self, predicate: Callable[[RunEntry], bool]) -> List[RunEntry]:
        removed = [entry for entry in self.entries if predicate(entry)]
        for entry in removed:
            self._root.remove(entry.element)
        return removed


__all__ = [
    "CatalogIndex",
    "ENTRY_TAG",
    "ROOT_TAG",
    "RunEntry",
    "RunMethod",
    "parse_timestamp",
]
