"""Filesystem helpers shared by the catalog facade and the grooming engines."""
from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Optional

from .paths import to_long_path

COPY_BUFFER_BYTES = 512 * 1024


def _raise(error: OSError) -> None:
    raise error


def sum_file_sizes(root: Path) -> Optional[int]:
    """Return the total size of every file below *root*, or ``None`` when it cannot be read."""

    base = Path(root)
    if not base.is_dir():
        return None
    total = 0
    try:
        for current, _dirs, files in os.walk(to_long_path(base), onerror=_raise):
            for name in files:
                total += os.stat(os.path.join(current, name)).st_size
    except OSError:
        return None
    return total


def copy_tree(source: Path, destination: Path) -> int:
    """Copy *source* into *destination*, files first and then subdirectories.

    Existing files at the destination are overwritten. Returns the number of
    bytes copied.
    """

    source = Path(source)
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)
    copied = 0
    children = sorted(source.iterdir(), key=lambda item: item.name)
    for item in children:
        if item.is_file():
            target = destination / item.name
            shutil.copy2(to_long_path(item), to_long_path(target))
            copied += target.stat().st_size
    for item in children:
        if item.is_dir():
            copied += copy_tree(item, destination / item.name)
    return copied


def remove_tree(path: Path) -> bool:
    """Delete *path* recursively. Returns ``False`` when it was already gone."""

    target = Path(path)
    if not target.exists():
        return False
    shutil.rmtree(to_long_path(target))
    return True


__all__ = ["COPY_BUFFER_BYTES", "copy_tree", "remove_tree", "sum_file_sizes"]
