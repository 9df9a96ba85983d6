from __future__ import annotations

import logging
import os
import stat
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..excel.writer import format_timestamp_millis
from ..models.schema import ColumnDescriptor, LogicalType, Schema

"""Directory enumerator: direct children of one directory as row tuples.

Traversal is non-recursive, does not follow symlinks and yields entries
sorted by name. The column types used for `size` and `modified`
come from configuration rather than inference.
"""

__all__ = [
    "SourceError",
    "DirEntry",
    "DirentOptions",
    "SIZE_TYPES",
    "MODIFIED_TYPES",
    "scan_entries",
    "dirent_schema",
    "dirent_rows",
]

logger = logging.getLogger(__name__)

SIZE_TYPES = ("int64", "float64")
MODIFIED_TYPES = ("timestamp_ms", "utf8")


class SourceError(Exception):
    """Raised when the directory to enumerate cannot be read."""


@dataclass(frozen=True)
class DirEntry:
    path: str  # path as joined from the scanned directory
    size: int | None  # bytes; None for directories
    modified_ms: int  # mtime, epoch milliseconds
    kind: str  # file | dir | symlink | other


@dataclass(frozen=True)
class DirentOptions:
    size_type: str = "int64"
    modified_type: str = "timestamp_ms"
    include_hidden: bool = False

    def __post_init__(self) -> None:
        if self.size_type not in SIZE_TYPES:
            raise ValueError(f"size_type must be one of {SIZE_TYPES}, got {self.size_type!r}")
        if self.modified_type not in MODIFIED_TYPES:
            raise ValueError(
                f"modified_type must be one of {MODIFIED_TYPES}, got {self.modified_type!r}"
            )


def _kind(mode: int) -> str:
    if stat.S_ISLNK(mode):
        return "symlink"
    if stat.S_ISDIR(mode):
        return "dir"
    if stat.S_ISREG(mode):
        return "file"
    return "other"


def scan_entries(directory: Path | str, include_hidden: bool = False) -> Iterator[DirEntry]:
    """Return an iterator of DirEntry for the direct children of `directory`, sorted by name.

    The directory is listed eagerly so a missing or unreadable directory fails
    before any output is produced; entries are stat-ed lazily.
    """
    directory = str(directory)
    if not os.path.isdir(directory):
        raise SourceError(f"not a directory: {directory}")
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise SourceError(f"error reading directory {directory}: {e}") from e
    return _stat_entries(entries, include_hidden)


def _stat_entries(entries: list[os.DirEntry], include_hidden: bool) -> Iterator[DirEntry]:
    for entry in entries:
        if not include_hidden and entry.name.startswith("."):
            continue
        try:
            st = entry.stat(follow_symlinks=False)
        except FileNotFoundError:
            # removed between listing and stat
            logger.debug("entry vanished during scan: %s", entry.path)
            continue
        kind = _kind(st.st_mode)
        yield DirEntry(
            path=entry.path,
            size=None if kind == "dir" else st.st_size,
            modified_ms=st.st_mtime_ns // 1_000_000,
            kind=kind,
        )


def dirent_schema(options: DirentOptions | None = None) -> Schema:
    options = options or DirentOptions()
    return Schema((
        ColumnDescriptor("path", LogicalType.UTF8, nullable=False),
        ColumnDescriptor("size", LogicalType.from_name(options.size_type), nullable=True),
        ColumnDescriptor("modified", LogicalType.from_name(options.modified_type), nullable=False),
        ColumnDescriptor("kind", LogicalType.UTF8, nullable=False),
    ))


def dirent_rows(entries: Iterator[DirEntry], options: DirentOptions | None = None) -> Iterator[tuple[Any, ...]]:
    """Map entries 1:1 onto row tuples matching `dirent_schema(options)`."""
    options = options or DirentOptions()
    for e in entries:
        size: int | float | None = e.size
        if size is not None and options.size_type == "float64":
            size = float(size)
        modified: int | str = e.modified_ms
        if options.modified_type == "utf8":
            modified = format_timestamp_millis(e.modified_ms)
        yield (e.path, size, modified, e.kind)
