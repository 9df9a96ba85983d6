"""Row producers feeding the record batch stream."""

from .dirents import DirEntry, DirentOptions, SourceError, dirent_rows, dirent_schema, scan_entries

__all__ = [
    "DirEntry",
    "DirentOptions",
    "SourceError",
    "dirent_rows",
    "dirent_schema",
    "scan_entries",
]
