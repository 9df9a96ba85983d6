from __future__ import annotations

import json
import logging
import math
from collections.abc import Iterable, Iterator
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, TextIO

import pandas as pd

from ..models.sheet import EMPTY, Cell, CellKind, Sheet

"""Sheet extractor: one named workbook sheet -> line-delimited JSON objects.

A sheet has no stored schema, so extraction is a one-way lossy projection:

    Number  -> JSON number   (no int / float distinction is recovered)
    Text    -> JSON string
    Boolean -> JSON boolean
    Empty   -> JSON null

Workbooks do not store empty strings: an empty Text cell is written as a
blank cell and is read back as Empty (JSON null).

Coercion is per cell; no type unification happens across rows. Callers
that need the original logical types must carry the schema out-of-band.
"""

__all__ = [
    "SheetNotFoundError",
    "DuplicateFieldNameError",
    "RowShapeError",
    "read_sheet",
    "cell_from_raw",
    "cell_to_json",
    "header_names",
    "extract",
    "to_json_line",
    "write_json_lines",
]

logger = logging.getLogger(__name__)


class SheetNotFoundError(Exception):
    """Raised when the workbook or the requested sheet does not exist."""


class DuplicateFieldNameError(Exception):
    """Raised when the header row repeats a field name."""


class RowShapeError(Exception):
    """Raised when a data row holds values beyond the header width."""


def cell_from_raw(value: Any) -> Cell:
    """Map a raw workbook value (as loaded by pandas/openpyxl) to a Cell.

    Date and time values written by other tools become ISO-8601 text.
    """
    if value is None:
        return EMPTY
    if isinstance(value, bool):
        return Cell.boolean(value)
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        # numpy scalars
        return cell_from_raw(value.item())
    if isinstance(value, float):
        if math.isnan(value):
            return EMPTY
        return Cell.number(value)
    if isinstance(value, int):
        return Cell.number(value)
    if isinstance(value, str):
        return Cell.text(value)
    if isinstance(value, (datetime, date, time)):
        return Cell.text(value.isoformat())
    if pd.isna(value):
        return EMPTY
    return Cell.text(str(value))


def read_sheet(path: Path, sheet_name: str) -> Sheet:
    """Load one sheet's cell grid without header or type inference.

    Only truly empty cells become Empty; strings such as "NA" or "null" stay text.
    """
    path = Path(path)
    if not path.exists():
        raise SheetNotFoundError(f"workbook not found: {path}")
    with pd.ExcelFile(path, engine="openpyxl") as xls:
        names = [str(n) for n in xls.sheet_names]
        if sheet_name not in names:
            raise SheetNotFoundError(f"sheet {sheet_name!r} not found in {path} (sheets: {names})")
        df = xls.parse(
            sheet_name,
            header=None,
            dtype=object,
            keep_default_na=False,
            na_values=[""],
        )
    sheet = Sheet(name=sheet_name)
    for raw in df.itertuples(index=False, name=None):
        sheet.append([cell_from_raw(v) for v in raw])
    logger.debug("read %d rows from %s!%s", len(sheet), path, sheet_name)
    return sheet


def cell_to_json(cell: Cell) -> Any:
    if cell.kind is CellKind.EMPTY:
        return None
    if cell.kind is CellKind.NUMBER:
        return cell.value
    if cell.kind is CellKind.BOOLEAN:
        return bool(cell.value)
    return str(cell.value)


def _label(cell: Cell, position: int) -> str:
    if cell.kind is CellKind.EMPTY:
        return f"col{position}"
    if cell.kind is CellKind.TEXT:
        return cell.value
    return json.dumps(cell_to_json(cell))


def _trimmed_width(row: list[Cell]) -> int:
    width = len(row)
    while width and row[width - 1].is_empty:
        width -= 1
    return width


def header_names(header: list[Cell]) -> list[str]:
    """Field names from a header row; trailing empty cells are grid padding."""
    names = [_label(c, i) for i, c in enumerate(header[:_trimmed_width(header)])]
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise DuplicateFieldNameError(f"duplicate header field: {name!r}")
        seen.add(name)
    return names


def extract(sheet: Sheet, has_header_row: bool = True) -> Iterator[dict[str, Any]]:
    """Yield one JSON-ready dict per data row, in sheet order.

    With a header row, short rows are padded with null and a row with a
    non-empty cell beyond the header width raises RowShapeError. Without one,
    fields are named col0, col1, ... over the full grid width.
    """
    rows = iter(sheet.rows)
    if has_header_row:
        header = next(rows, None)
        if header is None:
            return
        names = header_names(header)
        width = len(names)
        for number, row in enumerate(rows, start=2):
            if _trimmed_width(row) > width:
                raise RowShapeError(
                    f"sheet {sheet.name!r} row {number} has {_trimmed_width(row)} values, "
                    f"header has {width}"
                )
            cells = row[:width] + [EMPTY] * (width - len(row))
            yield {name: cell_to_json(c) for name, c in zip(names, cells)}
    else:
        width = sheet.width
        names = [f"col{i}" for i in range(width)]
        for row in rows:
            cells = row + [EMPTY] * (width - len(row))
            yield {name: cell_to_json(c) for name, c in zip(names, cells)}


def to_json_line(record: dict[str, Any]) -> str:
    return json.dumps(record, ensure_ascii=False, separators=(",", ":"))


def write_json_lines(records: Iterable[dict[str, Any]], sink: TextIO) -> int:
    """Write one JSON object per line; return the number of records written."""
    count = 0
    for record in records:
        sink.write(to_json_line(record))
        sink.write("\n")
        count += 1
    return count
