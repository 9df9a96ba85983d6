from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.batch import RecordBatch
from ..models.schema import LogicalType, Schema, merge, validate
from ..models.sheet import EMPTY, Cell, CellKind, Sheet

"""Sheet renderer: record batches -> one named workbook sheet.

Coercion (logical type -> cell), applied per present value:

    Int64            Number  (|v| > 2**53 -> PrecisionLossError unless lossy)
    Float64          Number  (NaN / inf -> PrecisionLossError, lossy -> Empty)
    Boolean          Boolean
    Utf8             Text    (stored as a string, even when it starts with "=")
    TimestampMillis  Number (ms) or Text (ISO-8601 UTC) per timestamp_format
    Null / null slot Empty

Rows keep batch order; batch boundaries do not show in the sheet. The sheet
is persisted with pandas' ExcelWriter (openpyxl engine) so that any other
sheets already in the target workbook are kept.
"""

__all__ = [
    "PrecisionLossError",
    "RenderOptions",
    "coerce_value",
    "render",
    "write_sheet",
    "validate_sheet_name",
    "MAX_EXACT_INT",
]

logger = logging.getLogger(__name__)

# Largest magnitude at which every integer is exactly representable as a double
MAX_EXACT_INT = 2**53

TIMESTAMP_FORMATS = ("number", "iso")

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_INVALID_SHEET_CHARS = re.compile(r"[\[\]:*?/\\]")


class PrecisionLossError(Exception):
    """Raised when a value cannot be stored in a cell without losing information."""


@dataclass(frozen=True)
class RenderOptions:
    include_header: bool = True
    timestamp_format: str = "number"  # number | iso
    lossy: bool = False

    def __post_init__(self) -> None:
        if self.timestamp_format not in TIMESTAMP_FORMATS:
            raise ValueError(
                f"timestamp_format must be one of {TIMESTAMP_FORMATS}, got {self.timestamp_format!r}"
            )


def _exact_number(value: int, options: RenderOptions, what: str) -> Cell:
    if abs(value) > MAX_EXACT_INT:
        if not options.lossy:
            raise PrecisionLossError(f"{what} {value} is not exactly representable as a double")
        return Cell.number(float(value))
    return Cell.number(value)


def format_timestamp_millis(value: int) -> str:
    """Render epoch milliseconds as ISO-8601 UTC with millisecond precision."""
    ts = _EPOCH + timedelta(milliseconds=value)
    return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _coerce_int64(value: Any, options: RenderOptions) -> Cell:
    return _exact_number(value, options, "int64")


def _coerce_float64(value: Any, options: RenderOptions) -> Cell:
    if math.isnan(value) or math.isinf(value):
        if not options.lossy:
            raise PrecisionLossError(f"float64 {value} cannot be stored in a cell")
        return EMPTY
    return Cell.number(value)


def _coerce_boolean(value: Any, options: RenderOptions) -> Cell:
    return Cell.boolean(value)


def _coerce_utf8(value: Any, options: RenderOptions) -> Cell:
    return Cell.text(value)


def _coerce_timestamp(value: Any, options: RenderOptions) -> Cell:
    if options.timestamp_format == "iso":
        try:
            return Cell.text(format_timestamp_millis(value))
        except OverflowError as e:
            if not options.lossy:
                raise PrecisionLossError(f"timestamp {value} ms is outside the datetime range") from e
            return _exact_number(value, options, "timestamp")
    return _exact_number(value, options, "timestamp")


def _coerce_null(value: Any, options: RenderOptions) -> Cell:
    return EMPTY


_COERCIONS: dict[LogicalType, Callable[[Any, RenderOptions], Cell]] = {
    LogicalType.INT64: _coerce_int64,
    LogicalType.FLOAT64: _coerce_float64,
    LogicalType.BOOLEAN: _coerce_boolean,
    LogicalType.UTF8: _coerce_utf8,
    LogicalType.TIMESTAMP_MILLIS: _coerce_timestamp,
    LogicalType.NULL: _coerce_null,
}


def coerce_value(logical_type: LogicalType, value: Any, options: RenderOptions | None = None) -> Cell:
    """Map one logical value to a cell. `None` (null slot) is always Empty."""
    if value is None:
        return EMPTY
    return _COERCIONS[logical_type](value, options or RenderOptions())


def validate_sheet_name(name: str) -> str:
    if not name or len(name) > 31:
        raise ValueError(f"sheet name must be 1-31 characters: {name!r}")
    if _INVALID_SHEET_CHARS.search(name):
        raise ValueError(f"sheet name contains an invalid character: {name!r}")
    if name.startswith("'") or name.endswith("'"):
        raise ValueError(f"sheet name must not start or end with an apostrophe: {name!r}")
    return name


def render_batch(batch: RecordBatch, options: RenderOptions) -> list[list[Cell]]:
    types = [c.logical_type for c in batch.schema.columns]
    return [
        [coerce_value(t, v, options) for t, v in zip(types, row)]
        for row in batch.rows()
    ]


def render(
    schema: Schema,
    batches: Iterable[RecordBatch],
    sheet_name: str,
    options: RenderOptions | None = None,
    on_batch: Callable[[RecordBatch], None] | None = None,
) -> Sheet:
    """Materialize a batch sequence as a Sheet.

    The header row is taken verbatim from the schema and is written even for
    a stream with zero batches. `on_batch` is called after each batch is
    rendered (progress / metrics hook).
    """
    options = options or RenderOptions()
    validate(schema)
    validate_sheet_name(sheet_name)
    sheet = Sheet(name=sheet_name)
    if options.include_header:
        sheet.append([Cell.text(name) for name in schema.names])
    for batch in batches:
        merge(schema, batch.schema)
        sheet.rows.extend(render_batch(batch, options))
        if on_batch is not None:
            on_batch(batch)
    return sheet


def _store_text_literally(worksheet: Any, sheet: Sheet) -> None:
    """Mark text cells starting with "=" as strings; openpyxl types them as formulas."""
    for r, row in enumerate(sheet.rows, start=1):
        for c, cell in enumerate(row, start=1):
            if cell.kind is CellKind.TEXT and cell.value.startswith("="):
                worksheet.cell(row=r, column=c).data_type = "s"


def write_sheet(sheet: Sheet, path: Path) -> Path:
    """Write `sheet` into the workbook at `path`, replacing a same-named sheet.

    Other sheets in an existing workbook are preserved.
    """
    validate_sheet_name(sheet.name)
    path = Path(path)
    df = pd.DataFrame(sheet.values(), dtype=object)
    if path.exists():
        logger.debug("appending sheet %r to existing workbook %s", sheet.name, path)
        writer = pd.ExcelWriter(path, engine="openpyxl", mode="a", if_sheet_exists="replace")
    else:
        writer = pd.ExcelWriter(path, engine="openpyxl", mode="w")
    with writer:
        df.to_excel(writer, sheet_name=sheet.name, header=False, index=False)
        _store_text_literally(writer.sheets[sheet.name], sheet)
    logger.debug("wrote %d rows to %s!%s", len(sheet), path, sheet.name)
    return path
