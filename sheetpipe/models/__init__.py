"""Domain models for sheetpipe.

Schema, record batches and the sheet cell grid shared by every pipeline stage.
"""

from .batch import ColumnBuffer, RecordBatch, batches_from_rows
from .schema import (
    ColumnDescriptor,
    LogicalType,
    Schema,
    SchemaError,
    SchemaMismatchError,
    merge,
    validate,
)
from .sheet import EMPTY, Cell, CellKind, Sheet
from .stage_result import StageResult

__all__ = [
    # Schema model
    "ColumnDescriptor",
    "LogicalType",
    "Schema",
    "SchemaError",
    "SchemaMismatchError",
    "merge",
    "validate",
    # Columnar data
    "ColumnBuffer",
    "RecordBatch",
    "batches_from_rows",
    # Sheet grid
    "Cell",
    "CellKind",
    "EMPTY",
    "Sheet",
    # Metrics
    "StageResult",
]
