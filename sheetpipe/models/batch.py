from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from itertools import islice
from typing import Any

from .schema import LogicalType, Schema, SchemaError

"""Record batch model: one columnar chunk of rows sharing a schema.

Each column is a ColumnBuffer holding a validity list (True = present) and a
values list of the same length. Null slots carry a type-specific placeholder
that must never be read as data.
"""

__all__ = [
    "ColumnBuffer",
    "RecordBatch",
    "batches_from_rows",
    "placeholder_for",
    "INT64_MIN",
    "INT64_MAX",
]

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_PLACEHOLDERS: dict[LogicalType, Any] = {
    LogicalType.INT64: 0,
    LogicalType.FLOAT64: 0.0,
    LogicalType.BOOLEAN: False,
    LogicalType.UTF8: "",
    LogicalType.TIMESTAMP_MILLIS: 0,
    LogicalType.NULL: None,
}


def placeholder_for(logical_type: LogicalType) -> Any:
    return _PLACEHOLDERS[logical_type]


def _check_value(logical_type: LogicalType, value: Any, column: str) -> Any:
    """Validate a present value against its logical type and normalize it."""
    if logical_type in (LogicalType.INT64, LogicalType.TIMESTAMP_MILLIS):
        # bool is an int subclass but never an integer column value
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"column {column!r}: expected int, got {type(value).__name__}")
        if not INT64_MIN <= value <= INT64_MAX:
            raise ValueError(f"column {column!r}: {value} does not fit in 64 bits")
        return value
    if logical_type is LogicalType.FLOAT64:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"column {column!r}: expected float, got {type(value).__name__}")
        return float(value)
    if logical_type is LogicalType.BOOLEAN:
        if not isinstance(value, bool):
            raise ValueError(f"column {column!r}: expected bool, got {type(value).__name__}")
        return value
    if logical_type is LogicalType.UTF8:
        if not isinstance(value, str):
            raise ValueError(f"column {column!r}: expected str, got {type(value).__name__}")
        return value
    raise ValueError(f"column {column!r}: null column cannot hold {value!r}")


@dataclass(frozen=True)
class ColumnBuffer:
    validity: list[bool]
    values: list[Any]

    def __len__(self) -> int:
        return len(self.values)

    def is_valid(self, row: int) -> bool:
        return self.validity[row]

    def get(self, row: int) -> Any:
        """Return the value at `row`, or None for a null slot."""
        return self.values[row] if self.validity[row] else None

    @property
    def null_count(self) -> int:
        return self.validity.count(False)


@dataclass(frozen=True)
class RecordBatch:
    """Columnar chunk of `row_count` rows.

    The constructor checks the shape invariants: one buffer per schema column,
    every buffer exactly `row_count` long, and no nulls in non-nullable columns.
    """

    schema: Schema
    row_count: int
    columns: tuple[ColumnBuffer, ...]

    def __post_init__(self) -> None:
        if self.row_count < 0:
            raise ValueError("row_count must be >= 0")
        if len(self.columns) != len(self.schema.columns):
            raise ValueError(
                f"batch has {len(self.columns)} columns, schema has {len(self.schema.columns)}"
            )
        for descriptor, buffer in zip(self.schema.columns, self.columns):
            if len(buffer.validity) != self.row_count or len(buffer.values) != self.row_count:
                raise ValueError(
                    f"column {descriptor.name!r} length {len(buffer.values)} "
                    f"!= row_count {self.row_count}"
                )
            if not descriptor.nullable and buffer.null_count:
                raise SchemaError(f"null value in non-nullable column {descriptor.name!r}")

    @classmethod
    def from_rows(cls, schema: Schema, rows: Iterable[Sequence[Any]]) -> RecordBatch:
        """Build a batch from row tuples, `None` marking a null."""
        width = len(schema.columns)
        validity: list[list[bool]] = [[] for _ in range(width)]
        values: list[list[Any]] = [[] for _ in range(width)]
        count = 0
        for row in rows:
            if len(row) != width:
                raise ValueError(f"row {count} has {len(row)} values, expected {width}")
            for i, (descriptor, value) in enumerate(zip(schema.columns, row)):
                if value is None:
                    validity[i].append(False)
                    values[i].append(placeholder_for(descriptor.logical_type))
                else:
                    validity[i].append(True)
                    values[i].append(_check_value(descriptor.logical_type, value, descriptor.name))
            count += 1
        columns = tuple(ColumnBuffer(v, vals) for v, vals in zip(validity, values))
        return cls(schema=schema, row_count=count, columns=columns)

    @classmethod
    def empty(cls, schema: Schema) -> RecordBatch:
        return cls(schema=schema, row_count=0, columns=tuple(ColumnBuffer([], []) for _ in schema.columns))

    def __len__(self) -> int:
        return self.row_count

    def column(self, key: int | str) -> ColumnBuffer:
        index = key if isinstance(key, int) else self.schema.index_of(key)
        return self.columns[index]

    def value(self, row: int, col: int) -> Any:
        return self.columns[col].get(row)

    def rows(self) -> Iterator[tuple[Any, ...]]:
        for row in range(self.row_count):
            yield tuple(buffer.get(row) for buffer in self.columns)

    def slice(self, offset: int, length: int) -> RecordBatch:
        end = min(offset + length, self.row_count)
        offset = min(offset, end)
        columns = tuple(
            ColumnBuffer(buffer.validity[offset:end], buffer.values[offset:end])
            for buffer in self.columns
        )
        return RecordBatch(schema=self.schema, row_count=end - offset, columns=columns)

    def same_content(self, other: RecordBatch) -> bool:
        """Compare row values and null positions, ignoring placeholders.

        NaN compares equal to NaN so float columns survive a round-trip check.
        """
        if self.row_count != other.row_count or self.schema != other.schema:
            return False
        for left, right in zip(self.rows(), other.rows()):
            for a, b in zip(left, right):
                if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
                    continue
                if a != b or type(a) is not type(b):
                    return False
        return True


def batches_from_rows(
    schema: Schema, rows: Iterable[Sequence[Any]], batch_rows: int = 1024
) -> Iterator[RecordBatch]:
    """Lazily chunk row tuples into batches of at most `batch_rows` rows.

    Never yields an empty trailing batch; an empty input yields nothing.
    """
    if batch_rows < 1:
        raise ValueError("batch_rows must be >= 1")
    iterator = iter(rows)
    while True:
        chunk = list(islice(iterator, batch_rows))
        if not chunk:
            return
        yield RecordBatch.from_rows(schema, chunk)
