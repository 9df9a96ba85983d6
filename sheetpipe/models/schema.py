from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

"""Schema model: ordered, named, typed column descriptors.

A Schema is fixed for the lifetime of a stream. Every record batch of one
stream refers to the same Schema, and `merge` is the single place where two
schemas are checked for structural identity.
"""

__all__ = [
    "LogicalType",
    "ColumnDescriptor",
    "Schema",
    "SchemaError",
    "SchemaMismatchError",
    "validate",
    "merge",
]


class SchemaError(Exception):
    """Raised when a schema is malformed (empty, unnamed or duplicate columns)."""


class SchemaMismatchError(SchemaError):
    """Raised when two schemas that must be identical diverge."""


class LogicalType(Enum):
    """Logical column types with their wire code and config name."""

    INT64 = (1, "int64")
    FLOAT64 = (2, "float64")
    BOOLEAN = (3, "boolean")
    UTF8 = (4, "utf8")
    TIMESTAMP_MILLIS = (5, "timestamp_ms")
    NULL = (6, "null")

    @property
    def code(self) -> int:
        return self.value[0]

    @property
    def type_name(self) -> str:
        return self.value[1]

    @classmethod
    def from_code(cls, code: int) -> LogicalType:
        for member in cls:
            if member.code == code:
                return member
        raise ValueError(f"unknown logical type code: {code}")

    @classmethod
    def from_name(cls, name: str) -> LogicalType:
        for member in cls:
            if member.type_name == name:
                return member
        raise ValueError(f"unknown logical type name: {name}")


@dataclass(frozen=True)
class ColumnDescriptor:
    name: str
    logical_type: LogicalType
    nullable: bool = True


@dataclass(frozen=True)
class Schema:
    """Ordered sequence of column descriptors.

    Construction does not validate; call `validate()` (or the module-level
    `validate`) before a schema is used to encode or render anything.
    """

    columns: tuple[ColumnDescriptor, ...]

    @classmethod
    def from_pairs(
        cls, pairs: Iterable[tuple[str, LogicalType] | tuple[str, LogicalType, bool]]
    ) -> Schema:
        columns = []
        for pair in pairs:
            if len(pair) == 2:
                name, logical_type = pair  # type: ignore[misc]
                columns.append(ColumnDescriptor(name, logical_type))
            else:
                name, logical_type, nullable = pair  # type: ignore[misc]
                columns.append(ColumnDescriptor(name, logical_type, nullable))
        return cls(tuple(columns))

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.columns]

    def __len__(self) -> int:
        return len(self.columns)

    def index_of(self, name: str) -> int:
        for i, column in enumerate(self.columns):
            if column.name == name:
                return i
        raise KeyError(name)

    def validate(self) -> Schema:
        validate(self)
        return self


def validate(schema: Schema) -> None:
    """Fail with SchemaError unless the schema can describe a stream.

    Rules:
    1. At least one column
    2. Every name non-empty
    3. Names unique
    4. NULL-typed columns nullable
    """
    if not schema.columns:
        raise SchemaError("schema has no columns")
    seen: set[str] = set()
    for i, column in enumerate(schema.columns):
        if not isinstance(column.name, str) or column.name == "":
            raise SchemaError(f"column {i} has an empty name")
        if column.name in seen:
            raise SchemaError(f"duplicate column name: {column.name!r}")
        seen.add(column.name)
        if not isinstance(column.logical_type, LogicalType):
            raise SchemaError(f"column {column.name!r} has no logical type")
        if column.logical_type is LogicalType.NULL and not column.nullable:
            raise SchemaError(f"column {column.name!r} of type null must be nullable")


def merge(a: Schema, b: Schema) -> Schema:
    """Return `a` if `b` is structurally identical, else raise SchemaMismatchError.

    Schemas are fixed per stream, so no widening or column union is attempted.
    """
    if a is b:
        return a
    if len(a.columns) != len(b.columns):
        raise SchemaMismatchError(
            f"column count differs: {len(a.columns)} != {len(b.columns)}"
        )
    for i, (left, right) in enumerate(zip(a.columns, b.columns)):
        if left != right:
            raise SchemaMismatchError(
                f"column {i} differs: "
                f"{left.name}:{left.logical_type.type_name}"
                f"{'' if left.nullable else ' not null'} != "
                f"{right.name}:{right.logical_type.type_name}"
                f"{'' if right.nullable else ' not null'}"
            )
    return a
