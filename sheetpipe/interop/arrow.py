from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Any, BinaryIO

import pyarrow as pa  # type: ignore[import-untyped]
import pyarrow.compute as pc  # type: ignore[import-untyped]
import pyarrow.ipc as ipc  # type: ignore[import-untyped]

from ..models.batch import RecordBatch
from ..models.schema import ColumnDescriptor, LogicalType, Schema, SchemaError, merge, validate

"""Conversion between sheetpipe record batches and pyarrow.

Lets `stream2sheet` consume Arrow IPC streams and `dirents2stream` emit them,
so either end of a pipeline can be an Arrow producer or consumer. Only flat
scalar columns are supported.
"""

__all__ = [
    "logical_type_from_arrow",
    "arrow_type_for",
    "schema_from_arrow",
    "schema_to_arrow",
    "batch_from_arrow",
    "batch_to_arrow",
    "read_arrow_stream",
    "write_arrow_stream",
]

logger = logging.getLogger(__name__)


def logical_type_from_arrow(datatype: pa.DataType) -> LogicalType:
    """Map an Arrow type onto the logical type it is read as."""
    if pa.types.is_boolean(datatype):
        return LogicalType.BOOLEAN
    if pa.types.is_signed_integer(datatype):
        return LogicalType.INT64
    if pa.types.is_unsigned_integer(datatype) and datatype.bit_width <= 32:
        return LogicalType.INT64
    if pa.types.is_floating(datatype):
        return LogicalType.FLOAT64
    if pa.types.is_string(datatype) or pa.types.is_large_string(datatype):
        return LogicalType.UTF8
    if pa.types.is_timestamp(datatype) or pa.types.is_date64(datatype):
        return LogicalType.TIMESTAMP_MILLIS
    if pa.types.is_null(datatype):
        return LogicalType.NULL
    raise SchemaError(f"unsupported arrow type: {datatype}")


def arrow_type_for(logical_type: LogicalType) -> pa.DataType:
    if logical_type is LogicalType.INT64:
        return pa.int64()
    elif logical_type is LogicalType.FLOAT64:
        return pa.float64()
    elif logical_type is LogicalType.BOOLEAN:
        return pa.bool_()
    elif logical_type is LogicalType.UTF8:
        return pa.string()
    elif logical_type is LogicalType.TIMESTAMP_MILLIS:
        return pa.timestamp("ms")
    else:
        return pa.null()


def schema_from_arrow(arrow_schema: pa.Schema) -> Schema:
    columns = tuple(
        ColumnDescriptor(field.name, logical_type_from_arrow(field.type), field.nullable)
        for field in arrow_schema
    )
    schema = Schema(columns)
    validate(schema)
    return schema


def schema_to_arrow(schema: Schema) -> pa.Schema:
    return pa.schema(
        [pa.field(c.name, arrow_type_for(c.logical_type), nullable=c.nullable) for c in schema.columns]
    )


def _column_values(array: pa.Array, logical_type: LogicalType) -> list[Any]:
    """Python values for one Arrow column, None for nulls."""
    if logical_type is LogicalType.TIMESTAMP_MILLIS:
        if pa.types.is_timestamp(array.type) and array.type.unit != "ms":
            # drop the timezone first so the cast only changes resolution
            array = array.cast(pa.timestamp(array.type.unit))
            array = pc.cast(array, pa.timestamp("ms"), safe=False)
        return array.cast(pa.int64()).to_pylist()
    if logical_type is LogicalType.FLOAT64:
        return [None if v is None else float(v) for v in array.to_pylist()]
    if logical_type is LogicalType.INT64:
        return array.cast(pa.int64()).to_pylist()
    return array.to_pylist()


def batch_from_arrow(arrow_batch: pa.RecordBatch, schema: Schema | None = None) -> RecordBatch:
    if schema is None:
        schema = schema_from_arrow(arrow_batch.schema)
    columns = [
        _column_values(arrow_batch.column(i), c.logical_type)
        for i, c in enumerate(schema.columns)
    ]
    return RecordBatch.from_rows(schema, zip(*columns))


def batch_to_arrow(batch: RecordBatch, arrow_schema: pa.Schema | None = None) -> pa.RecordBatch:
    arrow_schema = arrow_schema or schema_to_arrow(batch.schema)
    arrays = []
    for descriptor, buffer, field in zip(batch.schema.columns, batch.columns, arrow_schema):
        values = [buffer.get(i) for i in range(batch.row_count)]
        if descriptor.logical_type is LogicalType.TIMESTAMP_MILLIS:
            arrays.append(pa.array(values, type=pa.int64()).cast(field.type))
        else:
            arrays.append(pa.array(values, type=field.type))
    return pa.RecordBatch.from_arrays(arrays, schema=arrow_schema)


def read_arrow_stream(source: BinaryIO) -> tuple[Schema, Iterator[RecordBatch]]:
    """Open an Arrow IPC stream; return the schema and a lazy batch iterator."""
    reader = ipc.open_stream(source)
    schema = schema_from_arrow(reader.schema)

    def batches() -> Iterator[RecordBatch]:
        for arrow_batch in reader:
            yield batch_from_arrow(arrow_batch, schema)

    logger.debug("opened arrow stream with columns %s", schema.names)
    return schema, batches()


def write_arrow_stream(schema: Schema, batches: Iterable[RecordBatch], sink: BinaryIO) -> int:
    """Write an Arrow IPC stream; return the number of batches written.

    The end-of-stream marker is written only after the last batch.
    """
    arrow_schema = schema_to_arrow(schema)
    writer = ipc.new_stream(sink, arrow_schema)
    count = 0
    for batch in batches:
        merge(schema, batch.schema)
        writer.write_batch(batch_to_arrow(batch, arrow_schema))
        count += 1
    writer.close()
    return count
