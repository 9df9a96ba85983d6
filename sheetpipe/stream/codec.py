from __future__ import annotations

import logging
import struct
from collections.abc import Iterable, Iterator
from typing import BinaryIO

from ..models.batch import ColumnBuffer, RecordBatch, placeholder_for
from ..models.schema import ColumnDescriptor, LogicalType, Schema, SchemaError, merge, validate

"""Stream codec: self-describing binary encoding of a schema plus record batches.

Layout (little-endian):

    header  MAGIC "SPIP" | version u16
    schema  length u32 | ncols u16 | {name_len u16 | name | type u8 | nullable u8}*
    frame   'B' | length u32 | row_count u32 | {validity | values}* in schema order
    end     'E'

Validity bitmaps and boolean values are packed LSB-first, ceil(n/8) bytes.
Int64 / timestamp values are i64, float values f64, text is u32 length + UTF-8,
null columns carry no value bytes.

The writer is forward-only and flushes after every frame. The reader is
single-pass: each batch is yielded as soon as its frame is fully buffered and
a truncated frame fails only when that frame is decoded.
"""

__all__ = [
    "MAGIC",
    "VERSION",
    "StreamError",
    "InvalidStreamError",
    "UnsupportedVersionError",
    "TruncatedStreamError",
    "StreamWriter",
    "StreamReader",
    "encode",
    "decode",
    "pack_bits",
    "unpack_bits",
]

logger = logging.getLogger(__name__)

MAGIC = b"SPIP"
VERSION = 1
SUPPORTED_VERSIONS = frozenset({VERSION})

FRAME_BATCH = b"B"
FRAME_END = b"E"

_HEADER = struct.Struct("<4sH")
_U8 = struct.Struct("<B")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")

_MAX_U32 = 2**32 - 1


class StreamError(Exception):
    """Base class for malformed or incomplete input streams."""


class InvalidStreamError(StreamError):
    """Raised when the stream is not a sheetpipe stream or is internally inconsistent."""


class UnsupportedVersionError(InvalidStreamError):
    """Raised when the header carries a version this reader does not know."""


class TruncatedStreamError(StreamError):
    """Raised when the input ends inside the header, schema or a frame."""


# ---------------------------------------------------------------------------
# bit packing
# ---------------------------------------------------------------------------

def pack_bits(bits: list[bool]) -> bytes:
    """Pack booleans LSB-first into ceil(len/8) bytes."""
    out = bytearray((len(bits) + 7) // 8)
    for i, bit in enumerate(bits):
        if bit:
            out[i >> 3] |= 1 << (i & 7)
    return bytes(out)


def unpack_bits(data: bytes | memoryview, count: int) -> list[bool]:
    return [bool(data[i >> 3] & (1 << (i & 7))) for i in range(count)]


# ---------------------------------------------------------------------------
# schema message
# ---------------------------------------------------------------------------

def _encode_schema(schema: Schema) -> bytes:
    parts = [_U16.pack(len(schema.columns))]
    for column in schema.columns:
        name = column.name.encode("utf-8")
        if len(name) > 0xFFFF:
            raise SchemaError(f"column name too long: {column.name[:40]!r}...")
        parts.append(_U16.pack(len(name)))
        parts.append(name)
        parts.append(_U8.pack(column.logical_type.code))
        parts.append(_U8.pack(1 if column.nullable else 0))
    return b"".join(parts)


class _Cursor:
    """Bounds-checked reader over one fully buffered message body."""

    def __init__(self, data: bytes, what: str) -> None:
        self.view = memoryview(data)
        self.pos = 0
        self.what = what

    def take(self, n: int) -> memoryview:
        end = self.pos + n
        if end > len(self.view):
            raise InvalidStreamError(f"{self.what} overruns its declared length")
        chunk = self.view[self.pos:end]
        self.pos = end
        return chunk

    def unpack(self, st: struct.Struct) -> int:
        return st.unpack(self.take(st.size))[0]

    def finish(self) -> None:
        if self.pos != len(self.view):
            raise InvalidStreamError(
                f"{self.what} has {len(self.view) - self.pos} trailing bytes"
            )


def _decode_schema(data: bytes) -> Schema:
    cur = _Cursor(data, "schema message")
    ncols = cur.unpack(_U16)
    columns = []
    for _ in range(ncols):
        name_len = cur.unpack(_U16)
        try:
            name = bytes(cur.take(name_len)).decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidStreamError(f"column name is not valid UTF-8: {e}") from e
        code = cur.unpack(_U8)
        try:
            logical_type = LogicalType.from_code(code)
        except ValueError as e:
            raise InvalidStreamError(str(e)) from e
        nullable = cur.unpack(_U8) != 0
        columns.append(ColumnDescriptor(name, logical_type, nullable))
    cur.finish()
    schema = Schema(tuple(columns))
    validate(schema)
    return schema


# ---------------------------------------------------------------------------
# batch frame
# ---------------------------------------------------------------------------

def _encode_values(logical_type: LogicalType, buffer: ColumnBuffer, n: int) -> bytes:
    if logical_type in (LogicalType.INT64, LogicalType.TIMESTAMP_MILLIS):
        return struct.pack(f"<{n}q", *buffer.values)
    if logical_type is LogicalType.FLOAT64:
        return struct.pack(f"<{n}d", *buffer.values)
    if logical_type is LogicalType.BOOLEAN:
        return pack_bits(buffer.values)
    if logical_type is LogicalType.UTF8:
        parts = []
        for value in buffer.values:
            raw = value.encode("utf-8")
            parts.append(_U32.pack(len(raw)))
            parts.append(raw)
        return b"".join(parts)
    return b""


def _encode_batch(batch: RecordBatch) -> bytes:
    n = batch.row_count
    if n > _MAX_U32:
        raise ValueError(f"batch too large: {n} rows")
    parts = [_U32.pack(n)]
    for descriptor, buffer in zip(batch.schema.columns, batch.columns):
        parts.append(pack_bits(buffer.validity))
        try:
            parts.append(_encode_values(descriptor.logical_type, buffer, n))
        except (struct.error, OverflowError) as e:
            raise ValueError(f"column {descriptor.name!r} cannot be encoded: {e}") from e
    return b"".join(parts)


def _decode_values(cur: _Cursor, logical_type: LogicalType, n: int) -> list:
    if logical_type in (LogicalType.INT64, LogicalType.TIMESTAMP_MILLIS):
        return list(struct.unpack(f"<{n}q", cur.take(8 * n)))
    if logical_type is LogicalType.FLOAT64:
        return list(struct.unpack(f"<{n}d", cur.take(8 * n)))
    if logical_type is LogicalType.BOOLEAN:
        return unpack_bits(cur.take((n + 7) // 8), n)
    if logical_type is LogicalType.UTF8:
        values = []
        for _ in range(n):
            length = cur.unpack(_U32)
            try:
                values.append(bytes(cur.take(length)).decode("utf-8"))
            except UnicodeDecodeError as e:
                raise InvalidStreamError(f"text value is not valid UTF-8: {e}") from e
        return values
    return [None] * n


def _decode_batch(schema: Schema, data: bytes, index: int) -> RecordBatch:
    cur = _Cursor(data, f"batch frame {index}")
    n = cur.unpack(_U32)
    columns = []
    for descriptor in schema.columns:
        validity = unpack_bits(cur.take((n + 7) // 8), n)
        values = _decode_values(cur, descriptor.logical_type, n)
        if descriptor.logical_type is LogicalType.NULL and any(validity):
            raise InvalidStreamError(f"null column {descriptor.name!r} has present values")
        placeholder = placeholder_for(descriptor.logical_type)
        values = [v if ok else placeholder for v, ok in zip(values, validity)]
        columns.append(ColumnBuffer(validity, values))
    cur.finish()
    try:
        return RecordBatch(schema=schema, row_count=n, columns=tuple(columns))
    except SchemaError as e:
        raise InvalidStreamError(f"batch frame {index}: {e}") from e


# ---------------------------------------------------------------------------
# writer / reader
# ---------------------------------------------------------------------------

class StreamWriter:
    """Forward-only encoder bound to one sink and one schema.

    The header and schema message are written on construction, so a stream
    with zero batches is still complete once `close()` writes the end marker.
    """

    def __init__(self, sink: BinaryIO, schema: Schema) -> None:
        validate(schema)
        self.sink = sink
        self.schema = schema
        self.batches_written = 0
        self.rows_written = 0
        self._closed = False
        payload = _encode_schema(schema)
        sink.write(_HEADER.pack(MAGIC, VERSION))
        sink.write(_U32.pack(len(payload)))
        sink.write(payload)
        self._flush()

    def _flush(self) -> None:
        flush = getattr(self.sink, "flush", None)
        if flush is not None:
            flush()

    def write_batch(self, batch: RecordBatch) -> None:
        if self._closed:
            raise RuntimeError("stream writer is closed")
        merge(self.schema, batch.schema)
        body = _encode_batch(batch)
        if len(body) > _MAX_U32:
            raise ValueError(f"batch frame too large: {len(body)} bytes")
        self.sink.write(FRAME_BATCH)
        self.sink.write(_U32.pack(len(body)))
        self.sink.write(body)
        self._flush()
        self.batches_written += 1
        self.rows_written += batch.row_count
        logger.debug("wrote batch %d rows=%d bytes=%d", self.batches_written, batch.row_count, len(body))

    def close(self) -> None:
        if self._closed:
            return
        self.sink.write(FRAME_END)
        self._flush()
        self._closed = True

    def __enter__(self) -> StreamWriter:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        # An aborted stage leaves the stream without an end marker so the
        # consumer reports truncation instead of a clean end.
        if exc_type is None:
            self.close()


class StreamReader:
    """Single-pass decoder.

    Header and schema are read on construction; iterate to receive batches.
    """

    def __init__(self, source: BinaryIO) -> None:
        self.source = source
        self.batches_read = 0
        self._consumed = False
        header = self._read_exact(_HEADER.size, "stream header")
        magic, version = _HEADER.unpack(header)
        if magic != MAGIC:
            raise InvalidStreamError(f"not a sheetpipe stream (magic {magic!r})")
        if version not in SUPPORTED_VERSIONS:
            raise UnsupportedVersionError(f"unsupported stream version: {version}")
        self.version = version
        length = _U32.unpack(self._read_exact(_U32.size, "schema length"))[0]
        self.schema = _decode_schema(self._read_exact(length, "schema message"))

    def _read_exact(self, n: int, what: str) -> bytes:
        chunks = []
        remaining = n
        while remaining > 0:
            chunk = self.source.read(remaining)
            if not chunk:
                got = n - remaining
                raise TruncatedStreamError(f"stream ended inside {what} ({got}/{n} bytes)")
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def __iter__(self) -> Iterator[RecordBatch]:
        if self._consumed:
            raise RuntimeError("stream can only be read once")
        self._consumed = True
        return self._batches()

    def _batches(self) -> Iterator[RecordBatch]:
        while True:
            tag = self.source.read(1)
            if not tag:
                raise TruncatedStreamError(
                    f"stream ended after {self.batches_read} batches without end marker"
                )
            if tag == FRAME_END:
                logger.debug("end of stream after %d batches", self.batches_read)
                return
            if tag != FRAME_BATCH:
                raise InvalidStreamError(f"unknown frame tag {tag!r}")
            index = self.batches_read
            length = _U32.unpack(self._read_exact(_U32.size, f"batch frame {index} length"))[0]
            body = self._read_exact(length, f"batch frame {index}")
            batch = _decode_batch(self.schema, body, index)
            self.batches_read += 1
            yield batch


def encode(schema: Schema, batches: Iterable[RecordBatch], sink: BinaryIO) -> int:
    """Encode a full stream; return the number of batches written."""
    writer = StreamWriter(sink, schema)
    for batch in batches:
        writer.write_batch(batch)
    writer.close()
    return writer.batches_written


def decode(source: BinaryIO) -> tuple[Schema, Iterator[RecordBatch]]:
    """Read the header and schema; return the schema and a lazy batch iterator."""
    reader = StreamReader(source)
    return reader.schema, iter(reader)
