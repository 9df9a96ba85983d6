from __future__ import annotations

import io
import math
import struct

import pytest

from sheetpipe.models.batch import ColumnBuffer, RecordBatch, batches_from_rows
from sheetpipe.models.schema import LogicalType, Schema, SchemaError, SchemaMismatchError
from sheetpipe.stream.codec import (
    MAGIC,
    InvalidStreamError,
    StreamReader,
    StreamWriter,
    TruncatedStreamError,
    UnsupportedVersionError,
    decode,
    encode,
    pack_bits,
    unpack_bits,
)


class ShortReads(io.RawIOBase):
    """Pipe-like source returning at most `chunk` bytes per read."""

    def __init__(self, data: bytes, chunk: int = 3) -> None:
        self._buf = io.BytesIO(data)
        self._chunk = chunk

    def readable(self) -> bool:
        return True

    def read(self, n: int = -1) -> bytes:
        if n < 0:
            n = self._chunk
        return self._buf.read(min(n, self._chunk))


def _rows(schema: Schema, data: bytes) -> list[tuple]:
    decoded_schema, batches = decode(io.BytesIO(data))
    assert decoded_schema == schema
    return [r for b in batches for r in b.rows()]


def test_round_trip_preserves_schema_values_and_nulls(listing_schema, listing_rows, encoded_listing):
    assert _rows(listing_schema, encoded_listing) == listing_rows


@pytest.mark.parametrize("batch_rows", [1, 2, 3, 5, 100])
def test_batching_is_invisible_after_decode(listing_schema, listing_rows, batch_rows):
    sink = io.BytesIO()
    encode(listing_schema, batches_from_rows(listing_schema, listing_rows, batch_rows), sink)
    assert _rows(listing_schema, sink.getvalue()) == listing_rows


def test_decoded_batches_share_schema_and_keep_row_count(encoded_listing):
    reader = StreamReader(io.BytesIO(encoded_listing))
    batches = list(reader)
    assert [b.row_count for b in batches] == [2, 3]
    for batch in batches:
        assert batch.schema is reader.schema
        assert all(len(c.values) == batch.row_count for c in batch.columns)
        assert all(len(c.validity) == batch.row_count for c in batch.columns)


def test_float_special_values_survive():
    schema = Schema.from_pairs([("f", LogicalType.FLOAT64)])
    sink = io.BytesIO()
    encode(schema, [RecordBatch.from_rows(schema, [(float("inf"),), (float("nan"),), (-0.0,)])], sink)
    values = [r[0] for r in _rows(schema, sink.getvalue())]
    assert values[0] == float("inf")
    assert math.isnan(values[1])
    assert math.copysign(1.0, values[2]) == -1.0


def test_empty_stream_yields_schema_and_no_batches(listing_schema):
    sink = io.BytesIO()
    assert encode(listing_schema, [], sink) == 0
    schema, batches = decode(io.BytesIO(sink.getvalue()))
    assert schema == listing_schema
    assert list(batches) == []


def test_zero_row_batch_is_valid(listing_schema):
    sink = io.BytesIO()
    encode(listing_schema, [RecordBatch.empty(listing_schema)], sink)
    _, batches = decode(io.BytesIO(sink.getvalue()))
    batches = list(batches)
    assert len(batches) == 1
    assert batches[0].row_count == 0
    assert all(len(c.values) == 0 for c in batches[0].columns)


def test_null_column_round_trip():
    schema = Schema.from_pairs([("id", LogicalType.INT64), ("nothing", LogicalType.NULL)])
    sink = io.BytesIO()
    encode(schema, [RecordBatch.from_rows(schema, [(1, None), (2, None)])], sink)
    assert _rows(schema, sink.getvalue()) == [(1, None), (2, None)]


def test_header_layout():
    schema = Schema.from_pairs([("a", LogicalType.BOOLEAN, False)])
    sink = io.BytesIO()
    encode(schema, [], sink)
    data = sink.getvalue()
    assert data[:4] == MAGIC
    assert struct.unpack("<H", data[4:6])[0] == 1
    # schema message: u32 length, u16 ncols, u16 name len, name, type, nullable
    assert data[6:10] == struct.pack("<I", 2 + 2 + 1 + 1 + 1)
    assert data[10:] == struct.pack("<HH", 1, 1) + b"a" + bytes([3, 0]) + b"E"


def test_bad_magic_is_rejected():
    with pytest.raises(InvalidStreamError, match="magic"):
        StreamReader(io.BytesIO(b"ARROW1\x00\x00\x00\x00"))


def test_unknown_version_is_rejected_before_schema(encoded_listing):
    data = bytearray(encoded_listing)
    data[4:6] = struct.pack("<H", 7)
    with pytest.raises(UnsupportedVersionError):
        StreamReader(io.BytesIO(bytes(data)))


def test_truncated_final_frame_fails_only_on_that_frame(encoded_listing):
    # drop the end marker and the last byte of the final frame
    reader = StreamReader(io.BytesIO(encoded_listing[:-2]))
    it = iter(reader)
    first = next(it)
    assert first.row_count == 2
    with pytest.raises(TruncatedStreamError):
        next(it)


@pytest.mark.parametrize("cut", [1, 5, 8, 12])
def test_truncation_inside_header_or_schema(encoded_listing, cut):
    with pytest.raises(TruncatedStreamError):
        StreamReader(io.BytesIO(encoded_listing[:cut]))


def test_missing_end_marker_is_truncation(encoded_listing):
    reader = StreamReader(io.BytesIO(encoded_listing[:-1]))
    it = iter(reader)
    assert next(it).row_count == 2
    assert next(it).row_count == 3
    with pytest.raises(TruncatedStreamError, match="end marker"):
        next(it)


def test_unknown_frame_tag(listing_schema):
    sink = io.BytesIO()
    encode(listing_schema, [], sink)
    data = sink.getvalue()[:-1] + b"X"
    with pytest.raises(InvalidStreamError, match="frame tag"):
        list(StreamReader(io.BytesIO(data)))


def test_frame_length_mismatch_is_invalid():
    schema = Schema.from_pairs([("n", LogicalType.INT64)])
    sink = io.BytesIO()
    encode(schema, [RecordBatch.from_rows(schema, [(1,)])], sink)
    data = bytearray(sink.getvalue())
    header_len = 6 + 4 + (2 + 2 + 1 + 2)
    # frame: tag, u32 length, body (u32 rows, 1 validity byte, 8 value bytes)
    assert data[header_len:header_len + 1] == b"B"
    body_len = struct.unpack("<I", data[header_len + 1:header_len + 5])[0]
    assert body_len == 4 + 1 + 8
    padded = data[:header_len + 1] + struct.pack("<I", body_len + 1) + data[header_len + 5:-1] + b"\x00E"
    with pytest.raises(InvalidStreamError, match="trailing"):
        list(StreamReader(io.BytesIO(bytes(padded))))


def test_reader_handles_short_reads(listing_schema, listing_rows, encoded_listing):
    reader = StreamReader(ShortReads(encoded_listing, chunk=3))
    assert reader.schema == listing_schema
    assert [r for b in reader for r in b.rows()] == listing_rows


def test_reader_is_single_pass(encoded_listing):
    reader = StreamReader(io.BytesIO(encoded_listing))
    list(reader)
    with pytest.raises(RuntimeError):
        iter(reader)


def test_writer_rejects_divergent_batch_schema(listing_schema):
    other = Schema.from_pairs([("name", LogicalType.UTF8)])
    writer = StreamWriter(io.BytesIO(), listing_schema)
    with pytest.raises(SchemaMismatchError):
        writer.write_batch(RecordBatch.from_rows(other, [("x",)]))


def test_writer_validates_schema_before_writing():
    sink = io.BytesIO()
    with pytest.raises(SchemaError):
        StreamWriter(sink, Schema(()))
    assert sink.getvalue() == b""


def test_writer_context_manager_omits_end_marker_on_error(listing_schema, listing_rows):
    sink = io.BytesIO()
    with pytest.raises(RuntimeError):
        with StreamWriter(sink, listing_schema) as writer:
            writer.write_batch(RecordBatch.from_rows(listing_schema, listing_rows[:1]))
            raise RuntimeError("producer died")
    reader = StreamReader(io.BytesIO(sink.getvalue()))
    with pytest.raises(TruncatedStreamError):
        list(reader)


def test_writer_is_closed_after_close(listing_schema):
    writer = StreamWriter(io.BytesIO(), listing_schema)
    writer.close()
    writer.close()
    with pytest.raises(RuntimeError):
        writer.write_batch(RecordBatch.empty(listing_schema))


def test_bit_packing_is_lsb_first():
    bits = [True, False, False, False, False, False, False, False, True]
    assert pack_bits(bits) == bytes([0x01, 0x01])
    assert unpack_bits(pack_bits(bits), len(bits)) == bits
    assert pack_bits([]) == b""


def test_out_of_range_int64_in_hand_built_batch_is_value_error():
    schema = Schema.from_pairs([("n", LogicalType.INT64)])
    batch = RecordBatch(schema, 1, (ColumnBuffer([True], [2**70]),))
    sink = io.BytesIO()
    writer = StreamWriter(sink, schema)
    header = sink.getvalue()
    with pytest.raises(ValueError, match="'n'"):
        writer.write_batch(batch)
    # nothing of the failed frame reaches the sink
    assert sink.getvalue() == header
