from __future__ import annotations

import pytest

from sheetpipe.models.schema import (
    ColumnDescriptor,
    LogicalType,
    Schema,
    SchemaError,
    SchemaMismatchError,
    merge,
    validate,
)


def test_validate_accepts_well_formed_schema(listing_schema: Schema):
    validate(listing_schema)
    assert listing_schema.validate() is listing_schema
    assert listing_schema.names == ["name", "size", "ratio", "hidden", "modified"]
    assert listing_schema.index_of("ratio") == 2


def test_validate_rejects_empty_schema():
    with pytest.raises(SchemaError, match="no columns"):
        validate(Schema(()))


def test_validate_rejects_empty_name():
    schema = Schema.from_pairs([("a", LogicalType.INT64), ("", LogicalType.UTF8)])
    with pytest.raises(SchemaError, match="empty name"):
        validate(schema)


def test_validate_rejects_duplicate_names():
    schema = Schema.from_pairs([("a", LogicalType.INT64), ("a", LogicalType.UTF8)])
    with pytest.raises(SchemaError, match="duplicate"):
        validate(schema)


def test_validate_rejects_non_nullable_null_column():
    schema = Schema((ColumnDescriptor("n", LogicalType.NULL, nullable=False),))
    with pytest.raises(SchemaError):
        validate(schema)


def test_merge_identical_returns_first(listing_schema: Schema):
    copy = Schema(tuple(listing_schema.columns))
    assert merge(listing_schema, copy) is listing_schema


@pytest.mark.parametrize(
    "other",
    [
        Schema.from_pairs([("a", LogicalType.INT64)]),
        Schema.from_pairs([("a", LogicalType.INT64), ("c", LogicalType.UTF8)]),
        Schema.from_pairs([("a", LogicalType.FLOAT64), ("b", LogicalType.UTF8)]),
        Schema.from_pairs([("a", LogicalType.INT64, False), ("b", LogicalType.UTF8)]),
        Schema.from_pairs([("b", LogicalType.UTF8), ("a", LogicalType.INT64)]),
    ],
)
def test_merge_rejects_any_structural_difference(other: Schema):
    base = Schema.from_pairs([("a", LogicalType.INT64), ("b", LogicalType.UTF8)])
    with pytest.raises(SchemaMismatchError):
        merge(base, other)


def test_schema_mismatch_is_a_schema_error():
    assert issubclass(SchemaMismatchError, SchemaError)


def test_logical_type_lookup_by_code_and_name():
    for member in LogicalType:
        assert LogicalType.from_code(member.code) is member
        assert LogicalType.from_name(member.type_name) is member
    with pytest.raises(ValueError):
        LogicalType.from_code(99)
    with pytest.raises(ValueError):
        LogicalType.from_name("decimal")
