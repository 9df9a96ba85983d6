# Shared pytest fixtures
from __future__ import annotations
import io
import tempfile
from pathlib import Path

import pandas as pd
import pytest

from sheetpipe.logging.init import reset_logging
from sheetpipe.models.batch import RecordBatch
from sheetpipe.models.schema import LogicalType, Schema
from sheetpipe.stream.codec import encode


@pytest.fixture(autouse=True)
def _fresh_logging():
    # handlers bind sys.stderr at setup time; capsys swaps it per test
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("SHEETPIPE_CONFIG", raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """batch_rows: 2
render:
  include_header: true
  timestamp_format: iso
  lossy: false
extract:
  has_header_row: true
dirents:
  size_type: int64
  modified_type: timestamp_ms
  include_hidden: false
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "sheetpipe.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def listing_schema() -> Schema:
    return Schema.from_pairs([
        ("name", LogicalType.UTF8, False),
        ("size", LogicalType.INT64),
        ("ratio", LogicalType.FLOAT64),
        ("hidden", LogicalType.BOOLEAN),
        ("modified", LogicalType.TIMESTAMP_MILLIS),
    ])


@pytest.fixture()
def listing_rows() -> list[tuple]:
    return [
        ("a.txt", 120, 0.5, False, 1_700_000_000_000),
        ("b.bin", None, 1.25, True, 1_700_000_000_123),
        ("c", 0, None, None, None),
        ("日本語.md", 9_007_199_254_740_992, -3.0, False, 0),
        ("e", -7, 2.0, True, -1),
    ]


@pytest.fixture()
def encoded_listing(listing_schema: Schema, listing_rows: list[tuple]) -> bytes:
    sink = io.BytesIO()
    batches = [
        RecordBatch.from_rows(listing_schema, listing_rows[:2]),
        RecordBatch.from_rows(listing_schema, listing_rows[2:]),
    ]
    encode(listing_schema, batches, sink)
    return sink.getvalue()


def make_workbook(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
    """Create a real workbook with pandas (openpyxl engine)."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet, rows in sheets.items():
            df = pd.DataFrame(rows, dtype=object)
            df.to_excel(writer, sheet_name=sheet, header=False, index=False)
    return path


@pytest.fixture()
def workbook_factory(temp_workdir: Path):
    def _factory(name: str, sheets: dict[str, list[list[object]]]) -> Path:
        return make_workbook(temp_workdir / name, sheets)
    return _factory
