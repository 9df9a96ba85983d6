from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import BinaryIO, TextIO

from ..config.loader import PipelineConfig
from ..excel.reader import extract, read_sheet, write_json_lines
from ..excel.writer import RenderOptions, render, write_sheet
from ..interop.arrow import read_arrow_stream, write_arrow_stream
from ..models.batch import RecordBatch, batches_from_rows
from ..models.schema import Schema
from ..models.stage_result import BatchStatsAccumulator, StageResult
from ..sources.dirents import dirent_rows, dirent_schema, scan_entries
from ..stream.codec import decode, encode
from .progress import RowProgress

"""Stage orchestration for the three sheetpipe tools.

Each function runs one stage start to finish, interleaving decode and
emission batch by batch, and returns a StageResult. Errors from the codec,
renderer and extractor propagate unchanged; the CLI maps them to exit codes.
"""

__all__ = [
    "INPUT_FORMATS",
    "OUTPUT_FORMATS",
    "open_batches",
    "write_batches",
    "run_dirents",
    "run_stream_to_sheet",
    "run_sheet_to_jsonl",
]

logger = logging.getLogger(__name__)

INPUT_FORMATS = ("sheetpipe", "arrow")
OUTPUT_FORMATS = INPUT_FORMATS


def _now() -> datetime:
    return datetime.now(UTC)


def open_batches(source: BinaryIO, input_format: str = "sheetpipe") -> tuple[Schema, Iterator[RecordBatch]]:
    """Decode the input stream header and schema; batches stay lazy."""
    if input_format == "sheetpipe":
        return decode(source)
    if input_format == "arrow":
        return read_arrow_stream(source)
    raise ValueError(f"input format must be one of {INPUT_FORMATS}, got {input_format!r}")


def write_batches(
    schema: Schema, batches: Iterable[RecordBatch], sink: BinaryIO, output_format: str = "sheetpipe"
) -> int:
    """Encode `batches` onto `sink`; return the number of batches written."""
    if output_format == "sheetpipe":
        return encode(schema, batches, sink)
    if output_format == "arrow":
        count = write_arrow_stream(schema, batches, sink)
        sink.flush()
        return count
    raise ValueError(f"output format must be one of {OUTPUT_FORMATS}, got {output_format!r}")


def run_dirents(
    directory: Path,
    sink: BinaryIO,
    config: PipelineConfig | None = None,
    output_format: str = "sheetpipe",
) -> StageResult:
    """Enumerate `directory` and encode its entries onto `sink`."""
    config = config or PipelineConfig()
    if output_format not in OUTPUT_FORMATS:
        raise ValueError(f"output format must be one of {OUTPUT_FORMATS}, got {output_format!r}")
    start = _now()
    schema = dirent_schema(config.dirents)
    entries = scan_entries(directory, include_hidden=config.dirents.include_hidden)
    rows = dirent_rows(entries, config.dirents)
    stats = BatchStatsAccumulator()
    with RowProgress("dirents2stream") as progress:

        def counted() -> Iterator[RecordBatch]:
            for batch in batches_from_rows(schema, rows, config.batch_rows):
                stats.add_batch(batch.row_count)
                progress.advance(batch.row_count)
                yield batch

        write_batches(schema, counted(), sink, output_format)
    logger.debug("encoded %d entries from %s", stats.total_rows, directory)
    return StageResult.build(
        "dirents2stream",
        stats.total_rows,
        stats.total_batches,
        start,
        _now(),
        avg_batch_rows=stats.average_rows(),
    )


def run_stream_to_sheet(
    source: BinaryIO,
    output: Path,
    sheet_name: str,
    config: PipelineConfig | None = None,
    options: RenderOptions | None = None,
    input_format: str = "sheetpipe",
) -> StageResult:
    """Decode a batch stream and write it as sheet `sheet_name` of `output`.

    `options` overrides `config.render` when given.
    """
    config = config or PipelineConfig()
    options = options or config.render
    start = _now()
    schema, batches = open_batches(source, input_format)
    logger.debug("stream schema: %s", ", ".join(
        f"{c.name}:{c.logical_type.type_name}" for c in schema.columns
    ))
    stats = BatchStatsAccumulator()
    with RowProgress("stream2sheet") as progress:

        def on_batch(batch: RecordBatch) -> None:
            stats.add_batch(batch.row_count)
            progress.advance(batch.row_count)

        sheet = render(schema, batches, sheet_name, options, on_batch=on_batch)
    write_sheet(sheet, output)
    logger.info(f"wrote {stats.total_rows} rows to {output} sheet {sheet_name!r}")
    return StageResult.build(
        "stream2sheet",
        stats.total_rows,
        stats.total_batches,
        start,
        _now(),
        sheet=sheet_name,
        avg_batch_rows=stats.average_rows(),
    )


def run_sheet_to_jsonl(
    input_path: Path,
    sheet_name: str,
    sink: TextIO,
    has_header_row: bool = True,
) -> StageResult:
    """Read sheet `sheet_name` of `input_path` and write its rows as JSON lines."""
    start = _now()
    sheet = read_sheet(input_path, sheet_name)
    count = write_json_lines(extract(sheet, has_header_row=has_header_row), sink)
    sink.flush()
    return StageResult.build("sheet2jsonl", count, 0, start, _now(), sheet=sheet_name)
