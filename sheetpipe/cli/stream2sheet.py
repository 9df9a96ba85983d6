from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path

from ..services.pipeline import INPUT_FORMATS, run_stream_to_sheet
from .common import (
    FATAL_ERRORS,
    add_common_arguments,
    load_stage_config,
    report_failure,
    report_success,
    start,
)

"""stream2sheet: render a record batch stream into one named workbook sheet."""

STAGE = "stream2sheet"


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog=STAGE, description="Record batch stream -> workbook sheet")
    p.add_argument("--sheet", required=True, help="Target sheet name (replaced if present)")
    p.add_argument("--output", required=True, help="Workbook file (.xlsx); other sheets are kept")
    p.add_argument("--input", help="Read the stream from this file instead of stdin")
    p.add_argument(
        "--input-format",
        choices=INPUT_FORMATS,
        default="sheetpipe",
        help="Input stream format (default: sheetpipe)",
    )
    p.add_argument("--no-header", action="store_true", help="Do not write the column header row")
    p.add_argument("--timestamps", choices=("number", "iso"), help="Timestamp cell rendering")
    p.add_argument("--lossy", action="store_true", help="Allow lossy numeric coercion")
    add_common_arguments(p)
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = start(args)
    try:
        config = load_stage_config(args)
        options = config.render
        if args.no_header:
            options = replace(options, include_header=False)
        if args.timestamps:
            options = replace(options, timestamp_format=args.timestamps)
        if args.lossy:
            options = replace(options, lossy=True)
        output = Path(args.output)
        if args.input:
            with open(args.input, "rb") as source:
                result = run_stream_to_sheet(
                    source, output, args.sheet, config, options, args.input_format
                )
        else:
            result = run_stream_to_sheet(
                sys.stdin.buffer, output, args.sheet, config, options, args.input_format
            )
    except FATAL_ERRORS as e:
        return report_failure(logger, STAGE, e)
    return report_success(result)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
