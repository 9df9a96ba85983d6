from __future__ import annotations

import argparse
import sys
from pathlib import Path

from ..services.pipeline import run_sheet_to_jsonl
from .common import (
    EXIT_FATAL,
    FATAL_ERRORS,
    add_common_arguments,
    load_stage_config,
    report_failure,
    report_success,
    start,
)

"""sheet2jsonl: emit the rows of one workbook sheet as line-delimited JSON."""

STAGE = "sheet2jsonl"


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog=STAGE, description="Workbook sheet -> JSON lines")
    p.add_argument("--input", required=True, help="Workbook file to read")
    p.add_argument("--sheet", required=True, help="Sheet name")
    p.add_argument(
        "--no-header",
        action="store_true",
        help="Treat the first row as data; fields are named col0, col1, ...",
    )
    p.add_argument("--output", help="Write JSON lines to this file instead of stdout")
    add_common_arguments(p)
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = start(args)
    try:
        config = load_stage_config(args)
        has_header_row = config.has_header_row and not args.no_header
        if args.output:
            with open(args.output, "w", encoding="utf-8", newline="\n") as sink:
                result = run_sheet_to_jsonl(Path(args.input), args.sheet, sink, has_header_row)
        else:
            result = run_sheet_to_jsonl(Path(args.input), args.sheet, sys.stdout, has_header_row)
    except BrokenPipeError:
        return EXIT_FATAL
    except FATAL_ERRORS as e:
        return report_failure(logger, STAGE, e)
    return report_success(result)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
