from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path

from ..services.pipeline import OUTPUT_FORMATS, run_dirents
from .common import (
    EXIT_FATAL,
    FATAL_ERRORS,
    add_common_arguments,
    load_stage_config,
    report_failure,
    report_success,
    start,
)

"""dirents2stream: encode the entries of one directory as a record batch stream.

The stream is sheetpipe's own format by default; `--output-format arrow`
writes an Arrow IPC stream instead.
"""

STAGE = "dirents2stream"


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog=STAGE, description="Directory entries -> record batch stream")
    p.add_argument("directory", nargs="?", default=".", help="Directory to enumerate (default: .)")
    p.add_argument("--output", help="Write the stream to this file instead of stdout")
    p.add_argument(
        "--output-format",
        choices=OUTPUT_FORMATS,
        default="sheetpipe",
        help="Output stream format (default: sheetpipe)",
    )
    p.add_argument("--batch-rows", type=int, help="Rows per record batch")
    add_common_arguments(p)
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    # only read sys.argv for None; tests pass [] explicitly
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = start(args)
    try:
        config = load_stage_config(args)
        if args.batch_rows is not None:
            if args.batch_rows < 1:
                raise ValueError("--batch-rows must be >= 1")
            config = replace(config, batch_rows=args.batch_rows)
        if args.output:
            with open(args.output, "wb") as sink:
                result = run_dirents(Path(args.directory), sink, config, args.output_format)
        else:
            result = run_dirents(Path(args.directory), sys.stdout.buffer, config, args.output_format)
    except BrokenPipeError:
        # downstream stage closed the pipe; it reports its own failure
        return EXIT_FATAL
    except FATAL_ERRORS as e:
        return report_failure(logger, STAGE, e)
    return report_success(result)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
