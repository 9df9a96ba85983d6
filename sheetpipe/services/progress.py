from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display service with tqdm (TTY only).

A single row counter on stderr. Disabled when stderr is not a TTY so that
pipelines and CI logs stay free of control sequences. stdout is never used
because it carries the data stream.
"""

__all__ = [
    "RowProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """True if stderr is a TTY and progress should be displayed."""
    return sys.stderr.isatty()


class RowProgress:
    """Row counter for one pipeline stage.

    Total row counts are unknown up front (streams may be unbounded), so the
    bar only counts rows and batches.
    """

    def __init__(self, description: str) -> None:
        self.description = description
        self.rows = 0
        self.batches = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                desc=description,
                unit="row",
                file=sys.stderr,
                disable=False,
                leave=False,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def advance(self, rows: int, batches: int = 1) -> None:
        self.rows += rows
        self.batches += batches
        if self.enabled and self.pbar is not None:
            self.pbar.update(rows)
            self.pbar.set_postfix(batches=self.batches)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> RowProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
