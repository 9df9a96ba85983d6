from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import datetime

"""Stage result model: metrics for one pipeline stage run.

Used by the SUMMARY line renderer and returned from every service in
sheetpipe.services.pipeline.
"""

__all__ = [
    "StageResult",
    "BatchStatsAccumulator",
]


@dataclass(frozen=True)
class StageResult:
    """Aggregated metrics for one stage (dirents, stream2sheet or sheet2jsonl)."""
    stage: str  # tool name shown in SUMMARY
    rows: int  # rows written to the stage output
    batches: int  # record batches encoded / decoded (0 for sheet2jsonl)
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float
    sheet: str | None = None  # target / source sheet name
    avg_batch_rows: float = 0.0

    @staticmethod
    def build(
        stage: str,
        rows: int,
        batches: int,
        start_time: datetime,
        end_time: datetime,
        sheet: str | None = None,
        avg_batch_rows: float = 0.0,
    ) -> StageResult:
        elapsed = max((end_time - start_time).total_seconds(), 0.0)
        throughput = round(rows / elapsed, 2) if elapsed > 0 else 0.0
        return StageResult(
            stage=stage,
            rows=rows,
            batches=batches,
            start_time=start_time,
            end_time=end_time,
            elapsed_seconds=round(elapsed, 6),
            throughput_rows_per_sec=throughput,
            sheet=sheet,
            avg_batch_rows=avg_batch_rows,
        )


class BatchStatsAccumulator:
    """Collects per-batch row counts while a stage streams batches."""

    def __init__(self) -> None:
        self.batch_rows: list[int] = []

    def add_batch(self, row_count: int) -> None:
        self.batch_rows.append(row_count)

    @property
    def total_batches(self) -> int:
        return len(self.batch_rows)

    @property
    def total_rows(self) -> int:
        return sum(self.batch_rows)

    def average_rows(self) -> float:
        if not self.batch_rows:
            return 0.0
        return statistics.mean(self.batch_rows)
