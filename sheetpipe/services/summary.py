from __future__ import annotations

from ..models.stage_result import StageResult

"""SUMMARY line rendering.

Format:
SUMMARY stage={stage} rows={rows} batches={batches} [sheet={sheet} ]elapsed_sec={elapsed} throughput_rps={rps}
"""


def _format_number(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation for very small numbers
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(value)


def render_summary_line(result: StageResult) -> str:
    """Render the SUMMARY line for one stage run.

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> render_summary_line(StageResult.build("sheet2jsonl", 1000, 0, start, end))
        'SUMMARY stage=sheet2jsonl rows=1000 batches=0 elapsed_sec=2 throughput_rps=500'
    """
    sheet_part = f"sheet={result.sheet} " if result.sheet else ""
    return (
        f"SUMMARY stage={result.stage} "
        f"rows={result.rows} "
        f"batches={result.batches} "
        f"{sheet_part}"
        f"elapsed_sec={_format_number(result.elapsed_seconds)} "
        f"throughput_rps={_format_number(result.throughput_rows_per_sec)}"
    )
