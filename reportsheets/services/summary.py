from __future__ import annotations

from ..models.processing_result import ReparseResult

"""SUMMARY line rendering for batch re-parse runs."""


def _format_number(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation for tiny durations
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: ReparseResult) -> str:
    """Render the SUMMARY line.

    Format:
    SUMMARY files={total} completed={completed} failed={failed} rows={rows} elapsed_sec={elapsed}

    >>> from datetime import datetime, timezone
    >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
    >>> render_summary_line(ReparseResult(2, 1, 40, t, t, 1.5))
    'SUMMARY files=3 completed=2 failed=1 rows=40 elapsed_sec=1.5'
    """
    return (
        f"SUMMARY files={result.total_files} "
        f"completed={result.completed_files} "
        f"failed={result.failed_files} "
        f"rows={result.total_rows} "
        f"elapsed_sec={_format_number(result.elapsed_seconds)}"
    )
