from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""Result models for batch re-parse runs.

FileStat describes one file of the run; ReparseResult aggregates them for
the SUMMARY line.
"""


@dataclass(frozen=True)
class FileStat:
    """Per-file outcome of a re-parse run."""
    file_id: int
    file_name: str
    status: str  # completed/failed
    rows: int
    elapsed_seconds: float
    error: str | None = None


@dataclass(frozen=True)
class ReparseResult:
    completed_files: int
    failed_files: int
    total_rows: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    file_stats: list[FileStat] | None = None

    @property
    def total_files(self) -> int:
        return self.completed_files + self.failed_files
