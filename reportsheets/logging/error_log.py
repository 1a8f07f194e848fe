from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Per-run error log for failed uploads.

The pipeline appends one ErrorRecord per failed file; the CLI flushes the
buffer once when the command ends. All flushes of one run go to the same
``<directory>/errors-YYYYMMDD-HHMMSS.log`` (UTC), created on the first
flush that has something to write.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    def __init__(self, directory: Path | None = None) -> None:
        self._directory = directory if directory is not None else LOGS_DIR
        self._records: list[ErrorRecord] = []
        self._path: Path | None = None

    @property
    def path(self) -> Path | None:
        """Log file of this run, None until the first non-empty flush."""
        return self._path

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def __len__(self) -> int:
        return len(self._records)

    def for_file(self, file_id: int) -> list[ErrorRecord]:
        return [r for r in self._records if r.file_id == file_id]

    def failed_file_ids(self) -> list[int]:
        """Distinct ids of the buffered failures, in failure order."""
        return list(dict.fromkeys(r.file_id for r in self._records))

    def counts_by_type(self) -> dict[str, int]:
        return dict(Counter(r.error_type for r in self._records))

    def flush(self) -> Path | None:
        if not self._records:
            return None
        if self._path is None:
            self._directory.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._path = self._directory / f"errors-{stamp}.log"
        with self._path.open("a", encoding="utf-8") as f:
            f.writelines(r.to_json_line() + "\n" for r in self._records)
        self._records.clear()
        return self._path
