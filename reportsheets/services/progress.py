from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm

"""Progress display for reparse-all (tqdm, TTY only).

The bar advances once per stored file and shows the running
completed/failed/rows tally as postfix. Off a TTY (CI, piped output) no bar
is drawn but the tally is still kept.
"""

__all__ = [
    "ReparseProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ReparseProgress:
    def __init__(self, total_files: int, *, description: str = "Re-parsing files") -> None:
        self.total_files = total_files
        self.description = description
        self.completed = 0
        self.failed = 0
        self.rows = 0

        self.bar: Any | None = None
        if is_tty_enabled():
            self.bar = tqdm(
                total=total_files,
                desc=description,
                unit="file",
                leave=True,
                ncols=80,
                ascii=True,
            )

    @property
    def done(self) -> int:
        return self.completed + self.failed

    def start_file(self, file_name: str) -> None:
        if self.bar is not None:
            self.bar.set_description(f"{self.description} ({file_name})")

    def finish_file(self, completed: bool, rows: int = 0) -> None:
        if completed:
            self.completed += 1
            self.rows += rows
        else:
            self.failed += 1
        if self.bar is not None:
            self.bar.set_description(self.description)
            self.bar.set_postfix(completed=self.completed, failed=self.failed, rows=self.rows)
            self.bar.update(1)

    def close(self) -> None:
        if self.bar is not None:
            self.bar.close()
            self.bar = None

    def __enter__(self) -> ReparseProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
