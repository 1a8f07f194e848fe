from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum

"""FileRecord domain model and FileStatus enum.

A FileRecord anchors one uploaded workbook: where its blob lives, how big it
is, and what the last parse produced. The pipeline owns every status change.
"""

__all__ = [
    "FileStatus",
    "FileRecord",
]


class FileStatus(Enum):
    """Processing status of an uploaded file.

    State transitions: processing → (completed | failed)

    A later re-parse moves the record between the two terminal states; it
    never returns to processing.
    """
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not FileStatus.PROCESSING


@dataclass(frozen=True)
class FileRecord:
    """Metadata row for one uploaded spreadsheet.

    ``row_count`` is the total number of data rows across every sheet and
    ``column_count`` the widest sheet, both as of the last successful parse.
    """
    id: int
    file_name: str
    file_key: str                       # blob store key
    file_url: str                       # blob store URL, re-read on reparse
    file_size: int
    mime_type: str | None = None
    user_id: int | None = None
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    status: FileStatus = FileStatus.PROCESSING
    sheet_names: list[str] = field(default_factory=list)
    row_count: int = 0
    column_count: int = 0
    error: str | None = None            # failure reason of the last parse

    def completed(self, sheet_names: list[str], row_count: int, column_count: int) -> FileRecord:
        return replace(
            self,
            status=FileStatus.COMPLETED,
            sheet_names=list(sheet_names),
            row_count=row_count,
            column_count=column_count,
            error=None,
        )

    def failed(self, reason: str) -> FileRecord:
        # sheet_names/counts keep describing whatever sheets are still stored
        return replace(self, status=FileStatus.FAILED, error=reason)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "file_name": self.file_name,
            "file_key": self.file_key,
            "file_url": self.file_url,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "uploaded_at": self.uploaded_at.isoformat(),
            "status": self.status.value,
            "sheet_names": list(self.sheet_names),
            "row_count": self.row_count,
            "column_count": self.column_count,
            "error": self.error,
        }
