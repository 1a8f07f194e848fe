from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

from .file_record import FileRecord

"""Error log entry for a failed ingestion or re-parse.

Every entry points back at the FileRecord and the blob it came from, so a
failed upload can be re-parsed straight from the log (``reparse FILE_ID``).
Failures are decided per file: parse, storage and database errors all
abort the whole file, so ``sheet`` is ``<FILE_LEVEL>`` and ``row`` is -1
unless a caller knows better.

Schema: reportsheets/logging/error_log_schema.json
"""

__all__ = [
    "FILE_LEVEL",
    "ErrorRecord",
]

FILE_LEVEL = "<FILE_LEVEL>"


@dataclass(frozen=True)
class ErrorRecord:
    """One JSON Lines entry of the error log.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file_id: FileRecord id of the failed upload
        file: Uploaded file name
        file_key: Blob store key of the raw upload
        error_type: PARSE_ERROR, STORAGE_ERROR or STORE_ERROR
        message: Failure reason, as stored on the FileRecord
        sheet: Sheet name, ``<FILE_LEVEL>`` when the whole file failed
        row: 1-based data row, -1 when the whole file failed
    """
    timestamp: str
    file_id: int
    file: str
    file_key: str
    error_type: str
    message: str
    sheet: str = FILE_LEVEL
    row: int = -1

    @classmethod
    def for_file(cls, record: FileRecord, error_type: str, message: str) -> ErrorRecord:
        return cls(
            timestamp=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            file_id=record.id,
            file=record.file_name,
            file_key=record.file_key,
            error_type=error_type,
            message=message,
        )

    @property
    def is_file_level(self) -> bool:
        return self.sheet == FILE_LEVEL

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
