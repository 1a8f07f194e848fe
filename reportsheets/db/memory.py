from __future__ import annotations

import itertools
import threading
from collections.abc import Sequence
from datetime import UTC, datetime

from ..models.file_record import FileRecord, FileStatus
from ..models.sheet_data import ParsedSheet, SheetData
from .base import FileRepository, SheetStore
from .errors import NotFoundError

"""In-memory stores (mock mode).

Used when no database is configured (DISABLE_DB_CONNECT=1) and by the test
suite. Sheet sets are kept as immutable per-version arenas; replace_all
builds the new arena without holding the lock and only the pointer flip
happens under it.
"""

__all__ = [
    "InMemorySheetStore",
    "InMemoryFileRepository",
]


class InMemorySheetStore(SheetStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._versions = itertools.count(1)
        self._arenas: dict[tuple[int, int], tuple[SheetData, ...]] = {}
        self._active: dict[int, int] = {}

    def replace_all(self, file_id: int, sheets: Sequence[ParsedSheet]) -> list[SheetData]:
        arena = tuple(SheetData.from_parsed(file_id, i, s) for i, s in enumerate(sheets))
        with self._lock:
            version = next(self._versions)
            self._arenas[(file_id, version)] = arena
            previous = self._active.get(file_id)
            self._active[file_id] = version
            if previous is not None:
                del self._arenas[(file_id, previous)]
        return list(arena)

    def _active_arena(self, file_id: int) -> tuple[SheetData, ...]:
        with self._lock:
            version = self._active.get(file_id)
            if version is None:
                return ()
            return self._arenas[(file_id, version)]

    def get_sheet(self, file_id: int, sheet_index: int) -> SheetData:
        arena = self._active_arena(file_id)
        if sheet_index < 0 or sheet_index >= len(arena):
            raise NotFoundError(f"sheet {sheet_index} of file {file_id} not found")
        return arena[sheet_index]

    def list_sheets(self, file_id: int) -> list[SheetData]:
        return list(self._active_arena(file_id))

    def delete_all_for_file(self, file_id: int) -> None:
        with self._lock:
            version = self._active.pop(file_id, None)
            if version is not None:
                del self._arenas[(file_id, version)]


class InMemoryFileRepository(FileRepository):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._records: dict[int, FileRecord] = {}

    def create(
        self,
        *,
        file_name: str,
        file_key: str,
        file_url: str,
        file_size: int,
        mime_type: str | None,
        user_id: int | None,
    ) -> FileRecord:
        with self._lock:
            record = FileRecord(
                id=next(self._ids),
                file_name=file_name,
                file_key=file_key,
                file_url=file_url,
                file_size=file_size,
                mime_type=mime_type,
                user_id=user_id,
                uploaded_at=datetime.now(UTC),
                status=FileStatus.PROCESSING,
            )
            self._records[record.id] = record
        return record

    def get(self, file_id: int) -> FileRecord:
        with self._lock:
            record = self._records.get(file_id)
        if record is None:
            raise NotFoundError(f"file {file_id} not found")
        return record

    def list(self, user_id: int | None = None) -> list[FileRecord]:
        with self._lock:
            records = list(self._records.values())
        if user_id is not None:
            records = [r for r in records if r.user_id == user_id]
        return sorted(records, key=lambda r: (r.uploaded_at, r.id), reverse=True)

    def _update(self, file_id: int, record: FileRecord) -> FileRecord:
        with self._lock:
            if file_id not in self._records:
                raise NotFoundError(f"file {file_id} not found")
            self._records[file_id] = record
        return record

    def mark_completed(
        self, file_id: int, sheet_names: list[str], row_count: int, column_count: int
    ) -> FileRecord:
        return self._update(file_id, self.get(file_id).completed(sheet_names, row_count, column_count))

    def mark_failed(self, file_id: int, reason: str) -> FileRecord:
        return self._update(file_id, self.get(file_id).failed(reason))

    def delete(self, file_id: int) -> None:
        with self._lock:
            if self._records.pop(file_id, None) is None:
                raise NotFoundError(f"file {file_id} not found")
