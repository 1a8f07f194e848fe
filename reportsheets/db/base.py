from __future__ import annotations

from collections.abc import Sequence

from ..models.file_record import FileRecord
from ..models.sheet_data import ParsedSheet, SheetData

"""Persistence interfaces.

Two implementations exist: reportsheets.db.postgres (psycopg2) and
reportsheets.db.memory (mock mode and tests). The pipeline only talks to
these interfaces.
"""

__all__ = [
    "SheetStore",
    "FileRepository",
]


class SheetStore:
    """Stored worksheets, grouped per file.

    ``replace_all`` swaps the whole sheet set of a file at once: a reader
    sees either the previous set or the new one, never a mix.
    """

    def replace_all(self, file_id: int, sheets: Sequence[ParsedSheet]) -> list[SheetData]:
        raise NotImplementedError

    def get_sheet(self, file_id: int, sheet_index: int) -> SheetData:
        raise NotImplementedError

    def list_sheets(self, file_id: int) -> list[SheetData]:
        raise NotImplementedError

    def list_sheet_names(self, file_id: int) -> list[str]:
        return [s.sheet_name for s in self.list_sheets(file_id)]

    def delete_all_for_file(self, file_id: int) -> None:
        raise NotImplementedError


class FileRepository:
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
        raise NotImplementedError

    def get(self, file_id: int) -> FileRecord:
        raise NotImplementedError

    def list(self, user_id: int | None = None) -> list[FileRecord]:
        raise NotImplementedError

    def mark_completed(
        self, file_id: int, sheet_names: list[str], row_count: int, column_count: int
    ) -> FileRecord:
        raise NotImplementedError

    def mark_failed(self, file_id: int, reason: str) -> FileRecord:
        raise NotImplementedError

    def delete(self, file_id: int) -> None:
        raise NotImplementedError
