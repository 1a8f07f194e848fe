from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from psycopg2.extras import Json

from ..models.file_record import FileRecord, FileStatus
from ..models.sheet_data import ParsedSheet, SheetData
from .base import FileRepository, SheetStore
from .batch_insert import BatchMetrics, batch_insert
from .errors import NotFoundError, StoreError

"""PostgreSQL stores.

The cursor is expected to come from a connection in autocommit mode;
multi-statement writes open their own BEGIN/COMMIT block and roll back on
any failure.

Sheet replacement is a version swap: rows of the new sheet set are
inserted under a fresh ``version`` marker, ``file_records.sheet_version``
is pointed at it, and older versions are deleted, all in one transaction.
Readers join on the active version, so a single SELECT never mixes sets.
"""

__all__ = [
    "SCHEMA_SQL",
    "ensure_schema",
    "PostgresSheetStore",
    "PostgresFileRepository",
]

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS file_records (
    id BIGSERIAL PRIMARY KEY,
    user_id BIGINT,
    file_name VARCHAR(255) NOT NULL,
    file_key VARCHAR(512) NOT NULL,
    file_url TEXT NOT NULL,
    file_size BIGINT NOT NULL,
    mime_type VARCHAR(100),
    uploaded_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    status VARCHAR(16) NOT NULL DEFAULT 'processing'
        CHECK (status IN ('processing', 'completed', 'failed')),
    sheet_names JSONB NOT NULL DEFAULT '[]'::jsonb,
    row_count INTEGER NOT NULL DEFAULT 0,
    column_count INTEGER NOT NULL DEFAULT 0,
    error TEXT,
    sheet_version VARCHAR(32)
);
CREATE TABLE IF NOT EXISTS sheet_data (
    id BIGSERIAL PRIMARY KEY,
    file_id BIGINT NOT NULL REFERENCES file_records(id) ON DELETE CASCADE,
    version VARCHAR(32) NOT NULL,
    sheet_index INTEGER NOT NULL,
    sheet_name VARCHAR(255) NOT NULL,
    headers JSONB NOT NULL,
    data JSONB NOT NULL,
    row_count INTEGER NOT NULL,
    column_count INTEGER NOT NULL,
    UNIQUE (file_id, version, sheet_index)
);
CREATE INDEX IF NOT EXISTS file_records_user_idx ON file_records (user_id, uploaded_at DESC);
"""

RECORD_COLUMNS = (
    "id, user_id, file_name, file_key, file_url, file_size, mime_type, uploaded_at, "
    "status, sheet_names, row_count, column_count, error"
)

SHEET_INSERT_COLUMNS = (
    "file_id",
    "version",
    "sheet_index",
    "sheet_name",
    "headers",
    "data",
    "row_count",
    "column_count",
)

ACTIVE_SHEETS_SQL = """
SELECT s.file_id, s.sheet_name, s.sheet_index, s.headers, s.data, s.row_count, s.column_count
FROM sheet_data s
JOIN file_records f ON f.id = s.file_id AND f.sheet_version = s.version
WHERE s.file_id = %s
"""


def ensure_schema(cursor: Any) -> None:
    cursor.execute(SCHEMA_SQL)


@contextmanager
def _transaction(cursor: Any) -> Iterator[None]:
    cursor.execute("BEGIN")
    try:
        yield
    except BaseException:
        try:
            cursor.execute("ROLLBACK")
        except Exception:
            logger.exception("rollback failed")
        raise
    cursor.execute("COMMIT")


def _row_to_sheet(row: Sequence[Any]) -> SheetData:
    file_id, sheet_name, sheet_index, headers, data, row_count, column_count = row
    return SheetData(
        file_id=file_id,
        sheet_name=sheet_name,
        sheet_index=sheet_index,
        headers=list(headers),
        rows=[list(r) for r in data],
        row_count=row_count,
        column_count=column_count,
    )


def _row_to_record(row: Sequence[Any]) -> FileRecord:
    (
        file_id, user_id, file_name, file_key, file_url, file_size, mime_type,
        uploaded_at, status, sheet_names, row_count, column_count, error,
    ) = row
    return FileRecord(
        id=file_id,
        user_id=user_id,
        file_name=file_name,
        file_key=file_key,
        file_url=file_url,
        file_size=file_size,
        mime_type=mime_type,
        uploaded_at=uploaded_at,
        status=FileStatus(status),
        sheet_names=list(sheet_names or []),
        row_count=row_count,
        column_count=column_count,
        error=error,
    )


class PostgresSheetStore(SheetStore):
    def __init__(self, cursor: Any, page_size: int = 1000) -> None:
        self.cursor = cursor
        self.page_size = page_size

    def _log_batch(self, metrics: BatchMetrics) -> None:
        logger.debug(
            f"sheet_data batch rows={metrics.batch_size} elapsed={metrics.elapsed_seconds:.4f}s"
        )

    def replace_all(self, file_id: int, sheets: Sequence[ParsedSheet]) -> list[SheetData]:
        version = uuid.uuid4().hex
        stored = [SheetData.from_parsed(file_id, i, s) for i, s in enumerate(sheets)]
        values = [
            (
                file_id,
                version,
                s.sheet_index,
                s.sheet_name,
                Json(s.headers),
                Json(s.rows),
                s.row_count,
                s.column_count,
            )
            for s in stored
        ]
        cur = self.cursor
        try:
            with _transaction(cur):
                cur.execute("SELECT id FROM file_records WHERE id = %s FOR UPDATE", (file_id,))
                if cur.fetchone() is None:
                    raise NotFoundError(f"file {file_id} not found")
                batch_insert(
                    cur,
                    "sheet_data",
                    SHEET_INSERT_COLUMNS,
                    values,
                    page_size=self.page_size,
                    metrics_callback=self._log_batch,
                )
                cur.execute(
                    "UPDATE file_records SET sheet_version = %s WHERE id = %s",
                    (version, file_id),
                )
                cur.execute(
                    "DELETE FROM sheet_data WHERE file_id = %s AND version <> %s",
                    (file_id, version),
                )
        except NotFoundError:
            raise
        except Exception as e:
            raise StoreError(f"replacing sheets of file {file_id} failed: {e}") from e
        logger.debug(f"file {file_id} sheets replaced version={version} sheets={len(stored)}")
        return stored

    def get_sheet(self, file_id: int, sheet_index: int) -> SheetData:
        self.cursor.execute(ACTIVE_SHEETS_SQL + " AND s.sheet_index = %s", (file_id, sheet_index))
        row = self.cursor.fetchone()
        if row is None:
            raise NotFoundError(f"sheet {sheet_index} of file {file_id} not found")
        return _row_to_sheet(row)

    def list_sheets(self, file_id: int) -> list[SheetData]:
        self.cursor.execute(ACTIVE_SHEETS_SQL + " ORDER BY s.sheet_index", (file_id,))
        return [_row_to_sheet(r) for r in self.cursor.fetchall()]

    def list_sheet_names(self, file_id: int) -> list[str]:
        self.cursor.execute(
            "SELECT s.sheet_name FROM sheet_data s "
            "JOIN file_records f ON f.id = s.file_id AND f.sheet_version = s.version "
            "WHERE s.file_id = %s ORDER BY s.sheet_index",
            (file_id,),
        )
        return [r[0] for r in self.cursor.fetchall()]

    def delete_all_for_file(self, file_id: int) -> None:
        cur = self.cursor
        try:
            with _transaction(cur):
                cur.execute("UPDATE file_records SET sheet_version = NULL WHERE id = %s", (file_id,))
                cur.execute("DELETE FROM sheet_data WHERE file_id = %s", (file_id,))
        except Exception as e:
            raise StoreError(f"deleting sheets of file {file_id} failed: {e}") from e


class PostgresFileRepository(FileRepository):
    def __init__(self, cursor: Any) -> None:
        self.cursor = cursor

    def _fetch_one(self, file_id: int) -> FileRecord:
        row = self.cursor.fetchone()
        if row is None:
            raise NotFoundError(f"file {file_id} not found")
        return _row_to_record(row)

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
        try:
            self.cursor.execute(
                "INSERT INTO file_records (user_id, file_name, file_key, file_url, file_size, mime_type) "
                f"VALUES (%s, %s, %s, %s, %s, %s) RETURNING {RECORD_COLUMNS}",
                (user_id, file_name, file_key, file_url, file_size, mime_type),
            )
            row = self.cursor.fetchone()
        except Exception as e:
            raise StoreError(f"creating file record for {file_name} failed: {e}") from e
        return _row_to_record(row)

    def get(self, file_id: int) -> FileRecord:
        self.cursor.execute(f"SELECT {RECORD_COLUMNS} FROM file_records WHERE id = %s", (file_id,))
        return self._fetch_one(file_id)

    def list(self, user_id: int | None = None) -> list[FileRecord]:
        if user_id is None:
            self.cursor.execute(
                f"SELECT {RECORD_COLUMNS} FROM file_records ORDER BY uploaded_at DESC, id DESC"
            )
        else:
            self.cursor.execute(
                f"SELECT {RECORD_COLUMNS} FROM file_records WHERE user_id = %s "
                "ORDER BY uploaded_at DESC, id DESC",
                (user_id,),
            )
        return [_row_to_record(r) for r in self.cursor.fetchall()]

    def mark_completed(
        self, file_id: int, sheet_names: list[str], row_count: int, column_count: int
    ) -> FileRecord:
        self.cursor.execute(
            "UPDATE file_records SET status = 'completed', sheet_names = %s, row_count = %s, "
            f"column_count = %s, error = NULL WHERE id = %s RETURNING {RECORD_COLUMNS}",
            (Json(list(sheet_names)), row_count, column_count, file_id),
        )
        return self._fetch_one(file_id)

    def mark_failed(self, file_id: int, reason: str) -> FileRecord:
        self.cursor.execute(
            "UPDATE file_records SET status = 'failed', error = %s "
            f"WHERE id = %s RETURNING {RECORD_COLUMNS}",
            (reason, file_id),
        )
        return self._fetch_one(file_id)

    def delete(self, file_id: int) -> None:
        # sheet_data rows go with it (ON DELETE CASCADE)
        self.cursor.execute("DELETE FROM file_records WHERE id = %s", (file_id,))
        if self.cursor.rowcount == 0:
            raise NotFoundError(f"file {file_id} not found")
