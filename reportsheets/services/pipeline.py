from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime

from ..db.base import FileRepository, SheetStore
from ..db.errors import StoreError
from ..excel.reader import ParseError, parse_spreadsheet
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.chart_series import ChartAnalysis, ChartSeries
from ..models.config_models import ChartConfig
from ..models.file_record import FileRecord, FileStatus
from ..models.processing_result import FileStat, ReparseResult
from ..models.sheet_data import ParsedSheet, SheetSummary
from ..storage.blob import BlobStore, StorageError
from .aggregator import aggregate as aggregate_sheet
from .aggregator import default_axes
from .progress import ReparseProgress

"""Ingestion pipeline.

upload: blob put -> FileRecord(processing) -> parse -> replace sheets ->
FileRecord(completed | failed).

A parse failure is an outcome, not an exception: the record is marked
failed, the reason lands in the error log and the record is returned.
Storage and database failures propagate to the caller after the record
(when one exists) has been marked failed.
"""

__all__ = [
    "IngestionPipeline",
]

logger = logging.getLogger(__name__)


class IngestionPipeline:
    def __init__(
        self,
        files: FileRepository,
        sheets: SheetStore,
        blobs: BlobStore,
        charts: ChartConfig | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.files = files
        self.sheets = sheets
        self.blobs = blobs
        self.charts = charts if charts is not None else ChartConfig()
        self.error_log = error_log

    # -- write side -------------------------------------------------------

    def ingest(
        self,
        file_bytes: bytes,
        file_name: str,
        mime_type: str | None,
        size: int,
        user_id: int | None = None,
    ) -> FileRecord:
        """Store, parse and persist one uploaded file.

        Upload validation (type, size, name length) is the caller's job.

        Raises:
            StorageError: the blob could not be stored; nothing was recorded
            StoreError: the database rejected the sheet rows
        """
        blob = self.blobs.put(file_bytes, file_name, user_id)
        try:
            record = self.files.create(
                file_name=file_name,
                file_key=blob.key,
                file_url=blob.url,
                file_size=size,
                mime_type=mime_type,
                user_id=user_id,
            )
        except Exception:
            self._discard_blob(blob.key)
            raise
        logger.info(f"file {record.id} uploaded name={file_name} bytes={size}")
        return self._parse_into(record, file_bytes)

    def reparse(self, file_id: int) -> FileRecord:
        """Parse the stored blob of an existing file again.

        Idempotent: the sheet set is replaced as a whole. When parsing fails
        the previously stored sheets stay untouched.

        Raises:
            NotFoundError: unknown file id
            StorageError: the blob could not be read (record marked failed)
        """
        record = self.files.get(file_id)
        try:
            data = self.blobs.get(record.file_url)
        except StorageError as e:
            self._fail(record, "STORAGE_ERROR", str(e))
            raise
        return self._parse_into(record, data)

    def reparse_all(self, user_id: int | None = None) -> ReparseResult:
        """Re-parse every stored file, counting failures instead of raising them."""
        start_time = datetime.now(UTC)
        records = self.files.list(user_id)
        stats: list[FileStat] = []

        with ReparseProgress(len(records)) as progress:
            for record in records:
                progress.start_file(record.file_name)
                file_start = datetime.now(UTC)
                try:
                    result = self.reparse(record.id)
                    status, rows, error = result.status, result.row_count, result.error
                except (StorageError, StoreError) as e:
                    status, rows, error = FileStatus.FAILED, 0, str(e)
                ok = status is FileStatus.COMPLETED
                progress.finish_file(ok, rows)
                stats.append(
                    FileStat(
                        file_id=record.id,
                        file_name=record.file_name,
                        status=status.value,
                        rows=rows if ok else 0,
                        elapsed_seconds=(datetime.now(UTC) - file_start).total_seconds(),
                        error=error,
                    )
                )

        end_time = datetime.now(UTC)
        return ReparseResult(
            completed_files=progress.completed,
            failed_files=progress.failed,
            total_rows=progress.rows,
            start_time=start_time,
            end_time=end_time,
            elapsed_seconds=(end_time - start_time).total_seconds(),
            file_stats=stats,
        )

    def delete(self, file_id: int) -> None:
        """Remove a file: blob first, then its sheets and record."""
        record = self.files.get(file_id)
        self.blobs.delete(record.file_key)
        self.sheets.delete_all_for_file(file_id)
        self.files.delete(file_id)
        logger.info(f"file {file_id} deleted name={record.file_name}")

    # -- read side --------------------------------------------------------

    def get_file(self, file_id: int) -> FileRecord:
        return self.files.get(file_id)

    def list_files(self, user_id: int | None = None) -> list[FileRecord]:
        return self.files.list(user_id)

    def get_sheets(self, file_id: int) -> list[SheetSummary]:
        self.files.get(file_id)
        return [s.summary() for s in self.sheets.list_sheets(file_id)]

    def aggregate(
        self, file_id: int, sheet_index: int, x_axis_column: int, y_axis_column: int
    ) -> ChartSeries:
        sheet = self.sheets.get_sheet(file_id, sheet_index)
        return aggregate_sheet(sheet, x_axis_column, y_axis_column)

    def analyze(
        self,
        file_id: int,
        sheet_index: int | None = None,
        x_axis_column: int | None = None,
        y_axis_column: int | None = None,
    ) -> ChartAnalysis:
        """Chart series plus sheet context; unset arguments use defaults.

        The sheet defaults to the first one; axes come from the file-name
        presets or the configured defaults.
        """
        record = self.files.get(file_id)
        index = 0 if sheet_index is None else sheet_index
        sheet = self.sheets.get_sheet(file_id, index)
        preset_x, preset_y = default_axes(record.file_name, self.charts)
        x = preset_x if x_axis_column is None else x_axis_column
        y = preset_y if y_axis_column is None else y_axis_column
        return ChartAnalysis(
            file_id=file_id,
            sheet_index=index,
            sheet_name=sheet.sheet_name,
            headers=list(sheet.headers),
            total_rows=sheet.row_count,
            x_axis_column=x,
            y_axis_column=y,
            series=aggregate_sheet(sheet, x, y),
        )

    # -- internals --------------------------------------------------------

    def _parse_into(self, record: FileRecord, data: bytes) -> FileRecord:
        try:
            parsed = parse_spreadsheet(data, record.mime_type, record.file_name)
        except ParseError as e:
            return self._fail(record, "PARSE_ERROR", str(e))

        try:
            self.sheets.replace_all(record.id, parsed)
        except StoreError as e:
            self._fail(record, "STORE_ERROR", str(e))
            raise

        names, row_count, column_count = _totals(parsed)
        updated = self.files.mark_completed(record.id, names, row_count, column_count)
        logger.info(
            f"file {record.id} parsed sheets={len(names)} rows={row_count} columns={column_count}"
        )
        return updated

    def _fail(self, record: FileRecord, error_type: str, message: str) -> FileRecord:
        logger.error(f"file {record.id} ({record.file_name}) {error_type}: {message}")
        if self.error_log is not None:
            self.error_log.append(ErrorRecord.for_file(record, error_type, message))
        return self.files.mark_failed(record.id, message)

    def _discard_blob(self, key: str) -> None:
        try:
            self.blobs.delete(key)
        except StorageError:
            logger.warning(f"orphaned blob left behind key={key}")


def _totals(parsed: Sequence[ParsedSheet]) -> tuple[list[str], int, int]:
    names = [s.sheet_name for s in parsed]
    row_count = sum(s.row_count for s in parsed)
    column_count = max((s.column_count for s in parsed), default=0)
    return names, row_count, column_count
