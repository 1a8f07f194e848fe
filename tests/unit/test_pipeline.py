from __future__ import annotations

from pathlib import Path

import pytest

from reportsheets.db.errors import NotFoundError, StoreError
from reportsheets.db.memory import InMemoryFileRepository, InMemorySheetStore
from reportsheets.models.file_record import FileStatus
from reportsheets.services.pipeline import IngestionPipeline
from reportsheets.storage.blob import LocalBlobStore, StorageError

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SALES = {
    "Q1": [["部門", "金額"], ["A", 10], ["B", 5], ["A", 1]],
    "Q2": [["x"], [1]],
}


def _blob_path(pipeline: IngestionPipeline, file_key: str) -> Path:
    return pipeline.blobs.root / file_key


class FailingBlobStore(LocalBlobStore):
    def put(self, data, file_name, user_id=None):
        raise StorageError("bucket unavailable")


class FailingSheetStore(InMemorySheetStore):
    def replace_all(self, file_id, sheets):
        raise StoreError("connection reset")


def test_ingest_parses_every_sheet(pipeline, make_xlsx):
    data = make_xlsx(SALES)
    rec = pipeline.ingest(data, "sales.xlsx", XLSX_MIME, len(data), user_id=7)

    assert rec.status is FileStatus.COMPLETED
    assert rec.sheet_names == ["Q1", "Q2"]
    assert rec.row_count == 4
    assert rec.column_count == 2
    assert rec.error is None
    assert rec.user_id == 7

    summaries = pipeline.get_sheets(rec.id)
    assert [(s.sheet_index, s.sheet_name, s.row_count) for s in summaries] == [
        (0, "Q1", 3),
        (1, "Q2", 1),
    ]
    series = pipeline.aggregate(rec.id, 0, 0, 1)
    assert series.to_list() == [{"label": "A", "value": 11.0}, {"label": "B", "value": 5.0}]


def test_ingest_csv_with_thousands_separator(pipeline):
    data = 'name,amount\nA,"1,200"\nB,3\nA,0.5\n'.encode("utf-8")
    rec = pipeline.ingest(data, "ledger.csv", "text/csv", len(data))

    assert rec.status is FileStatus.COMPLETED
    assert rec.sheet_names == ["ledger"]
    series = pipeline.aggregate(rec.id, 0, 0, 1)
    assert series.to_list() == [{"label": "A", "value": 1200.5}, {"label": "B", "value": 3.0}]


def test_corrupt_upload_ends_failed_without_sheets(pipeline):
    data = b"definitely not a workbook"
    rec = pipeline.ingest(data, "bad.xlsx", XLSX_MIME, len(data))

    assert rec.status is FileStatus.FAILED
    assert rec.error
    assert pipeline.get_sheets(rec.id) == []
    assert pipeline.get_file(rec.id).status is FileStatus.FAILED

    records = pipeline.error_log.records
    assert len(records) == 1
    assert records[0].error_type == "PARSE_ERROR"
    assert records[0].file == "bad.xlsx"
    assert records[0].row == -1
    assert (records[0].file_id, records[0].file_key) == (rec.id, rec.file_key)
    assert pipeline.error_log.failed_file_ids() == [rec.id]


def test_reparse_is_idempotent(pipeline, make_xlsx):
    data = make_xlsx(SALES)
    rec = pipeline.ingest(data, "sales.xlsx", XLSX_MIME, len(data))
    before = pipeline.sheets.list_sheets(rec.id)

    again = pipeline.reparse(rec.id)
    after = pipeline.sheets.list_sheets(rec.id)
    assert again.status is FileStatus.COMPLETED
    assert again.row_count == rec.row_count
    assert [(s.sheet_name, s.headers, s.rows) for s in after] == [
        (s.sheet_name, s.headers, s.rows) for s in before
    ]


def test_failed_reparse_keeps_previous_sheets(pipeline, make_xlsx):
    data = make_xlsx(SALES)
    rec = pipeline.ingest(data, "sales.xlsx", XLSX_MIME, len(data))
    _blob_path(pipeline, rec.file_key).write_bytes(b"overwritten with junk")

    failed = pipeline.reparse(rec.id)
    assert failed.status is FileStatus.FAILED
    assert failed.sheet_names == ["Q1", "Q2"]
    assert [s.sheet_name for s in pipeline.get_sheets(rec.id)] == ["Q1", "Q2"]
    assert pipeline.aggregate(rec.id, 0, 0, 1).labels == ["A", "B"]

    _blob_path(pipeline, rec.file_key).write_bytes(data)
    assert pipeline.reparse(rec.id).status is FileStatus.COMPLETED


def test_storage_failure_on_upload_records_nothing(tmp_path):
    pipeline = IngestionPipeline(
        InMemoryFileRepository(), InMemorySheetStore(), FailingBlobStore(tmp_path)
    )
    with pytest.raises(StorageError):
        pipeline.ingest(b"a,b\n1,2\n", "x.csv", "text/csv", 8)
    assert pipeline.list_files() == []


def test_storage_failure_on_reparse_marks_failed(pipeline, make_xlsx):
    data = make_xlsx(SALES)
    rec = pipeline.ingest(data, "sales.xlsx", XLSX_MIME, len(data))
    _blob_path(pipeline, rec.file_key).unlink()

    with pytest.raises(StorageError):
        pipeline.reparse(rec.id)
    assert pipeline.get_file(rec.id).status is FileStatus.FAILED
    assert [r.error_type for r in pipeline.error_log.records] == ["STORAGE_ERROR"]


def test_store_failure_marks_failed_and_raises(tmp_path):
    pipeline = IngestionPipeline(
        InMemoryFileRepository(), FailingSheetStore(), LocalBlobStore(tmp_path)
    )
    with pytest.raises(StoreError):
        pipeline.ingest(b"a,b\n1,2\n", "x.csv", "text/csv", 8)
    [rec] = pipeline.list_files()
    assert rec.status is FileStatus.FAILED
    assert rec.error == "connection reset"


def test_unknown_ids_raise_not_found(pipeline, make_xlsx):
    with pytest.raises(NotFoundError):
        pipeline.get_sheets(99)
    with pytest.raises(NotFoundError):
        pipeline.aggregate(99, 0, 0, 1)
    with pytest.raises(NotFoundError):
        pipeline.reparse(99)

    data = make_xlsx(SALES)
    rec = pipeline.ingest(data, "sales.xlsx", XLSX_MIME, len(data))
    with pytest.raises(NotFoundError):
        pipeline.aggregate(rec.id, 2, 0, 1)


def test_delete_removes_record_sheets_and_blob(pipeline, make_xlsx):
    data = make_xlsx(SALES)
    rec = pipeline.ingest(data, "sales.xlsx", XLSX_MIME, len(data))
    blob = _blob_path(pipeline, rec.file_key)
    assert blob.exists()

    pipeline.delete(rec.id)
    assert not blob.exists()
    assert pipeline.sheets.list_sheets(rec.id) == []
    with pytest.raises(NotFoundError):
        pipeline.get_file(rec.id)
    with pytest.raises(NotFoundError):
        pipeline.delete(rec.id)


def test_analyze_uses_name_preset_and_overrides(pipeline, make_xlsx):
    data = make_xlsx({"日報": [["日期", "摘要", "金額"], ["0501", "x", 3], ["0501", "y", 4]]})
    rec = pipeline.ingest(data, "資金日報.xlsx", XLSX_MIME, len(data))

    analysis = pipeline.analyze(rec.id)
    assert (analysis.x_axis_column, analysis.y_axis_column) == (0, 2)
    assert analysis.sheet_name == "日報"
    assert analysis.headers == ["日期", "摘要", "金額"]
    assert analysis.total_rows == 2
    assert analysis.to_dict()["chart_data"] == [{"label": "0501", "value": 7.0}]

    by_memo = pipeline.analyze(rec.id, x_axis_column=1)
    assert by_memo.series.labels == ["x", "y"]


def test_analyze_falls_back_to_default_axes(pipeline, make_xlsx):
    data = make_xlsx(SALES)
    rec = pipeline.ingest(data, "sales.xlsx", XLSX_MIME, len(data))
    analysis = pipeline.analyze(rec.id)
    assert (analysis.x_axis_column, analysis.y_axis_column) == (0, 1)


def test_reparse_all_counts_outcomes(pipeline, make_xlsx):
    data = make_xlsx(SALES)
    good = pipeline.ingest(data, "a.xlsx", XLSX_MIME, len(data), user_id=1)
    pipeline.ingest(data, "b.xlsx", XLSX_MIME, len(data), user_id=1)
    gone = pipeline.ingest(data, "c.xlsx", XLSX_MIME, len(data), user_id=1)
    pipeline.ingest(data, "other.xlsx", XLSX_MIME, len(data), user_id=2)
    _blob_path(pipeline, gone.file_key).unlink()

    result = pipeline.reparse_all(user_id=1)
    assert result.total_files == 3
    assert result.completed_files == 2
    assert result.failed_files == 1
    assert result.total_rows == 2 * good.row_count
    by_name = {s.file_name: s for s in result.file_stats}
    assert by_name["c.xlsx"].status == "failed"
    assert by_name["c.xlsx"].error
    assert by_name["a.xlsx"].status == "completed"
