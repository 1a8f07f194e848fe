from __future__ import annotations

import json
import pathlib

import jsonschema
import pytest

from reportsheets.models.error_record import ErrorRecord
from reportsheets.models.file_record import FileRecord

"""Error log JSON schema contract test."""

SCHEMA_PATH = pathlib.Path(__file__).parents[2] / "reportsheets" / "logging" / "error_log_schema.json"

UPLOAD = FileRecord(
    id=12,
    file_name="資金日報.xlsx",
    file_key="excel/3/5f0c2d1e-資金日報.xlsx",
    file_url="file:///srv/blobs/excel/3/5f0c2d1e-資金日報.xlsx",
    file_size=20480,
    user_id=3,
)


@pytest.fixture(scope="module")
def schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def _valid() -> dict:
    return {
        "timestamp": "2025-09-26T10:12:33Z",
        "file_id": 12,
        "file": "資金日報.xlsx",
        "file_key": "excel/3/5f0c2d1e-資金日報.xlsx",
        "error_type": "PARSE_ERROR",
        "message": "unrecognised workbook: Excel file format cannot be determined",
        "sheet": "<FILE_LEVEL>",
        "row": -1,
    }


def test_error_log_schema_valid_example(schema):
    jsonschema.validate(_valid(), schema)


def test_error_log_schema_rejects_extra_key(schema):
    record = _valid()
    record["extra"] = "not allowed"
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(record, schema)


@pytest.mark.parametrize("missing", ["file_id", "file_key"])
def test_error_log_schema_requires_file_reference(schema, missing):
    record = _valid()
    del record[missing]
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(record, schema)


@pytest.mark.parametrize(
    "field,value",
    [
        ("row", -2),
        ("file_id", 0),
        ("file_id", "12"),
        ("file_key", ""),
        ("error_type", "parse error"),
        ("timestamp", "2025-09-26 10:12:33"),
    ],
)
def test_error_log_schema_rejects_bad_values(schema, field, value):
    data = json.loads(ErrorRecord.for_file(UPLOAD, "PARSE_ERROR", "corrupt").to_json_line())
    data[field] = value
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(data, schema)


@pytest.mark.parametrize("error_type", ["PARSE_ERROR", "STORAGE_ERROR", "STORE_ERROR"])
def test_created_records_conform(schema, error_type):
    record = ErrorRecord.for_file(UPLOAD, error_type, "boom")
    jsonschema.validate(json.loads(record.to_json_line()), schema)
