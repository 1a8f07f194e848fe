from __future__ import annotations

import csv
import io
import math
from datetime import date, datetime, time
from typing import Any

import numpy as np
import pandas as pd

from ..models.sheet_data import Cell, ParsedSheet

"""Spreadsheet reader.

Turns the raw bytes of an uploaded .xlsx/.xls/.csv file into ParsedSheets:
- first row of every worksheet is the header row, the rest are data rows
- cell types are kept where the format has them (Excel); CSV cells are text
- missing cells become "" and trailing empty cells are trimmed per row, so
  rows may be ragged
- rows with no content at all are dropped

No NA-string conversion is applied: "NA", "N/A", "null" and friends stay
text, only truly empty cells are empty.
"""

__all__ = [
    "ParseError",
    "CSV_MIME_TYPES",
    "is_csv",
    "read_excel_sheets",
    "read_csv_sheet",
    "normalize_sheet",
    "parse_spreadsheet",
]

CSV_MIME_TYPES = frozenset({"text/csv", "application/csv", "text/comma-separated-values"})
CSV_ENCODINGS = ("utf-8-sig", "cp950")


class ParseError(Exception):
    """Raised when a buffer is not a readable spreadsheet container."""


def is_csv(mime_hint: str | None, file_name: str | None = None) -> bool:
    if mime_hint and mime_hint.split(";")[0].strip().lower() in CSV_MIME_TYPES:
        return True
    return bool(file_name) and file_name.lower().endswith(".csv")


def read_excel_sheets(buffer: bytes) -> dict[str, pd.DataFrame]:
    """Read every worksheet of an xlsx/xls workbook, in workbook order.

    pandas picks the engine from the content (openpyxl for the zip based
    format, xlrd for the legacy binary one).
    """
    try:
        xls = pd.ExcelFile(io.BytesIO(buffer))
    except Exception as e:
        raise ParseError(f"unrecognised workbook: {e}") from e

    dfs: dict[str, pd.DataFrame] = {}
    with xls:
        for name in xls.sheet_names:
            try:
                dfs[str(name)] = xls.parse(name, header=None, keep_default_na=False, na_values=[])
            except Exception as e:
                raise ParseError(f"sheet '{name}' could not be read: {e}") from e
    return dfs


def read_csv_sheet(buffer: bytes) -> pd.DataFrame:
    """Read a CSV buffer as a single text-only sheet.

    Rows are tokenized first so that lines longer than the header do not
    abort the read; the frame is padded with None where rows are shorter.
    """
    text: str | None = None
    for encoding in CSV_ENCODINGS:
        try:
            text = buffer.decode(encoding)
            break
        except UnicodeDecodeError:
            continue
    if text is None:
        raise ParseError(f"csv is not decodable as any of {', '.join(CSV_ENCODINGS)}")
    try:
        lines = list(csv.reader(io.StringIO(text, newline="")))
    except csv.Error as e:
        raise ParseError(f"malformed csv: {e}") from e
    return pd.DataFrame(lines, dtype=object)


def _to_cell(val: Any) -> Cell:
    if val is None:
        return ""
    if isinstance(val, np.generic):
        val = val.item()
    if isinstance(val, pd.Timestamp):
        if pd.isna(val):
            return ""
        return val.isoformat()
    if isinstance(val, (datetime, date, time)):
        return val.isoformat()
    if isinstance(val, bool):
        return val
    if isinstance(val, float):
        if math.isnan(val):
            return ""
        if val.is_integer() and abs(val) < 2**53:
            return int(val)
        return val
    if isinstance(val, (int, str)):
        return val
    if pd.isna(val):
        return ""
    return str(val)


def _trim_trailing(cells: list[Cell]) -> list[Cell]:
    end = len(cells)
    while end > 0 and cells[end - 1] == "":
        end -= 1
    return cells[:end]


def normalize_sheet(df: pd.DataFrame, sheet_name: str) -> ParsedSheet:
    """Split a header-less frame into header row and data rows.

    The header is the first row with content: a sheet whose used range
    starts below row 1 comes back from pandas with blank leading rows.
    """
    raw_rows = [
        _trim_trailing([_to_cell(v) for v in row])
        for row in df.itertuples(index=False, name=None)
    ]
    filled = [r for r in raw_rows if r]
    if not filled:
        return ParsedSheet(sheet_name=sheet_name, headers=[], rows=[])
    headers = [str(c) for c in filled[0]]
    rows = filled[1:]
    return ParsedSheet(sheet_name=sheet_name, headers=headers, rows=rows)


def parse_spreadsheet(
    buffer: bytes, mime_hint: str | None = None, file_name: str | None = None
) -> list[ParsedSheet]:
    """Parse an uploaded file into its sheets, in workbook order.

    CSV is chosen when the MIME hint or file name says so; anything else is
    treated as a workbook. A CSV upload yields one sheet named after the
    file (without extension), or ``Sheet1`` when no name is known.

    Raises:
        ParseError: the buffer is empty, corrupt or not a spreadsheet
    """
    if not buffer:
        raise ParseError("empty file")
    if is_csv(mime_hint, file_name):
        sheet_name = "Sheet1"
        if file_name:
            stem = file_name.rsplit("/", 1)[-1]
            sheet_name = stem[:-4] if stem.lower().endswith(".csv") else stem
        return [normalize_sheet(read_csv_sheet(buffer), sheet_name or "Sheet1")]
    return [normalize_sheet(df, name) for name, df in read_excel_sheets(buffer).items()]
