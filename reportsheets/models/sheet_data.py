from __future__ import annotations

from dataclasses import dataclass
from typing import Union

"""Sheet models.

ParsedSheet is what the spreadsheet reader produces; SheetData is the same
content once it is stored against a file and a sheet position.
"""

__all__ = [
    "Cell",
    "ParsedSheet",
    "SheetData",
    "SheetSummary",
    "column_count_of",
]

Cell = Union[str, int, float, bool]


def column_count_of(headers: list[str], rows: list[list[Cell]]) -> int:
    """Widest of the header row and every data row (ragged input allowed)."""
    widest = len(headers)
    for row in rows:
        if len(row) > widest:
            widest = len(row)
    return widest


@dataclass(frozen=True)
class ParsedSheet:
    sheet_name: str
    headers: list[str]
    rows: list[list[Cell]]

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return column_count_of(self.headers, self.rows)


@dataclass(frozen=True)
class SheetData:
    """One stored worksheet of an uploaded file.

    ``sheet_index`` is the 0-based position of the sheet in the workbook.
    """
    file_id: int
    sheet_name: str
    sheet_index: int
    headers: list[str]
    rows: list[list[Cell]]
    row_count: int
    column_count: int

    @classmethod
    def from_parsed(cls, file_id: int, sheet_index: int, parsed: ParsedSheet) -> SheetData:
        return cls(
            file_id=file_id,
            sheet_name=parsed.sheet_name,
            sheet_index=sheet_index,
            headers=list(parsed.headers),
            rows=[list(r) for r in parsed.rows],
            row_count=parsed.row_count,
            column_count=parsed.column_count,
        )

    def summary(self) -> SheetSummary:
        return SheetSummary(
            sheet_index=self.sheet_index,
            sheet_name=self.sheet_name,
            row_count=self.row_count,
            column_count=self.column_count,
        )


@dataclass(frozen=True)
class SheetSummary:
    sheet_index: int
    sheet_name: str
    row_count: int = 0
    column_count: int = 0
