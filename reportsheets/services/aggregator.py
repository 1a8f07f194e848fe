from __future__ import annotations

import math
import re
from typing import Any

from ..models.chart_series import ChartPoint, ChartSeries
from ..models.config_models import ChartConfig
from ..models.sheet_data import SheetData

"""Chart aggregation.

Reduces a stored sheet to one (label, value) point per distinct value of
the category column, summing the value column. Spreadsheet data is ragged
and partially numeric, so nothing here raises on cell content:

label  <- cell at x_axis_column
    missing / None / ""          -> "" (unlabeled)
    integral float               -> rendered without ".0"
    anything else                -> str(cell)
value  <- cell at y_axis_column
    int / float                  -> as is (NaN, inf -> 0)
    bool                         -> 0
    str                          -> stripped, "," removed, plain decimal or
                                    exponent text only; 0 otherwise
    missing / None               -> 0

Labels keep first-seen order.
"""

__all__ = [
    "UNLABELED",
    "coerce_label",
    "coerce_value",
    "aggregate",
    "default_axes",
]

UNLABELED = ""

_NUMERIC_TEXT = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def coerce_label(cell: Any) -> str:
    if cell is None or cell == "":
        return UNLABELED
    if isinstance(cell, float):
        if math.isnan(cell):
            return UNLABELED
        if cell.is_integer():
            return str(int(cell))
    return str(cell)


def coerce_value(cell: Any) -> float:
    if cell is None or isinstance(cell, bool):
        return 0.0
    if isinstance(cell, (int, float)):
        value = float(cell)
    elif isinstance(cell, str):
        text = cell.strip().replace(",", "")
        if not _NUMERIC_TEXT.fullmatch(text):
            return 0.0
        value = float(text)
    else:
        return 0.0
    return value if math.isfinite(value) else 0.0


def _cell(row: list[Any], index: int) -> Any:
    # negative indices must not wrap around to the last cells
    return row[index] if 0 <= index < len(row) else None


def aggregate(sheet: SheetData, x_axis_column: int, y_axis_column: int) -> ChartSeries:
    """Group the sheet's data rows by the x column and sum the y column.

    Column indices are 0-based. Any integer is accepted: indices that are
    negative or point past a row's width count as missing cells.
    """
    totals: dict[str, float] = {}
    for row in sheet.rows:
        label = coerce_label(_cell(row, x_axis_column))
        totals[label] = totals.get(label, 0.0) + coerce_value(_cell(row, y_axis_column))
    return ChartSeries([ChartPoint(label=k, value=v) for k, v in totals.items()])


def default_axes(file_name: str, charts: ChartConfig) -> tuple[int, int]:
    """Axis columns to use when the caller picks none.

    The first preset whose keyword appears in the file name wins; otherwise
    the configured defaults apply.
    """
    for preset in charts.presets:
        if preset.matches(file_name):
            return preset.x_axis, preset.y_axis
    return charts.default_x_axis, charts.default_y_axis
