from __future__ import annotations

from dataclasses import dataclass, field

"""Chart output models.

Nothing here is persisted; a series is rebuilt from stored sheet rows on
every request.
"""

__all__ = [
    "ChartPoint",
    "ChartSeries",
    "ChartAnalysis",
]


@dataclass(frozen=True)
class ChartPoint:
    label: str
    value: float


@dataclass(frozen=True)
class ChartSeries:
    """Ordered (label, value) pairs, one per distinct label."""
    points: list[ChartPoint] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self):
        return iter(self.points)

    @property
    def labels(self) -> list[str]:
        return [p.label for p in self.points]

    def filter(self, text: str | None) -> ChartSeries:
        """Keep points whose label contains ``text`` (case-insensitive)."""
        if not text:
            return self
        needle = text.lower()
        return ChartSeries([p for p in self.points if needle in p.label.lower()])

    def to_list(self) -> list[dict[str, object]]:
        return [{"label": p.label, "value": p.value} for p in self.points]


@dataclass(frozen=True)
class ChartAnalysis:
    """A chart series together with the sheet context it was built from."""
    file_id: int
    sheet_index: int
    sheet_name: str
    headers: list[str]
    total_rows: int
    x_axis_column: int
    y_axis_column: int
    series: ChartSeries

    def to_dict(self) -> dict[str, object]:
        return {
            "file_id": self.file_id,
            "sheet_index": self.sheet_index,
            "sheet_name": self.sheet_name,
            "headers": list(self.headers),
            "total_rows": self.total_rows,
            "x_axis_column": self.x_axis_column,
            "y_axis_column": self.y_axis_column,
            "chart_data": self.series.to_list(),
        }
