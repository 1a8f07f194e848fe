"""Domain models for the report workbook store.

File metadata, stored sheets, derived chart series and the configuration
objects shared across services.
"""

from .chart_series import ChartAnalysis, ChartPoint, ChartSeries
from .config_models import AppConfig, AxisPreset, ChartConfig, DatabaseConfig, UploadLimits
from .file_record import FileRecord, FileStatus
from .sheet_data import ParsedSheet, SheetData, SheetSummary

__all__ = [
    # Configuration models
    "AppConfig",
    "AxisPreset",
    "ChartConfig",
    "DatabaseConfig",
    "UploadLimits",
    # File / sheet models
    "FileRecord",
    "FileStatus",
    "ParsedSheet",
    "SheetData",
    "SheetSummary",
    # Chart models
    "ChartAnalysis",
    "ChartPoint",
    "ChartSeries",
]
