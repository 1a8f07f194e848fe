"""Financial report workbook ingestion and chart aggregation."""

__version__ = "0.1.0"
