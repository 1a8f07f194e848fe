# Shared pytest fixtures
from __future__ import annotations
import io
import tempfile
from pathlib import Path
from typing import Callable

import pandas as pd
import pytest

from reportsheets.db.memory import InMemoryFileRepository, InMemorySheetStore
from reportsheets.logging.error_log import ErrorLogBuffer
from reportsheets.models.config_models import AxisPreset, ChartConfig
from reportsheets.services.pipeline import IngestionPipeline
from reportsheets.storage.blob import LocalBlobStore

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """storage:
  blob_directory: ./blobs
upload:
  max_bytes: 10485760
  max_name_length: 200
  allowed_extensions: [xlsx, xls, csv]
charts:
  default_x_axis: 0
  default_y_axis: 1
  presets:
    - keywords: ["資金"]
      x_axis: 0
      y_axis: 6
logging:
  error_log_directory: ./logs
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "reportsheets.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def build_xlsx(sheets: dict[str, list[list[object]]]) -> bytes:
    """Workbook bytes with each sheet written verbatim (no pandas header/index)."""
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, header=False, index=False)
    return buf.getvalue()


@pytest.fixture()
def make_xlsx() -> Callable[[dict[str, list[list[object]]]], bytes]:
    return build_xlsx


@pytest.fixture()
def pipeline(tmp_path: Path) -> IngestionPipeline:
    charts = ChartConfig(
        default_x_axis=0,
        default_y_axis=1,
        presets=(AxisPreset(keywords=("資金",), x_axis=0, y_axis=2),),
    )
    return IngestionPipeline(
        InMemoryFileRepository(),
        InMemorySheetStore(),
        LocalBlobStore(tmp_path / "blobs"),
        charts,
        ErrorLogBuffer(tmp_path / "logs"),
    )
