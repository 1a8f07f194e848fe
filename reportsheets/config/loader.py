from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    AppConfig,
    AxisPreset,
    ChartConfig,
    DatabaseConfig,
    UploadLimits,
)

"""YAML config loader.

Responsibilities:
- Load YAML config (default config/reportsheets.yml)
- Validate against the bundled JSON schema
- Apply defaults for every optional section
"""

DEFAULT_CONFIG_PATH = Path("config/reportsheets.yml")
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or if
            the config data fails validation (missing required keys, wrong
            types, unknown keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _build_charts(raw: dict[str, Any]) -> ChartConfig:
    presets = tuple(
        AxisPreset(
            keywords=tuple(p["keywords"]),
            x_axis=p["x_axis"],
            y_axis=p["y_axis"],
        )
        for p in raw.get("presets", [])
    )
    defaults = ChartConfig()
    return ChartConfig(
        default_x_axis=raw.get("default_x_axis", defaults.default_x_axis),
        default_y_axis=raw.get("default_y_axis", defaults.default_y_axis),
        presets=presets,
    )


def _build_upload(raw: dict[str, Any]) -> UploadLimits:
    defaults = UploadLimits()
    return UploadLimits(
        max_bytes=raw.get("max_bytes", defaults.max_bytes),
        max_name_length=raw.get("max_name_length", defaults.max_name_length),
        allowed_extensions=tuple(raw.get("allowed_extensions", defaults.allowed_extensions)),
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    logging_raw = data.get("logging") or {}
    return AppConfig(
        blob_directory=data["storage"]["blob_directory"],
        upload=_build_upload(data.get("upload") or {}),
        charts=_build_charts(data.get("charts") or {}),
        error_log_directory=logging_raw.get("error_log_directory", "./logs"),
        database=db,
    )
