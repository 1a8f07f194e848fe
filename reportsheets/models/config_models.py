from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses.

Built by reportsheets.config.loader from the YAML file; every section other
than ``storage`` has defaults matching the sample configuration.
"""

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
DEFAULT_MAX_NAME_LENGTH = 200
DEFAULT_ALLOWED_EXTENSIONS = ("xlsx", "xls", "csv")


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class UploadLimits:
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    max_name_length: int = DEFAULT_MAX_NAME_LENGTH
    allowed_extensions: tuple[str, ...] = DEFAULT_ALLOWED_EXTENSIONS


@dataclass(frozen=True)
class AxisPreset:
    """Axis columns picked automatically when a file name contains a keyword."""
    keywords: tuple[str, ...]
    x_axis: int
    y_axis: int

    def matches(self, file_name: str) -> bool:
        return any(k in file_name for k in self.keywords)


@dataclass(frozen=True)
class ChartConfig:
    default_x_axis: int = 0
    default_y_axis: int = 1
    presets: tuple[AxisPreset, ...] = ()


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object."""
    blob_directory: str
    upload: UploadLimits = field(default_factory=UploadLimits)
    charts: ChartConfig = field(default_factory=ChartConfig)
    error_log_directory: str = "./logs"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
