from __future__ import annotations

from pathlib import PurePath

from ..models.config_models import UploadLimits

"""Upload precondition checks.

Run before a file reaches the ingestion pipeline; the pipeline itself
assumes they passed.
"""

__all__ = [
    "ValidationError",
    "file_extension",
    "validate_upload",
]


class ValidationError(Exception):
    """Upload rejected before ingestion (type, size or name)."""


def file_extension(file_name: str) -> str:
    return PurePath(file_name).suffix.lower().lstrip(".")


def validate_upload(file_name: str, size: int, limits: UploadLimits) -> None:
    """Reject uploads the system will not ingest.

    Raises:
        ValidationError: empty or over-long name, unsupported extension,
            empty file, or file larger than ``limits.max_bytes``
    """
    if not file_name or not file_name.strip():
        raise ValidationError("file name is empty")
    if len(file_name) > limits.max_name_length:
        raise ValidationError(
            f"file name too long: {len(file_name)} > {limits.max_name_length} characters"
        )
    ext = file_extension(file_name)
    if ext not in limits.allowed_extensions:
        allowed = ", ".join(f".{e}" for e in limits.allowed_extensions)
        raise ValidationError(f"unsupported file type '.{ext}' (allowed: {allowed})")
    if size <= 0:
        raise ValidationError("file is empty")
    if size > limits.max_bytes:
        raise ValidationError(f"file too large: {size} bytes > {limits.max_bytes} bytes")
