from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

"""Blob storage for uploaded files.

Blobs are immutable once written: re-parse reads the same URL and delete
removes the blob outright. LocalBlobStore keeps them under one directory,
keyed ``excel/<user>/<uuid>-<name>``, and hands out ``file://`` URLs.
"""

__all__ = [
    "StorageError",
    "BlobRef",
    "BlobStore",
    "LocalBlobStore",
]

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^\w.\-]+", re.UNICODE)


class StorageError(Exception):
    """Raised when a blob cannot be written, read or removed."""


@dataclass(frozen=True)
class BlobRef:
    key: str
    url: str


class BlobStore:
    """Interface of the blob store the pipeline depends on."""

    def put(self, data: bytes, file_name: str, user_id: int | None = None) -> BlobRef:
        raise NotImplementedError

    def get(self, url: str) -> bytes:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()

    def _path_for_key(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root):
            raise StorageError(f"blob key escapes storage root: {key}")
        return path

    def _path_for_url(self, url: str) -> Path:
        parsed = urlparse(url)
        if parsed.scheme == "file":
            path = Path(unquote(parsed.path)).resolve()
            if not path.is_relative_to(self.root):
                raise StorageError(f"blob url outside storage root: {url}")
            return path
        if parsed.scheme:
            raise StorageError(f"unsupported blob url scheme: {parsed.scheme}")
        # bare keys are accepted too
        return self._path_for_key(url)

    def put(self, data: bytes, file_name: str, user_id: int | None = None) -> BlobRef:
        safe_name = _UNSAFE_CHARS.sub("_", Path(file_name).name) or "upload"
        owner = str(user_id) if user_id is not None else "anonymous"
        key = f"excel/{owner}/{uuid.uuid4().hex}-{safe_name}"
        path = self._path_for_key(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"failed writing blob {key}: {e}") from e
        logger.debug(f"blob stored key={key} bytes={len(data)}")
        return BlobRef(key=key, url=path.as_uri())

    def get(self, url: str) -> bytes:
        path = self._path_for_url(url)
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"failed reading blob {url}: {e}") from e

    def delete(self, key: str) -> None:
        path = self._path_for_key(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"failed deleting blob {key}: {e}") from e
        logger.debug(f"blob deleted key={key}")
