"""Backing store interfaces for the clinic scheduling core."""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)

__all__ = [
    "BlobStore",
    "CorruptBlobError",
    "HttpBlobStore",
    "JsonFileBlobStore",
    "MemoryBlobStore",
    "StoreError",
    "StoreUnavailableError",
]


class StoreError(RuntimeError):
    """Base exception for backing store failures."""


class StoreUnavailableError(StoreError):
    """Raised when the backing store cannot be read or written."""


class CorruptBlobError(StoreError):
    """Raised when a stored blob cannot be decoded into records."""


class BlobStore(Protocol):
    """Key-value store holding one serialised blob per collection name."""

    def load(self, key: str) -> Optional[str]:
        """Return the raw blob stored under *key*, or ``None`` if absent."""

    def save(self, key: str, blob: str) -> None:
        """Overwrite the blob stored under *key*."""


class MemoryBlobStore:
    """Process-local store, mostly useful for tests and scratch sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._blobs: Dict[str, str] = dict(initial or {})

    def load(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    def save(self, key: str, blob: str) -> None:
        if not key:
            raise ValueError("key must be provided")
        self._blobs[key] = blob

    def keys(self) -> list[str]:
        return sorted(self._blobs)


class JsonFileBlobStore:
    """Stores each blob as ``<key>.json`` inside a directory."""

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)
        self._lock = threading.Lock()
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"Invalid blob key: {key!r}")
        return self._directory / f"{key}.json"

    def load(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to read blob %s from %s: %s", key, path, exc)
            raise StoreUnavailableError(f"Could not read blob '{key}'") from exc

    def save(self, key: str, blob: str) -> None:
        path = self._path_for(key)
        with self._lock:
            try:
                fd, temp_name = tempfile.mkstemp(
                    dir=self._directory, prefix=f".{key}.", suffix=".tmp"
                )
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(f"{blob}\n")
                os.replace(temp_name, path)
            except OSError as exc:
                logger.error("Failed to write blob %s to %s: %s", key, path, exc)
                raise StoreUnavailableError(f"Could not write blob '{key}'") from exc


from .http_store import HttpBlobStore  # noqa: E402
