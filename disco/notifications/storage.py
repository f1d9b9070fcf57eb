"""Storage backend abstraction for the notification log.

- LogStorageBackend: Abstract base class defining the interface.
- JsonLogStorageBackend: File-based JSON storage (default).
- load_json_file: Shared utility for safe JSON file loading.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import NamedTuple

from disco.notifications.schema import LOG_FILE_VERSION


class SaveResult(NamedTuple):
    """Result of a storage save operation.

    NamedTuple so callers can unpack ``ok, msg = backend.save_log(data)``.
    """

    success: bool
    message: str


def load_json_file(path: Path, default: dict | None = None) -> dict:
    """Load a JSON file safely, returning default on any error.

    A corrupt log file yields an empty log: losing history is acceptable,
    failing to start is not. The next save rewrites valid structure.
    """
    if not path.exists():
        return default or {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return default or {}
    if not isinstance(data, dict):
        return default or {}
    return data


class LogStorageBackend(ABC):
    """Abstract storage backend for the notification log.

    load_log returns the file-level dict ({"version": ..., "entries": [...]}).
    save_log validates, then delegates to _persist_log (Template Method).
    """

    @abstractmethod
    def load_log(self) -> dict: ...

    def save_log(self, data: dict) -> SaveResult:
        """Validate and persist log data."""
        try:
            from disco.notifications.schema import validate_log_file

            validate_log_file(data)
        except Exception as e:
            return SaveResult(False, f"Validation error: {e}")
        return self._persist_log(data)

    @abstractmethod
    def _persist_log(self, data: dict) -> SaveResult: ...

    def close(self) -> None:
        """Release resources. No-op for stateless backends."""


class JsonLogStorageBackend(LogStorageBackend):
    """File-based JSON storage for the notification log."""

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load_log(self) -> dict:
        return load_json_file(
            self._path,
            default={"version": LOG_FILE_VERSION, "entries": []},
        )

    def _persist_log(self, data: dict) -> SaveResult:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp.replace(self._path)
            return SaveResult(True, "Saved successfully")
        except Exception as e:
            return SaveResult(False, f"Error: {e}")
