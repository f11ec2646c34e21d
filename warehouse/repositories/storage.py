"""Key-value storage for persisted product identifier lists.

The ledger only needs get/set of a whole list of strings under one key.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from warehouse.logging_config import get_logger

logger = get_logger(__name__)


class StorageError(Exception):
    """Raised when persisted storage cannot be read or written."""

    pass


class KeyValueStorage(Protocol):
    """Persistent storage of string lists keyed by name."""

    def get(self, key: str) -> Optional[List[str]]:
        ...

    def set(self, key: str, values: List[str]) -> None:
        ...


class InMemoryStorage:
    """Process-local storage, lost on exit."""

    def __init__(self, initial: Optional[Dict[str, List[str]]] = None):
        self._data: Dict[str, List[str]] = {k: list(v) for k, v in (initial or {}).items()}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[List[str]]:
        with self._lock:
            values = self._data.get(key)
            return list(values) if values is not None else None

    def set(self, key: str, values: List[str]) -> None:
        with self._lock:
            self._data[key] = list(values)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class JsonFileStorage:
    """Storage persisted as a single JSON object on disk.

    Writes go to a temporary file that replaces the original, so a crash
    mid-write never leaves a truncated file behind.
    """

    def __init__(self, path: str):
        self._path = Path(path)
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> Dict[str, List[str]]:
        # No file yet: nothing recorded
        if not self._path.exists():
            return {}
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read storage file {self._path}: {e}")
        if not isinstance(data, dict):
            raise StorageError(f"Storage file {self._path} does not hold a JSON object")
        return data

    def get(self, key: str) -> Optional[List[str]]:
        with self._lock:
            value = self._read_all().get(key)
            if value is None:
                return None
            # Tolerate hand-edited files; drop non-string items
            if not isinstance(value, list):
                logger.warning("storage_value_not_a_list", key=key, path=str(self._path))
                return None
            return [item for item in value if isinstance(item, str)]

    def set(self, key: str, values: List[str]) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = list(values)
            self._path.parent.mkdir(parents=True, exist_ok=True)
            # Write beside the target so os.replace stays on one filesystem
            fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=self._path.name, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_path, self._path)
            except OSError as e:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise StorageError(f"Failed to write storage file {self._path}: {e}")
            logger.debug("storage_written", key=key, path=str(self._path), count=len(values))


def create_storage(path: Optional[str]) -> KeyValueStorage:
    """Create file storage when a path is configured, in-memory otherwise."""
    if path:
        return JsonFileStorage(path)
    return InMemoryStorage()
