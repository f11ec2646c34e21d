"""Sources of the local app store receipt bytes."""

from pathlib import Path
from typing import Callable, Optional, Protocol, Union

from warehouse.logging_config import get_logger

logger = get_logger(__name__)


class ReceiptSource(Protocol):
    """Provides the raw receipt; None when it is unavailable."""

    def load(self) -> Optional[bytes]:
        ...


class FileReceiptSource:
    """Receipt read from a file on disk."""

    def __init__(self, path: str):
        self._path = Path(path)

    def load(self) -> Optional[bytes]:
        try:
            data = self._path.read_bytes()
        except OSError as e:
            logger.warning("receipt_unreadable", path=str(self._path), error=str(e))
            return None
        return data or None


class StaticReceiptSource:
    """Receipt held in memory, or produced on demand by a callable."""

    def __init__(self, data: Union[bytes, Callable[[], Optional[bytes]], None] = None):
        self._data = data

    def load(self) -> Optional[bytes]:
        if callable(self._data):
            return self._data()
        return self._data
