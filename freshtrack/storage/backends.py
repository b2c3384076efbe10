"""Key-value persistence backends.

The ledger keeps one JSON document per key (``products``, ``movements``,
``alerts``). Backends only move strings; serialization lives in the ledger.
"""

import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol

from ..utils.exceptions import ConfigurationError, PersistenceError


class KeyValueStore(Protocol):
    """Minimal string key-value contract used by the ledger."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_many(self, items: Dict[str, str]) -> None:
        ...


class InMemoryStore:
    """Process-local backend, used for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_many(self, items: Dict[str, str]) -> None:
        with self._lock:
            self._data.update(items)


class JsonFileStore:
    """Stores each key as ``<data_dir>/<key>.json``.

    Every value is written to a temporary file first and only renamed into
    place once all values of a ``set_many`` call have been written, so a
    failed write leaves the previous files untouched.
    """

    def __init__(self, data_dir: str):
        self.data_dir = Path(data_dir)

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(
                f"Failed to read {path}: {str(e)}",
                details={"key": key, "error": str(e)}
            ) from e

    def set_many(self, items: Dict[str, str]) -> None:
        staged = []
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            for key, value in items.items():
                fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{key}.", suffix=".tmp")
                staged.append((tmp_name, self._path(key)))
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
            for tmp_name, target in staged:
                os.replace(tmp_name, target)
        except OSError as e:
            for tmp_name, _ in staged:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
            raise PersistenceError(
                f"Failed to write {', '.join(items)}: {str(e)}",
                details={"keys": list(items), "error": str(e)}
            ) from e


def create_backend(kind: str, data_dir: str) -> KeyValueStore:
    """Build the backend named in the storage configuration."""
    if kind == "json":
        return JsonFileStore(data_dir)
    if kind == "memory":
        return InMemoryStore()
    raise ConfigurationError(
        f"Unknown storage backend: {kind}",
        details={"backend": kind}
    )
