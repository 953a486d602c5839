"""
Key-value persistence primitive.

Every value is a JSON document stored under a fixed string key. The keys are
shared with exported backups, so they must not change:

- knownFaces          enrolled roster
- recognitionLogs     audit log (500 newest entries)
- recognitionHistory  live history (50 newest events)
- alerts              alert log (100 newest alerts)
- appSettings         notification / detection settings
"""

from __future__ import annotations
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from .recognize.errors import StorageError

logger = logging.getLogger(__name__)

KNOWN_FACES_KEY = "knownFaces"
RECOGNITION_LOGS_KEY = "recognitionLogs"
RECOGNITION_HISTORY_KEY = "recognitionHistory"
ALERTS_KEY = "alerts"
SETTINGS_KEY = "appSettings"

DATA_KEYS = (KNOWN_FACES_KEY, RECOGNITION_LOGS_KEY, RECOGNITION_HISTORY_KEY, ALERTS_KEY)


class KeyValueStore:
    """String-keyed get/set store. Subclasses raise StorageError on I/O failure."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """
    One file per key under `root` (data/store/<key>.json).
    Writes go to a temp file in the same directory and are swapped in with
    os.replace, so a reader never sees a half-written document.
    """

    def __init__(self, root: Path = Path("data/store")):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"failed to read '{key}': {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_name = None
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=str(self.root))
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"failed to write '{key}': {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"failed to delete '{key}': {e}") from e


def read_json(store: KeyValueStore, key: str) -> Any:
    """
    Returns the decoded document, or None if the key is absent.
    Raises StorageError on read failure or corrupt JSON.
    """
    raw = store.get(key)
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        raise StorageError(f"corrupt JSON under '{key}': {e}") from e


def read_json_or(store: KeyValueStore, key: str, default: Any) -> Any:
    """Like read_json but falls back to `default` on any StorageError."""
    try:
        value = read_json(store, key)
    except StorageError as e:
        logger.warning("[Storage] %s; using empty value", e)
        return default
    return default if value is None else value


def write_json(store: KeyValueStore, key: str, value: Any) -> None:
    store.set(key, json.dumps(value, indent=2))
