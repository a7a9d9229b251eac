"""Local persistent store — the fallback of record for every domain.

A synchronous string key/value backend (files on disk, or memory for tests)
plus a JSON adapter that reads and writes whole collections per namespace.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar
from urllib.parse import quote, unquote

from ..errors import LocalStoreCorruptionError

logger = logging.getLogger(__name__)

ANONYMOUS_USER = "local"

T = TypeVar("T")


def namespace_key(prefix: str, user_id: Optional[str]) -> str:
    """Storage key for one user's collection, e.g. ``tasks_42``."""
    return f"{prefix}_{user_id or ANONYMOUS_USER}"


class KeyValueBackend(ABC):
    """Synchronous string-keyed durable store (get/set/remove)."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Stored value, or None when the key is missing."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key``; missing keys are ignored."""
        ...

    def keys(self) -> List[str]:
        return []


class MemoryKeyValueBackend(KeyValueBackend):
    """Process-local backend, for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class FileKeyValueBackend(KeyValueBackend):
    """One file per key under ``root``.

    Writes go to a temporary file in the same directory and are moved into
    place with ``os.replace``, so a reader sees the old value or the new one.
    """

    SUFFIX = ".json"

    def __init__(self, root: Path):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        return self._root / (quote(key, safe="") + self.SUFFIX)

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._root, prefix=".tmp-", suffix=self.SUFFIX)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, self._path(key))
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass

    def keys(self) -> List[str]:
        if not self._root.is_dir():
            return []
        return sorted(
            unquote(p.name[: -len(self.SUFFIX)])
            for p in self._root.glob(f"*{self.SUFFIX}")
            if not p.name.startswith(".tmp-")
        )


class LocalStore:
    """JSON view over a ``KeyValueBackend``.

    Collections are stored whole: a read returns the full list and a write
    replaces it in a single backend call.
    """

    def __init__(self, backend: KeyValueBackend):
        self._backend = backend

    @property
    def backend(self) -> KeyValueBackend:
        return self._backend

    def _raw(self, key: str) -> Optional[str]:
        try:
            return self._backend.get(key)
        except UnicodeDecodeError as exc:
            logger.error(f"Local data under '{key}' is not valid UTF-8: {exc}")
            raise LocalStoreCorruptionError(key, f"not valid UTF-8 ({exc.reason})") from exc

    def _load(self, key: str) -> Any:
        raw = self._raw(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error(f"Corrupted local data under '{key}': {exc}")
            raise LocalStoreCorruptionError(key, str(exc)) from exc

    def read_collection(self, key: str) -> List[Dict[str, Any]]:
        """Stored list for ``key``; empty when missing.

        Raises:
            LocalStoreCorruptionError: If the stored value is not a JSON array.
        """
        data = self._load(key)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.error(f"Local data under '{key}' is {type(data).__name__}, expected list")
            raise LocalStoreCorruptionError(key, f"expected a list, found {type(data).__name__}")
        return data

    def read_entities(self, key: str, decode: Callable[[Dict[str, Any]], T]) -> List[T]:
        """Stored collection for ``key`` decoded record by record.

        Raises:
            LocalStoreCorruptionError: If the collection or any record in it
                cannot be decoded.
        """
        records = self.read_collection(key)
        try:
            return [decode(record) for record in records]
        except (ValueError, TypeError) as exc:
            logger.error(f"Invalid record under '{key}': {exc}")
            raise LocalStoreCorruptionError(key, str(exc)) from exc

    def write_collection(self, key: str, items: List[Dict[str, Any]]) -> None:
        self._backend.set(key, json.dumps(items, ensure_ascii=False))

    def read_record(self, key: str) -> Optional[Dict[str, Any]]:
        """Stored object for ``key``, or None when missing.

        Raises:
            LocalStoreCorruptionError: If the stored value is not a JSON object.
        """
        data = self._load(key)
        if data is None:
            return None
        if not isinstance(data, dict):
            raise LocalStoreCorruptionError(key, f"expected an object, found {type(data).__name__}")
        return data

    def read_entity(self, key: str, decode: Callable[[Dict[str, Any]], T]) -> Optional[T]:
        """Stored object for ``key`` decoded, or None when missing."""
        record = self.read_record(key)
        if record is None:
            return None
        try:
            return decode(record)
        except (ValueError, TypeError) as exc:
            logger.error(f"Invalid record under '{key}': {exc}")
            raise LocalStoreCorruptionError(key, str(exc)) from exc

    def write_record(self, key: str, record: Dict[str, Any]) -> None:
        self._backend.set(key, json.dumps(record, ensure_ascii=False))

    def read_text(self, key: str) -> Optional[str]:
        return self._raw(key)

    def write_text(self, key: str, value: str) -> None:
        self._backend.set(key, value)

    def remove(self, key: str) -> None:
        self._backend.remove(key)
