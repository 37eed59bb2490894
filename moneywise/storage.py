"""Key-value persistence for the per-company collections.

Collections are stored whole: a load reads the full JSON array for a key and
a save replaces it. There is no locking or versioning between writers, so two
processes (or two open dashboards) writing the same company's key race and the
last write wins. Concurrent writes are neither detected nor merged.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from moneywise.models import format_timestamp
from moneywise.notifications import Notifier

log = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised by a substrate when a value could not be written."""


def company_key(base_key: str, company: Optional[str]) -> Optional[str]:
    """Derive the storage key of ``base_key`` for ``company``.

    Returns ``None`` when there is no active company.
    """
    if not company or not company.strip():
        return None
    sanitized = re.sub(r"\s+", "_", company.strip())
    return f"{base_key}_{sanitized}"


class KeyValueStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Write ``value``; raise :class:`StorageError` on failure."""

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class MemoryStore(KeyValueStore):
    """Dict backed store with an optional byte quota, like browser storage."""

    def __init__(self, quota: Optional[int] = None):
        self.quota = quota
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota is not None:
            used = sum(len(v.encode("utf-8")) for k, v in self._data.items() if k != key)
            if used + len(value.encode("utf-8")) > self.quota:
                raise StorageError(f"Quota of {self.quota} bytes exceeded writing {key!r}")
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class JsonFileStore(KeyValueStore):
    """One ``<key>.json`` file per key under ``directory``."""

    def __init__(self, directory: str):
        self.directory = directory
        os.makedirs(self.directory, exist_ok=True)

    def _path(self, key: str) -> str:
        safe = re.sub(r"[^\w.-]", "_", key)
        return os.path.join(self.directory, f"{safe}.json")

    def get(self, key: str) -> Optional[str]:
        try:
            with open(self._path(key), "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(tmp_path, self._path(key))
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as exc:
            raise StorageError(f"Could not write {key!r}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass

    def __contains__(self, key: str) -> bool:
        return os.path.exists(self._path(key))


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class LoadStatus(str, Enum):
    LOADED = "loaded"
    DEFAULTED = "defaulted"  # nothing stored, or no key
    RESET = "reset"  # stored value was corrupted and has been removed


@dataclass
class LoadResult:
    status: LoadStatus
    value: List[Dict[str, Any]]


class StoreAccessor:
    """Defensive load/save of JSON collections over a :class:`KeyValueStore`."""

    def __init__(self, substrate: KeyValueStore, notifier: Optional[Notifier] = None):
        self.substrate = substrate
        self.notifier = notifier or Notifier()

    def load_result(self, key: Optional[str], default: List[Dict[str, Any]],
                    entity: str, label: Optional[str] = None) -> LoadResult:
        if key is None:
            return LoadResult(LoadStatus.DEFAULTED, default)
        raw = self.substrate.get(key)
        if raw is None:
            return LoadResult(LoadStatus.DEFAULTED, default)
        try:
            value = json.loads(raw)
            if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
                raise ValueError(f"expected a list of objects, got {type(value).__name__}")
        except ValueError as exc:
            log.error("Corrupted %s collection under %r: %s", entity, key, exc)
            self.substrate.delete(key)
            self.notifier.load_error(entity, label or entity)
            return LoadResult(LoadStatus.RESET, default)
        return LoadResult(LoadStatus.LOADED, value)

    def load(self, key: Optional[str], default: List[Dict[str, Any]],
             entity: str, label: Optional[str] = None) -> List[Dict[str, Any]]:
        return self.load_result(key, default, entity, label).value

    def save(self, key: Optional[str], collection: List[Dict[str, Any]],
             entity: str, label: Optional[str] = None) -> bool:
        if key is None:
            return False
        try:
            self.substrate.set(key, json.dumps(collection, ensure_ascii=False, default=_encode))
        except StorageError as exc:
            log.error("Could not save %s collection under %r: %s", entity, key, exc)
            self.notifier.save_error(entity, label or entity)
            return False
        return True
