"""
Key-value persistence for Make My Day.

Mirrors the semantics of browser local/session storage: string keys, JSON
values, whole-value writes and a bounded total size. Writes that would push
the store past its quota raise StorageQuotaExceededError so callers can tell
"too big" apart from any other storage failure.
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from makemyday.errors import StorageError, StorageQuotaExceededError

logger = logging.getLogger(__name__)

# Roughly what browsers grant a single origin.
DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024

_MISSING = object()


def _encode(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


class KeyValueStore(ABC):
    def __init__(self, quota_bytes: Optional[int] = DEFAULT_QUOTA_BYTES):
        self.quota_bytes = quota_bytes

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def remove(self, key: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def keys(self) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def _size_of(self, key: str) -> int:
        """Encoded size of the value currently stored under key (0 if absent)."""
        raise NotImplementedError

    def used_bytes(self) -> int:
        return sum(self._size_of(k) for k in self.keys())

    def _check_quota(self, key: str, encoded: str) -> None:
        if self.quota_bytes is None:
            return
        new_size = len(encoded.encode("utf-8"))
        projected = self.used_bytes() - self._size_of(key) + new_size
        if projected > self.quota_bytes:
            raise StorageQuotaExceededError(
                f"Storage quota exceeded while saving '{key}' "
                f"({projected} of {self.quota_bytes} bytes)"
            )


class MemoryStore(KeyValueStore):
    """In-process store; used for session-scoped flags and in tests."""

    def __init__(self, quota_bytes: Optional[int] = None):
        super().__init__(quota_bytes)
        self._data: Dict[str, str] = {}

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key, _MISSING)
        if raw is _MISSING:
            return default
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        encoded = _encode(value)
        self._check_quota(key, encoded)
        self._data[key] = encoded

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)

    def _size_of(self, key: str) -> int:
        raw = self._data.get(key)
        return len(raw.encode("utf-8")) if raw is not None else 0


class JsonFileStore(KeyValueStore):
    """One JSON file per key under a data directory."""

    def __init__(self, path: str = "data", quota_bytes: Optional[int] = DEFAULT_QUOTA_BYTES):
        super().__init__(quota_bytes)
        self.path = Path(path)

    def _file(self, key: str) -> Path:
        return self.path / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        f = self._file(key)
        if not f.exists():
            return default
        try:
            return json.loads(f.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read '{key}': {e}") from e

    def set(self, key: str, value: Any) -> None:
        encoded = _encode(value)
        self._check_quota(key, encoded)
        f = self._file(key)
        tmp = f.with_suffix(".json.tmp")
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            tmp.write_text(encoded, encoding="utf-8")
            os.replace(tmp, f)
        except OSError as e:
            raise StorageError(f"Failed to save '{key}': {e}") from e

    def remove(self, key: str) -> None:
        try:
            self._file(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove '{key}': {e}") from e

    def keys(self) -> List[str]:
        if not self.path.exists():
            return []
        return sorted(p.name[: -len(".json")] for p in self.path.glob("*.json"))

    def _size_of(self, key: str) -> int:
        f = self._file(key)
        try:
            return f.stat().st_size
        except FileNotFoundError:
            return 0
