"""Browser-style key/value storage shared between tabs.

A :class:`StorageArea` is the origin-scoped store; each tab talks to it
through its own :class:`TabStorage` handle. A write through one handle raises
a :class:`StorageChange` on every *other* handle, the way the browser's
``storage`` event never fires in the tab that made the change.

:class:`FileStorageArea` persists to a JSON file so data survives restarts.
Changes made by another process are picked up by :meth:`FileStorageArea.refresh`.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StorageChange:
    key: str
    old_value: str | None
    new_value: str | None


StorageListener = Callable[[StorageChange], None]


class StorageArea:
    """In-memory storage area. Lives as long as the process."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._handles: list[TabStorage] = []

    def attach(self) -> TabStorage:
        handle = TabStorage(self)
        self._handles.append(handle)
        return handle

    def detach(self, handle: TabStorage) -> None:
        if handle in self._handles:
            self._handles.remove(handle)

    def read(self, key: str) -> str | None:
        return self._data.get(key)

    def keys(self) -> list[str]:
        return list(self._data)

    def write(self, key: str, value: str | None, source: TabStorage | None = None) -> None:
        old_value = self._data.get(key)
        if old_value == value:
            return
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value
        self._persist()
        self._broadcast(StorageChange(key=key, old_value=old_value, new_value=value), source)

    def _persist(self) -> None:
        pass

    def _broadcast(self, change: StorageChange, source: TabStorage | None) -> None:
        for handle in list(self._handles):
            if handle is not source:
                handle._deliver(change)


class FileStorageArea(StorageArea):
    """Storage area backed by a JSON document on disk."""

    def __init__(self, path: str | os.PathLike) -> None:
        super().__init__()
        self.path = Path(path)
        self._data = self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable storage file", path=str(self.path), error=str(exc))
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring malformed storage file", path=str(self.path))
            return {}
        return {str(k): str(v) for k, v in raw.items() if v is not None}

    def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def refresh(self) -> list[StorageChange]:
        """Reload from disk and notify every handle of keys another process changed."""
        fresh = self._load()
        changes = [
            StorageChange(key=key, old_value=self._data.get(key), new_value=fresh.get(key))
            for key in sorted(set(self._data) | set(fresh))
            if self._data.get(key) != fresh.get(key)
        ]
        self._data = fresh
        for change in changes:
            self._broadcast(change, source=None)
        return changes


class TabStorage:
    """One tab's view of a :class:`StorageArea`."""

    def __init__(self, area: StorageArea) -> None:
        self._area = area
        self._listeners: list[StorageListener] = []

    def get_item(self, key: str) -> str | None:
        return self._area.read(key)

    def set_item(self, key: str, value: str) -> None:
        self._area.write(key, str(value), source=self)

    def remove_item(self, key: str) -> None:
        self._area.write(key, None, source=self)

    def get_json(self, key: str, default=None):
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt storage entry", key=key)
            return default

    def set_json(self, key: str, value) -> None:
        self.set_item(key, json.dumps(value))

    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        self._listeners.clear()
        self._area.detach(self)

    def _deliver(self, change: StorageChange) -> None:
        for listener in list(self._listeners):
            listener(change)
