"""
Async key/value stores used as the cache's persistence layer.

Both implementations keep values JSON-compatible and hand out copies, so a
caller mutating a value it read never changes what is stored.
"""

import asyncio
import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

logger = logging.getLogger(__name__)


class PersistentStore(Protocol):
    """Flat async key/value store."""

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any) -> None:
        ...

    async def remove(self, keys: Iterable[str]) -> None:
        ...

    async def keys(self) -> List[str]:
        ...


class InMemoryKeyValueStore:
    """Process-local store; contents vanish with the process."""

    def __init__(self):
        self._data: Dict[str, Any] = {}

    async def get(self, key: str) -> Optional[Any]:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    async def keys(self) -> List[str]:
        return list(self._data.keys())

    def __len__(self) -> int:
        return len(self._data)


class JsonFileKeyValueStore:
    """
    Persists the whole key space as one JSON document on disk.

    Writes go to a temporary file that is then renamed over the target, so
    a crash mid-write leaves the previous document intact.

    Usage:
        store = JsonFileKeyValueStore("./.insight_cache.json")
        await store.set("insight:orders:summary", {...})
    """

    def __init__(self, path: str):
        """
        Initialize the store.

        Args:
            path: Location of the JSON document. Parent directories are created.
        """
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._data: Optional[Dict[str, Any]] = None
        self._lock = asyncio.Lock()

        logger.info(f"Key/value store initialized at {self.path}")

    def _load(self) -> Dict[str, Any]:
        if self._data is None:
            if self.path.exists():
                with open(self.path, "r", encoding="utf-8") as f:
                    self._data = json.load(f)
            else:
                self._data = {}
        return self._data

    def _flush(self) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False)
        os.replace(tmp_path, self.path)

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            value = self._load().get(key)
            return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            self._load()[key] = copy.deepcopy(value)
            self._flush()

    async def remove(self, keys: Iterable[str]) -> None:
        async with self._lock:
            data = self._load()
            removed = 0
            for key in keys:
                if data.pop(key, None) is not None:
                    removed += 1
            if removed:
                self._flush()

    async def keys(self) -> List[str]:
        async with self._lock:
            return list(self._load().keys())
