"""
LRU result cache.

Caches derived insight results in an async key/value store under a byte
budget. Entries are evicted least-recently-used first, but only once they
have been idle longer than the minimum eviction age.
"""

import asyncio
import json
import logging
import time
from typing import Any, Callable, List, Optional

from insight_engine.core.config import CacheConfig
from insight_engine.insights.models import CacheEntry, CacheMetadata
from insight_engine.storage.kv_store import PersistentStore

logger = logging.getLogger(__name__)

METADATA_KEY = "__metadata__"


class CacheError(Exception):
    """Raised when the backing store rejects a cache write."""
    pass


def _now_ms() -> float:
    return time.time() * 1000


def measure_size(value: Any) -> int:
    """Exact UTF-8 byte length of the JSON serialization of ``value``."""
    return len(json.dumps(value, ensure_ascii=False).encode("utf-8"))


class ResultCache:
    """
    Byte-budgeted LRU cache over a PersistentStore.

    All mutations (writes, access-time refreshes, evictions, clear) run under
    one asyncio lock, so the metadata record is only ever updated by a single
    writer at a time.

    Usage:
        cache = ResultCache(InMemoryKeyValueStore())
        await cache.set("orders:summary", summary.to_dict())
        cached = await cache.get("orders:summary")
    """

    def __init__(
        self,
        store: PersistentStore,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = _now_ms,
    ):
        """
        Initialize the cache.

        Args:
            store: Async key/value store holding entries and metadata
            config: Budget, eviction age and key prefix (defaults from CacheConfig)
            clock: Returns the current time in epoch milliseconds
        """
        self.store = store
        self.config = config or CacheConfig()
        self._clock = clock
        self._lock = asyncio.Lock()

    @property
    def metadata_key(self) -> str:
        return f"{self.config.key_prefix}{METADATA_KEY}"

    @property
    def max_size(self) -> int:
        return self.config.max_size_bytes

    def build_key(self, key: str) -> str:
        """
        Full store key with the cache namespace prefix.

        Raises:
            CacheError: if ``key`` is the reserved metadata key
        """
        if key == METADATA_KEY:
            raise CacheError(f"'{key}' is reserved for cache metadata")
        return f"{self.config.key_prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        """
        Get cached data by key.

        A hit refreshes the entry's last access time. Misses and store
        failures both return None.
        """
        try:
            full_key = self.build_key(key)
            async with self._lock:
                raw = await self.store.get(full_key)
                if raw is None:
                    logger.debug(f"Cache miss: {key}")
                    return None

                entry = CacheEntry.from_dict(raw)
                entry.last_access_at = self._clock()
                await self.store.set(full_key, entry.to_dict())
        except Exception as e:
            logger.error(f"Failed to get cache entry '{key}': {e}")
            return None

        logger.debug(f"Cache hit: {key}")
        return entry.data

    async def set(self, key: str, data: Any) -> None:
        """
        Cache JSON-compatible data under ``key``.

        Evicts idle entries first if the write would exceed the budget.

        Raises:
            CacheError: if the value cannot be serialized or the store fails
        """
        full_key = self.build_key(key)

        try:
            size = measure_size(data)
        except (TypeError, ValueError) as e:
            raise CacheError(f"Value for '{key}' is not JSON-serializable: {e}") from e

        try:
            async with self._lock:
                # Replacing a key drops the old entry before any eviction runs
                previous = await self.store.get(full_key)
                if previous is not None:
                    await self.store.remove([full_key])
                    await self._update_metadata(-int(previous["size_bytes"]), -1)

                await self._evict_if_needed(size)

                now = self._clock()
                entry = CacheEntry(
                    key=full_key,
                    data=data,
                    created_at=now,
                    last_access_at=now,
                    size_bytes=size,
                )
                await self.store.set(full_key, entry.to_dict())
                await self._update_metadata(size, 1)
        except Exception as e:
            logger.error(f"Failed to set cache entry '{key}': {e}")
            raise CacheError(f"Failed to set cache entry '{key}': {e}") from e

        logger.info(f"Cached entry: {key}, size: {size} bytes")

    async def evict_if_needed(self, incoming_size: int) -> int:
        """Evict idle entries to make room for ``incoming_size`` bytes. Returns bytes freed."""
        async with self._lock:
            return await self._evict_if_needed(incoming_size)

    async def _evict_if_needed(self, incoming_size: int) -> int:
        metadata = await self.get_metadata()

        if metadata.total_size + incoming_size <= self.max_size:
            return 0

        logger.info("Cache size limit exceeded, starting eviction...")

        entries = await self._load_entries()
        entries.sort(key=lambda e: e.last_access_at)

        now = self._clock()
        evicted_size = 0
        keys_to_remove: List[str] = []

        for entry in entries:
            if now - entry.last_access_at <= self.config.eviction_age_ms:
                # Sorted by access time, so every later entry is younger too
                break
            keys_to_remove.append(entry.key)
            evicted_size += entry.size_bytes

            if metadata.total_size - evicted_size + incoming_size <= self.max_size:
                break

        if not keys_to_remove:
            logger.warning("No entries eligible for eviction (all accessed recently)")
            return 0

        await self.store.remove(keys_to_remove)
        await self._update_metadata(-evicted_size, -len(keys_to_remove))
        logger.info(f"Evicted {len(keys_to_remove)} entries, freed {evicted_size} bytes")
        return evicted_size

    async def clear(self) -> None:
        """Remove every entry in the cache namespace and reset the metadata."""
        try:
            async with self._lock:
                keys = [k for k in await self.store.keys() if k.startswith(self.config.key_prefix)]
                await self.store.remove(keys)
                await self.store.set(
                    self.metadata_key,
                    CacheMetadata(total_size=0, max_size=self.max_size, entry_count=0).to_dict(),
                )
        except Exception as e:
            logger.error(f"Failed to clear cache: {e}")
            raise CacheError(f"Failed to clear cache: {e}") from e

        logger.info(f"Cleared {len(keys)} cache keys")

    async def get_metadata(self) -> CacheMetadata:
        """Current budget accounting; zeroed when nothing has been written yet."""
        raw = await self.store.get(self.metadata_key)
        if raw is None:
            return CacheMetadata(total_size=0, max_size=self.max_size, entry_count=0)
        return CacheMetadata.from_dict(raw)

    async def _update_metadata(self, size_delta: int, count_delta: int) -> None:
        metadata = await self.get_metadata()
        metadata.total_size += size_delta
        metadata.entry_count += count_delta
        metadata.max_size = self.max_size
        await self.store.set(self.metadata_key, metadata.to_dict())

    async def _load_entries(self) -> List[CacheEntry]:
        entries = []
        for key in await self.store.keys():
            if not key.startswith(self.config.key_prefix) or key == self.metadata_key:
                continue
            raw = await self.store.get(key)
            if raw is not None:
                entries.append(CacheEntry.from_dict(raw))
        return entries
