from __future__ import annotations

import asyncio
import logging
from typing import Optional

from offline_sync.cache.codec import decode_entry, decode_index, encode_entry, encode_index
from offline_sync.cache.models import CacheEntry
from offline_sync.core.errors import SerializationFault
from offline_sync.storage.interfaces import KeyValueStore

logger = logging.getLogger(__name__)

ENTRY_KEY_PREFIX = "query-cache:entry:"
INDEX_KEY = "query-cache:index"


class CacheStore:
    """
    Write-through persistence for cache entries on top of a KeyValueStore.

    Each entry is stored under `query-cache:entry:<key>`. The set of known keys is kept under
    `query-cache:index` so the whole cache can be enumerated at startup and wiped on
    sign-out.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._index: Optional[set[str]] = None
        self._lock = asyncio.Lock()

    @staticmethod
    def storage_key(key: str) -> str:
        return f"{ENTRY_KEY_PREFIX}{key}"

    async def keys(self) -> list[str]:
        async with self._lock:
            index = await self._load_index()
            return sorted(index)

    async def load(self, key: str) -> Optional[CacheEntry]:
        raw = await self._store.get(self.storage_key(key))
        if raw is None:
            return None
        try:
            entry = decode_entry(raw)
        except SerializationFault as e:
            logger.warning("Discarding unreadable cache entry. key=%s error=%s", key, e)
            await self.remove(key)
            return None
        if entry.key != key:
            logger.warning("Discarding cache entry stored under the wrong key. key=%s stored_key=%s", key, entry.key)
            await self.remove(key)
            return None
        return entry

    async def save(self, entry: CacheEntry) -> None:
        payload = encode_entry(entry)
        async with self._lock:
            await self._store.set(self.storage_key(entry.key), payload)
            index = await self._load_index()
            if entry.key not in index:
                index.add(entry.key)
                await self._write_index(index)

    async def remove(self, key: str) -> None:
        async with self._lock:
            await self._store.delete(self.storage_key(key))
            index = await self._load_index()
            if key in index:
                index.discard(key)
                await self._write_index(index)

    async def clear(self) -> None:
        async with self._lock:
            index = await self._load_index()
            for key in sorted(index):
                await self._store.delete(self.storage_key(key))
            index.clear()
            await self._store.delete(INDEX_KEY)
            logger.info("Cache store cleared.")

    async def _load_index(self) -> set[str]:
        if self._index is not None:
            return self._index
        raw = await self._store.get(INDEX_KEY)
        keys: list[str] = []
        if raw is not None:
            try:
                keys = decode_index(raw)
            except SerializationFault as e:
                logger.warning("Cache index is unreadable, starting fresh. error=%s", e)
        self._index = set(keys)
        return self._index

    async def _write_index(self, index: set[str]) -> None:
        await self._store.set(INDEX_KEY, encode_index(list(index)))
