from __future__ import annotations

from typing import Dict, Optional

from offline_sync.storage.interfaces import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """A process-local store. Contents are lost on exit."""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None) -> None:
        self._data: Dict[str, bytes] = dict(initial or {})

    async def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> Dict[str, bytes]:
        return dict(self._data)
