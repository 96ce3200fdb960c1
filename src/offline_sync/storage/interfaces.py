from __future__ import annotations

from typing import Optional


class KeyValueStore:
    """Durable byte store addressed by string keys."""

    async def get(self, key: str) -> Optional[bytes]:
        raise NotImplementedError

    async def set(self, key: str, value: bytes) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        """Remove `key`. Deleting a missing key is not an error."""
        raise NotImplementedError

    async def get_text(self, key: str) -> Optional[str]:
        raw = await self.get(key)
        if raw is None:
            return None
        return raw.decode("utf-8")

    async def set_text(self, key: str, value: str) -> None:
        await self.set(key, value.encode("utf-8"))
