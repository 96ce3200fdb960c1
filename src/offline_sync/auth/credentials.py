from __future__ import annotations

from typing import Optional

from offline_sync.storage.interfaces import KeyValueStore

AUTH_TOKEN_KEY = "auth_token"


class CredentialStore:
    async def load_token(self) -> Optional[str]:
        """
        Return a currently valid bearer token, or None when the user must sign in again.

        Implementations may refresh against an identity provider here. TokenGuard ensures
        at most one call is in flight at a time.
        """
        raise NotImplementedError

    async def save_token(self, token: str) -> None:
        raise NotImplementedError

    async def delete_token(self) -> None:
        raise NotImplementedError


class StoredCredentialStore(CredentialStore):
    """Keeps the bearer token in the key-value store under a fixed key."""

    def __init__(self, store: KeyValueStore, *, key: str = AUTH_TOKEN_KEY) -> None:
        self._store = store
        self._key = key

    async def load_token(self) -> Optional[str]:
        token = await self._store.get_text(self._key)
        if token is None:
            return None
        token = token.strip()
        return token or None

    async def save_token(self, token: str) -> None:
        await self._store.set_text(self._key, token)

    async def delete_token(self) -> None:
        await self._store.delete(self._key)
