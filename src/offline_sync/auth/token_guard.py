from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from typing import Optional

from offline_sync.auth.credentials import CredentialStore
from offline_sync.auth.jwt import is_known_expired
from offline_sync.core.clock import Clock, SystemClock
from offline_sync.core.errors import AuthRequired

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TokenRecord:
    token: Optional[str] = None
    obtained_at: float = 0.0
    refreshing: bool = False


def _consume_refresh_result(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug("Token refresh finished without a token. error=%s", error)


class TokenGuard:
    """
    Owns the bearer token used by every outgoing request.

    Concurrent callers that find no usable token share a single restore from the
    credential store and all observe the same token or the same AuthRequired failure.
    """

    def __init__(self, credentials: CredentialStore, *, clock: Optional[Clock] = None) -> None:
        self._credentials = credentials
        self._clock = clock or SystemClock()
        self._record = TokenRecord()
        self._refresh_task: Optional[asyncio.Task] = None
        # Bumped by store/clear so an older refresh cannot overwrite newer credentials.
        self._generation = 0

    @property
    def record(self) -> TokenRecord:
        return dataclasses.replace(self._record)

    async def get_valid_token(self) -> str:
        token = self._record.token
        if token:
            if not is_known_expired(token, self._clock.now()):
                return token
            logger.info("Bearer token expired, restoring credentials.")
            self._record.token = None

        if self._refresh_task is None:
            self._record.refreshing = True
            self._refresh_task = asyncio.create_task(self._refresh(self._generation))
            self._refresh_task.add_done_callback(_consume_refresh_result)
        return await asyncio.shield(self._refresh_task)

    async def store(self, token: str) -> None:
        token = token.strip()
        if not token:
            raise ValueError("Token must be a non-empty string.")
        self._generation += 1
        self._record.token = token
        self._record.obtained_at = self._clock.now()
        await self._credentials.save_token(token)
        logger.info("Bearer token stored.")

    async def clear(self) -> None:
        self._generation += 1
        self._record.token = None
        self._record.obtained_at = 0.0
        await self._credentials.delete_token()
        logger.info("Bearer token cleared.")

    async def invalidate(self, rejected_token: Optional[str] = None) -> None:
        """Drop credentials the server rejected, unless they were already replaced."""
        if rejected_token is not None and self._record.token not in (None, rejected_token):
            return
        logger.warning("Server rejected the bearer token, clearing credentials.")
        await self.clear()

    async def _refresh(self, generation: int) -> str:
        try:
            try:
                token = await self._credentials.load_token()
            except AuthRequired:
                raise
            except Exception as e:
                logger.exception("Failed to restore credentials from the credential store.")
                raise AuthRequired("Unable to restore credentials. Please sign in again.") from e

            if generation != self._generation:
                if self._record.token:
                    return self._record.token
                raise AuthRequired("Credentials were cleared. Please sign in again.")

            if not token:
                raise AuthRequired("Authentication required. Please sign in.")

            if is_known_expired(token, self._clock.now()):
                logger.info("Stored bearer token is expired, discarding it.")
                await self._credentials.delete_token()
                raise AuthRequired("Authentication expired. Please sign in again.")

            self._record.token = token
            self._record.obtained_at = self._clock.now()
            return token
        finally:
            self._record.refreshing = False
            self._refresh_task = None
