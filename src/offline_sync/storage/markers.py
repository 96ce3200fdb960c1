from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from offline_sync.core.clock import format_rfc3339, parse_rfc3339, utc_now
from offline_sync.storage.interfaces import KeyValueStore

logger = logging.getLogger(__name__)

SKIPPED_ONBOARDING_KEY = "skipped_onboarding_at"


class TimestampMarker:
    """
    A timestamp persisted under a fixed key, used for "skip until" style flags.

    The value is stored as an RFC 3339 UTC string. A marker that is missing or cannot be
    parsed reads as unset.
    """

    def __init__(self, store: KeyValueStore, key: str) -> None:
        self._store = store
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    async def mark(self, at: Optional[datetime] = None) -> None:
        await self._store.set_text(self._key, format_rfc3339(at or utc_now()))

    async def clear(self) -> None:
        await self._store.delete(self._key)
        logger.debug("Marker cleared. key=%s", self._key)

    async def marked_at(self) -> Optional[datetime]:
        raw = await self._store.get_text(self._key)
        if not raw:
            return None
        try:
            return parse_rfc3339(raw)
        except ValueError:
            logger.warning("Ignoring unparseable marker value. key=%s value=%r", self._key, raw)
            return None

    async def is_within(self, window: timedelta, *, now: Optional[datetime] = None) -> bool:
        """Return True while less than `window` has passed since the marker was set."""
        marked = await self.marked_at()
        if marked is None:
            return False
        return (now or utc_now()) - marked < window
