from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from offline_sync.cache.models import CacheStatus
from offline_sync.core.retry import RetryPolicy

Fetcher = Callable[[], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class QueryOptions:
    # None falls back to the engine defaults.
    stale_after: Optional[float] = None
    retry_policy: Optional[RetryPolicy] = None


@dataclass(frozen=True, slots=True)
class QuerySnapshot:
    """The freshest known state of one cache key, as seen by readers and subscribers."""

    key: str
    value: Any = None
    status: Optional[CacheStatus] = None
    fetched_at: Optional[float] = None
    error: Optional[BaseException] = None

    @property
    def is_absent(self) -> bool:
        return self.status is None

    @property
    def is_stale(self) -> bool:
        return self.status in (CacheStatus.STALE, CacheStatus.INVALID)


SnapshotListener = Callable[[QuerySnapshot], None]


@dataclass(frozen=True, slots=True)
class ReadResult:
    snapshot: QuerySnapshot
    # Pending refetch, if one was started or was already in flight.
    refetch: Optional[asyncio.Task] = None

    @property
    def value(self) -> Any:
        return self.snapshot.value

    @property
    def freshness(self) -> Optional[CacheStatus]:
        return self.snapshot.status
