from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

SchemaVersion = 1


class CacheStatus(str, Enum):
    FRESH = "fresh"
    STALE = "stale"
    INVALID = "invalid"


@dataclass(slots=True)
class CacheEntry:
    key: str
    value: Any
    fetched_at: float
    stale_after: float
    status: CacheStatus = CacheStatus.FRESH

    def age(self, now: float) -> float:
        return max(0.0, now - self.fetched_at)

    def current_status(self, now: float) -> CacheStatus:
        if self.status is CacheStatus.INVALID:
            return CacheStatus.INVALID
        if self.age(now) < self.stale_after:
            return CacheStatus.FRESH
        return CacheStatus.STALE

    def needs_refetch(self, now: float) -> bool:
        return self.current_status(now) is not CacheStatus.FRESH
