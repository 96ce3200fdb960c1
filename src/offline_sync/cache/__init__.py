"""Persisted query cache entries."""

from offline_sync.cache.models import CacheEntry, CacheStatus
from offline_sync.cache.store import CacheStore

__all__ = ["CacheEntry", "CacheStatus", "CacheStore"]
