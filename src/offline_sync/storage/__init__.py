"""Key-value byte stores backing the cache, credentials and markers."""

from offline_sync.storage.file_store import FileKeyValueStore
from offline_sync.storage.interfaces import KeyValueStore
from offline_sync.storage.markers import SKIPPED_ONBOARDING_KEY, TimestampMarker
from offline_sync.storage.memory import InMemoryKeyValueStore

__all__ = [
    "FileKeyValueStore",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SKIPPED_ONBOARDING_KEY",
    "TimestampMarker",
]
