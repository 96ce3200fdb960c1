from __future__ import annotations

import json
from typing import Any

from offline_sync.cache.models import CacheEntry, CacheStatus, SchemaVersion
from offline_sync.core.errors import SerializationFault


def encode_entry(entry: CacheEntry) -> bytes:
    payload = {
        "schema_version": SchemaVersion,
        "key": entry.key,
        "value": entry.value,
        "fetched_at": entry.fetched_at,
        "stale_after": entry.stale_after,
        "status": entry.status.value,
    }
    try:
        return json.dumps(payload, sort_keys=True, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializationFault(f"Cache entry value is not JSON serializable. key={entry.key}") from e


def decode_entry(raw: bytes) -> CacheEntry:
    try:
        payload: Any = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise SerializationFault("Cache entry payload is not valid JSON.") from e
    if not isinstance(payload, dict):
        raise SerializationFault(f"Cache entry payload must be an object, got: {type(payload).__name__}")

    version = payload.get("schema_version")
    if version != SchemaVersion:
        raise SerializationFault(f"Cache entry schema mismatch. expected={SchemaVersion} actual={version}")

    try:
        return CacheEntry(
            key=str(payload["key"]),
            value=payload.get("value"),
            fetched_at=float(payload["fetched_at"]),
            stale_after=float(payload["stale_after"]),
            status=CacheStatus(payload.get("status", CacheStatus.FRESH.value)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise SerializationFault(f"Cache entry payload is malformed: {e}") from e


def encode_index(keys: list[str]) -> bytes:
    return json.dumps(sorted(set(keys))).encode("utf-8")


def decode_index(raw: bytes) -> list[str]:
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise SerializationFault("Cache index payload is not valid JSON.") from e
    if not isinstance(payload, list) or not all(isinstance(k, str) for k in payload):
        raise SerializationFault("Cache index payload must be a list of strings.")
    return payload
