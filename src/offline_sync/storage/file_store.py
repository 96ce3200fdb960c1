from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Optional

from offline_sync.storage.interfaces import KeyValueStore

logger = logging.getLogger(__name__)


def atomic_write_bytes(path: Path, payload: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_bytes(payload)
    tmp_path.replace(path)


class FileKeyValueStore(KeyValueStore):
    """
    One file per key under `data_dir`.

    File names are the SHA-256 of the key so arbitrary keys map to safe paths. Writes go
    through a temporary file and an atomic rename, so a crash never leaves a torn value.
    """

    def __init__(self, data_dir: str) -> None:
        self._data_dir = Path(data_dir)

    def _path_for(self, key: str) -> Path:
        key_hash = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._data_dir / f"{key_hash}.bin"

    async def get(self, key: str) -> Optional[bytes]:
        path = self._path_for(key)
        if not path.exists():
            return None
        return path.read_bytes()

    async def set(self, key: str, value: bytes) -> None:
        path = self._path_for(key)
        atomic_write_bytes(path, value)
        logger.debug("Stored value. key=%s size=%d", key, len(value))

    async def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return
