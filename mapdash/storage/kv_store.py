"""Key/value stores backing the persisted search histories.

Each history kind lives under one key as a single JSON text blob.
"""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

import redis

from mapdash.config import Settings, get_settings

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    """Minimal durable text storage. Implementations may raise on I/O failure."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store, used in tests and when durability is not wanted."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileStore:
    """One `<key>.json` file per key under a directory."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        self.directory.mkdir(parents=True, exist_ok=True)
        # Write to a sibling temp file then rename so readers never see half a blob
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class RedisStore:
    """Synchronous Redis-backed store shared by every dashboard process."""

    def __init__(self, url: str, prefix: str = "mapdash:"):
        self.prefix = prefix
        self._client = redis.Redis.from_url(url, encoding="utf-8", decode_responses=True)

    def get(self, key: str) -> Optional[str]:
        return self._client.get(self.prefix + key)

    def set(self, key: str, value: str) -> None:
        self._client.set(self.prefix + key, value)

    def delete(self, key: str) -> None:
        self._client.delete(self.prefix + key)

    def close(self) -> None:
        self._client.close()


def build_store(settings: Optional[Settings] = None) -> KeyValueStore:
    """Create the store selected by HISTORY_BACKEND."""
    settings = settings or get_settings()

    if settings.HISTORY_BACKEND == "redis":
        logger.info("Using Redis history storage")
        return RedisStore(settings.REDIS_URL)
    if settings.HISTORY_BACKEND == "file":
        logger.info(f"Using file history storage in {settings.HISTORY_DIR}")
        return FileStore(settings.HISTORY_DIR)
    return MemoryStore()
