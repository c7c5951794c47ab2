"""
TTL key-value store used in front of the database.

Keys and values are strings, mirroring the Redis command set the services
rely on (GET, SETEX, DEL, KEYS). Expired entries are removed lazily when
they are read or listed.
"""

from __future__ import annotations

import fnmatch
import time
from typing import Callable, Dict, List, Optional, Tuple

from taskcord.configuration.app_configuration import app_config
from taskcord.util.logger import get_logger

logger = get_logger("database_cache")


class KeyValueCache:
    """
    In-process string key-value store with a per-entry time-to-live.

    Each entry stores its expiry as an absolute ``clock()`` value.
    """

    def __init__(self, ttl_seconds: int = 3600, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            ttl_seconds: Default time-to-live for ``set`` calls without a ttl
            clock: Monotonic time source, replaceable in tests
        """
        self._store: Dict[str, Tuple[float, str]] = {}
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._hits = 0
        self._misses = 0

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def _is_live(self, key: str) -> bool:
        entry = self._store.get(key)
        if entry is None:
            return False
        expires_at, _ = entry
        if self._clock() >= expires_at:
            del self._store[key]
            logger.debug("[CACHE] Expired key: %s", key)
            return False
        return True

    def get(self, key: str) -> Optional[str]:
        """Return the value for ``key``, or None if missing or expired."""
        if self._is_live(key):
            self._hits += 1
            logger.debug("[CACHE] Hit for key: %s", key)
            return self._store[key][1]
        self._misses += 1
        return None

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds (SETEX)."""
        if not isinstance(value, str):
            raise TypeError(f"KeyValueCache stores strings, got {type(value).__name__}")
        ttl = self._ttl_seconds if ttl is None else ttl
        if ttl <= 0:
            self._store.pop(key, None)
            return
        self._store[key] = (self._clock() + ttl, value)
        logger.debug("[CACHE] Set key: %s (ttl=%ss)", key, ttl)

    def delete(self, *keys: str) -> int:
        """Delete the given keys; returns how many existed (DEL)."""
        removed = 0
        for key in keys:
            if self._is_live(key):
                del self._store[key]
                removed += 1
        return removed

    def keys(self, pattern: str = "*") -> List[str]:
        """Live keys matching a glob ``pattern`` (KEYS)."""
        return [k for k in list(self._store) if fnmatch.fnmatchcase(k, pattern) and self._is_live(k)]

    def invalidate(self, pattern: Optional[str] = None) -> int:
        """
        Delete entries matching a glob pattern.

        Args:
            pattern: Glob pattern to match keys against. None clears everything.

        Returns:
            Number of entries removed
        """
        if pattern is None:
            count = len(self._store)
            self._store.clear()
            logger.debug("[CACHE] Cleared all %d entries", count)
            return count
        matched = self.keys(pattern)
        for key in matched:
            del self._store[key]
        logger.debug("[CACHE] Cleared %d entries matching '%s'", len(matched), pattern)
        return len(matched)

    def get_stats(self) -> Dict[str, int]:
        return {
            "size": len(self._store),
            "hits": self._hits,
            "misses": self._misses,
            "ttl_seconds": self._ttl_seconds,
        }


kv_cache = KeyValueCache(ttl_seconds=app_config.cache_ttl_seconds)
