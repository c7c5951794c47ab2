"""
Cache-aside access to a :class:`KeyValueCache`.

Reads check the cache first and fall back to an async loader, storing the
loaded value on the way out. Writes go to the database first and then
replace (``put``) or drop (``invalidate``) the cached copy. Values are kept
as JSON text; ``encode``/``decode`` convert between domain objects and
JSON-compatible data.

Keys are ``<namespace>:<part>:<part>...``; the first part after the
namespace is always the guild id so a whole guild can be dropped at once.
"""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from taskcord.database.db_cache import KeyValueCache
from taskcord.util.logger import get_logger

logger = get_logger("cache_aside")

T = TypeVar("T")


def _identity(value: Any) -> Any:
    return value


class CacheAside(Generic[T]):
    def __init__(
        self,
        cache: KeyValueCache,
        namespace: str,
        ttl: Optional[int] = None,
        encode: Callable[[T], Any] = _identity,
        decode: Callable[[Any], T] = _identity,
        enabled: bool = True,
    ) -> None:
        self.cache = cache
        self.namespace = namespace
        self.ttl = ttl
        self.enabled = enabled
        self._encode = encode
        self._decode = decode

    def key(self, *parts: Any) -> str:
        return ":".join([self.namespace, *(str(p) for p in parts)])

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[Optional[T]]]) -> Optional[T]:
        """
        Return the cached value for ``key`` or load, cache and return it.

        ``None`` results are not cached. A corrupt cache entry is dropped and
        reloaded.
        """
        if self.enabled:
            raw = None
            try:
                raw = self.cache.get(key)
                if raw is not None:
                    return self._decode(json.loads(raw))
            except Exception:
                logger.exception("[CACHE ASIDE] Failed to read %s, loading from database", key)
                if raw is not None:
                    self.cache.delete(key)

        value = await loader()
        if value is not None:
            self.put(key, value)
        return value

    def put(self, key: str, value: T) -> None:
        """Write-through: replace the cached copy after a successful write."""
        if not self.enabled:
            return
        try:
            self.cache.set(key, json.dumps(self._encode(value)), self.ttl)
        except Exception:
            logger.exception("[CACHE ASIDE] Failed to cache %s", key)
            self.cache.delete(key)

    def invalidate(self, *parts: Any) -> int:
        return self.cache.delete(self.key(*parts))

    def invalidate_guild(self, guild_id: Any) -> int:
        """Drop the guild's own entry and every key nested under it."""
        removed = self.cache.delete(self.key(guild_id))
        removed += self.cache.invalidate(f"{self.key(guild_id)}:*")
        return removed
