"""In-process TTL cache for bookmark reads.

First tier of the read path. Entries are keyed by scope (``collection``,
``index``, ``page``, ``tag_index``, ``tag_page``) so invalidation can be
selective.
"""

from __future__ import annotations

import logging
from typing import Any

from cachetools import TTLCache

logger = logging.getLogger(__name__)

SCOPES = ("collection", "index", "page", "tag_index", "tag_page")

_MISSING = object()


class BookmarkMemoryCache:
    """Thin scoped wrapper over ``cachetools.TTLCache``; ``ttl_seconds=0`` disables it."""

    def __init__(self, ttl_seconds: int = 300, maxsize: int = 2048) -> None:
        self._enabled = ttl_seconds > 0
        self._cache: TTLCache[tuple[Any, ...], Any] = TTLCache(
            maxsize=maxsize, ttl=max(ttl_seconds, 1)
        )
        self.hits = 0
        self.misses = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    def get(self, scope: str, *parts: Any) -> Any | None:
        if not self._enabled:
            return None
        value = self._cache.get((scope, *parts), _MISSING)
        if value is _MISSING:
            self.misses += 1
            return None
        self.hits += 1
        return value

    def set(self, scope: str, *parts: Any, value: Any) -> None:
        if self._enabled and value is not None:
            self._cache[(scope, *parts)] = value

    def invalidate(self, scope: str = "all") -> int:
        """Drop entries of one scope (``tags`` covers both tag scopes) or everything."""
        if scope == "all":
            dropped = len(self._cache)
            self._cache.clear()
        else:
            wanted = {"tags": {"tag_index", "tag_page"}}.get(scope, {scope})
            stale = [key for key in list(self._cache.keys()) if key[0] in wanted]
            for key in stale:
                self._cache.pop(key, None)
            dropped = len(stale)
        logger.debug("memory_cache_invalidated", extra={"scope": scope, "dropped": dropped})
        return dropped
