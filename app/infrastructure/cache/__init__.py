"""Cache helpers."""

from app.infrastructure.cache.memory_cache import SCOPES, BookmarkMemoryCache

__all__ = ["SCOPES", "BookmarkMemoryCache"]
