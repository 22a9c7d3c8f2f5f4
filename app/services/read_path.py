"""Consumer-facing reads over the memory, object store and upstream tiers.

Reads never raise: store faults degrade to the next tier and a failed
refresh degrades to an empty result.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from app.core.async_utils import SingleFlight, raise_if_cancelled
from app.domain.models.bookmark import tag_slug
from app.domain.models.collection import CollectionIndex
from app.domain.services.checksum import fingerprint

if TYPE_CHECKING:
    from app.domain.models.bookmark import Bookmark
    from app.infrastructure.cache.memory_cache import BookmarkMemoryCache
    from app.infrastructure.persistence.object_store.bookmark_store import BookmarkStore
    from app.services.refresh import RefreshOrchestrator

logger = logging.getLogger(__name__)


def paginate(bookmarks: list[Bookmark], page_number: int, page_size: int) -> list[Bookmark]:
    if page_number < 1:
        return []
    start = (page_number - 1) * page_size
    return bookmarks[start : start + page_size]


class BookmarkReader:
    """Tiered reads: memory cache, then persisted pages, then a refresh."""

    def __init__(
        self,
        store: BookmarkStore,
        orchestrator: RefreshOrchestrator,
        cache: BookmarkMemoryCache,
    ) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._cache = cache
        self._page_size = store.page_size
        self._collection_flights: dict[bool, SingleFlight[list[Bookmark]]] = {
            True: SingleFlight(),
            False: SingleFlight(),
        }

    # ------------------------------------------------------------------
    # Full collection
    # ------------------------------------------------------------------

    async def get_collection(
        self, skip_upstream: bool = False, include_images: bool = True
    ) -> list[Bookmark]:
        """Return the whole collection; concurrent callers share one load."""
        bookmarks = await self._collection_flights[skip_upstream].run(
            lambda: self._load_collection(skip_upstream)
        )
        if include_images:
            # callers own the list; the cached one stays untouched
            return list(bookmarks)
        return [bookmark.without_images() for bookmark in bookmarks]

    async def _load_collection(self, skip_upstream: bool) -> list[Bookmark]:
        cached = self._cache.get("collection")
        if cached is not None:
            return cached

        manifest = await self._store.read_manifest()
        if manifest is not None:
            self._cache.set("collection", value=manifest)
            return manifest

        if skip_upstream:
            logger.info("read_collection_empty_upstream_skipped")
            return []

        logger.info("read_collection_miss_refreshing")
        try:
            refreshed = await self._orchestrator.refresh_and_persist()
        except Exception as exc:
            raise_if_cancelled(exc)
            logger.warning(
                "read_collection_refresh_failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return []

        if refreshed is None:
            # another process is refreshing; whatever it has persisted so far wins
            return await self._store.read_manifest() or []
        self._cache.set("collection", value=refreshed)
        return refreshed

    # ------------------------------------------------------------------
    # Global pages
    # ------------------------------------------------------------------

    async def get_index(self) -> CollectionIndex | None:
        cached = self._cache.get("index")
        if cached is not None:
            return cached
        index = await self._store.read_index()
        self._cache.set("index", value=index)
        return index

    async def get_page(self, page_number: int) -> list[Bookmark]:
        if page_number < 1:
            return []
        cached = self._cache.get("page", page_number)
        if cached is not None:
            return list(cached)

        page = await self._store.read_page(page_number)
        if page:
            self._cache.set("page", page_number, value=page)
            return page

        if await self.get_index() is not None:
            # pages are persisted; this one is simply past the end
            return []

        page = paginate(await self.get_collection(), page_number, self._page_size)
        if page:
            self._cache.set("page", page_number, value=page)
        return page

    # ------------------------------------------------------------------
    # Tag pages
    # ------------------------------------------------------------------

    async def _tagged(self, slug: str) -> list[Bookmark]:
        collection = await self.get_collection()
        return [bookmark for bookmark in collection if slug in bookmark.tag_slugs]

    async def get_tag_index(self, slug: str) -> CollectionIndex | None:
        slug = tag_slug(slug)
        cached = self._cache.get("tag_index", slug)
        if cached is not None:
            return cached

        index = await self._store.read_tag_index(slug)
        if index is None:
            members = await self._tagged(slug)
            if not members:
                return None
            collection_index = await self.get_index()
            index = CollectionIndex(
                count=len(members),
                total_pages=CollectionIndex.pages_for(len(members), self._page_size),
                page_size=self._page_size,
                checksum=fingerprint(members),
                last_fetched_at=collection_index.last_fetched_at if collection_index else 0,
                last_attempted_at=collection_index.last_attempted_at if collection_index else 0,
                last_modified=collection_index.last_modified if collection_index else "",
                change_detected=False,
            )
        self._cache.set("tag_index", slug, value=index)
        return index

    async def get_tag_page(self, slug: str, page_number: int) -> list[Bookmark]:
        slug = tag_slug(slug)
        if page_number < 1:
            return []
        cached = self._cache.get("tag_page", slug, page_number)
        if cached is not None:
            return list(cached)

        page = await self._store.read_tag_page(slug, page_number)
        if not page and await self._store.read_tag_index(slug) is None:
            logger.debug("tag_page_fallback_filter", extra={"tag": slug, "page": page_number})
            page = paginate(await self._tagged(slug), page_number, self._page_size)

        if page:
            self._cache.set("tag_page", slug, page_number, value=page)
        return page

    # ------------------------------------------------------------------

    def invalidate(self, scope: str = "all") -> int:
        return self._cache.invalidate(scope)
