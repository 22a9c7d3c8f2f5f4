"""Composition root for the bookmark engine.

``BookmarkEngine`` owns every stateful piece (lock ownership, in-flight
refresh, memory cache, image queue, sweep job) so a process can run more
than one engine, and tests can build one against an in-memory store.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from app.adapters.karakeep.client import KarakeepClient
from app.adapters.karakeep.source import BookmarkSource, KarakeepBookmarkSource
from app.adapters.storage.s3_store import S3ObjectStore
from app.infrastructure.cache.memory_cache import BookmarkMemoryCache
from app.infrastructure.locking.distributed_lock import DistributedLock
from app.infrastructure.locking.sweeper import LockSweeper
from app.infrastructure.persistence.object_store.bookmark_store import BookmarkStore
from app.infrastructure.persistence.object_store.keys import BookmarkKeys
from app.services.enrichment.image_persistence import ImagePersister
from app.services.enrichment.persistence_queue import ImagePersistenceQueue
from app.services.enrichment.pipeline import EnrichmentPipeline, PersistenceMode
from app.services.read_path import BookmarkReader
from app.services.refresh import RefreshOrchestrator

if TYPE_CHECKING:
    from typing import Self

    import httpx

    from app.adapters.storage.protocols import ObjectStore
    from app.config import AppConfig
    from app.domain.models.bookmark import Bookmark
    from app.domain.models.collection import CollectionIndex, RefreshHeartbeat

logger = logging.getLogger(__name__)


class BookmarkEngine:
    """Public entry point: reads, refreshes and lifecycle."""

    def __init__(
        self,
        cfg: AppConfig,
        object_store: ObjectStore | None = None,
        *,
        source: BookmarkSource | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        owner_id: str | None = None,
    ) -> None:
        """Wire the engine.

        Args:
            cfg: Application configuration
            object_store: Store override; defaults to S3 built from ``cfg.storage``
            source: Bookmark source override; defaults to the Karakeep API
            http_transport: httpx transport for upstream and image downloads
            owner_id: Lock owner id override
        """
        bookmarks_cfg = cfg.bookmarks
        self.cfg = cfg
        self.store: ObjectStore = object_store or S3ObjectStore(cfg.storage)
        self.keys = BookmarkKeys(suffix=cfg.key_env_suffix)

        self.client = KarakeepClient(
            api_url=bookmarks_cfg.api_url,
            bearer_token=bookmarks_cfg.bearer_token,
            timeout=float(bookmarks_cfg.request_timeout_sec),
            list_id=bookmarks_cfg.list_id,
            max_retries=bookmarks_cfg.api_max_retries,
            transport=http_transport,
        )
        self.source: BookmarkSource = source or KarakeepBookmarkSource(self.client)

        self.lock = DistributedLock(self.store, owner_id=owner_id)
        self.bookmark_store = BookmarkStore(
            self.store,
            self.keys,
            page_size=bookmarks_cfg.page_size,
            max_tags_to_persist=bookmarks_cfg.max_tags_to_persist,
            tag_persistence_enabled=bookmarks_cfg.tag_persistence_enabled,
        )
        self.sweeper = LockSweeper(
            self.lock,
            self.keys.refresh_lock,
            interval_seconds=bookmarks_cfg.lock_sweep_interval_sec,
        )

        persister = ImagePersister(
            self.store,
            self.client,
            timeout=float(bookmarks_cfg.request_timeout_sec),
            http_transport=http_transport,
        )
        mode = PersistenceMode(bookmarks_cfg.image_persistence_mode)
        self.image_queue: ImagePersistenceQueue | None = (
            ImagePersistenceQueue(persister, maxsize=bookmarks_cfg.image_queue_size)
            if mode is PersistenceMode.BACKGROUND
            else None
        )
        self.pipeline = EnrichmentPipeline(
            persister,
            cdn_base=self.store.public_url("").rstrip("/"),
            asset_url=self.client.asset_url,
            mode=mode,
            queue=self.image_queue,
            use_screenshots=bookmarks_cfg.use_screenshots,
            delay_ms=bookmarks_cfg.enrichment_delay_ms,
        )

        self.cache = BookmarkMemoryCache(ttl_seconds=bookmarks_cfg.memory_cache_ttl_sec)
        self.orchestrator = RefreshOrchestrator(
            self.source,
            self.bookmark_store,
            self.lock,
            self.pipeline,
            lock_ttl_ms=bookmarks_cfg.lock_ttl_ms,
            force_refresh_enabled=bookmarks_cfg.force_refresh_enabled,
            on_persisted=self.cache.invalidate,
        )
        self.reader = BookmarkReader(self.bookmark_store, self.orchestrator, self.cache)
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, *, sweep_locks: bool = True) -> None:
        if self._started:
            logger.warning("bookmark_engine_already_started")
            return
        await self.client.__aenter__()
        if self.image_queue is not None:
            self.image_queue.start()
        if sweep_locks:
            await self.sweeper.start()
        self._started = True
        logger.info(
            "bookmark_engine_started",
            extra={
                "owner": self.lock.owner_id,
                "key_suffix": self.keys.suffix,
                "image_persistence_mode": self.pipeline.mode.value,
            },
        )

    async def stop(self) -> None:
        if not self._started:
            return
        await self.sweeper.stop()
        if self.image_queue is not None:
            await self.image_queue.stop()
        if self.lock.holds(self.keys.refresh_lock):
            await self.lock.release(self.keys.refresh_lock)
        await self.client.__aexit__(None, None, None)
        self._started = False
        logger.info("bookmark_engine_stopped")

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()

    @property
    def started(self) -> bool:
        return self._started

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_collection(
        self, skip_upstream: bool = False, include_images: bool = True
    ) -> list[Bookmark]:
        return await self.reader.get_collection(
            skip_upstream=skip_upstream, include_images=include_images
        )

    async def get_page(self, page_number: int) -> list[Bookmark]:
        return await self.reader.get_page(page_number)

    async def get_tag_page(self, slug: str, page_number: int) -> list[Bookmark]:
        return await self.reader.get_tag_page(slug, page_number)

    async def get_index(self) -> CollectionIndex | None:
        return await self.reader.get_index()

    async def get_tag_index(self, slug: str) -> CollectionIndex | None:
        return await self.reader.get_tag_index(slug)

    async def get_heartbeat(self) -> RefreshHeartbeat | None:
        return await self.bookmark_store.read_heartbeat()

    async def list_cached_tags(self) -> list[str]:
        return await self.bookmark_store.list_cached_tags()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def refresh(self, force: bool = False) -> list[Bookmark] | None:
        return await self.orchestrator.refresh_and_persist(force=force)

    def invalidate(self, scope: str = "all") -> int:
        return self.reader.invalidate(scope)

    def status(self) -> dict[str, Any]:
        return {
            "started": self._started,
            "refresh_state": self.orchestrator.state.value,
            "refresh_in_progress": self.orchestrator.in_progress,
            "lock_owner": self.lock.owner_id,
            "holds_refresh_lock": self.lock.holds(self.keys.refresh_lock),
            "next_lock_sweep": self.sweeper.get_next_run_time(),
            "image_queue_pending": self.image_queue.pending if self.image_queue else 0,
            "cache_hits": self.cache.hits,
            "cache_misses": self.cache.misses,
        }
