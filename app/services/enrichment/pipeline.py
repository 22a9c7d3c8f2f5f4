"""Preview-image enrichment for freshly fetched bookmarks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING

from app.core.async_utils import raise_if_cancelled
from app.domain.models.bookmark import Bookmark, ImageSource
from app.domain.models.collection import EnrichmentResult, EnrichmentStats
from app.services.enrichment.image_selection import ImageCandidate, select_image
from app.services.enrichment.persistence_queue import ImageJob

if TYPE_CHECKING:
    from app.services.enrichment.image_persistence import ImagePersister
    from app.services.enrichment.persistence_queue import ImagePersistenceQueue

logger = logging.getLogger(__name__)


class PersistenceMode(str, Enum):
    """How external images reach the object store."""

    SYNC = "sync"
    BACKGROUND = "background"


class EnrichmentPipeline:
    """Chooses a preview image per bookmark and gets it hosted.

    Bookmarks are processed one at a time with a short pause in between so
    the upstream asset endpoint is not hammered. A failure on one bookmark
    leaves that bookmark as it was and moves on.
    """

    def __init__(
        self,
        persister: ImagePersister,
        *,
        cdn_base: str,
        asset_url: Callable[[str], str],
        mode: PersistenceMode = PersistenceMode.SYNC,
        queue: ImagePersistenceQueue | None = None,
        use_screenshots: bool = False,
        delay_ms: int = 100,
    ) -> None:
        if mode is PersistenceMode.BACKGROUND and queue is None:
            msg = "Background persistence requires an ImagePersistenceQueue"
            raise ValueError(msg)
        self._persister = persister
        self._cdn_base = cdn_base
        self._asset_url = asset_url
        self.mode = mode
        self._queue = queue
        self._use_screenshots = use_screenshots
        self._delay = delay_ms / 1000.0

    async def enrich(
        self,
        bookmarks: list[Bookmark],
        previous: list[Bookmark] | None = None,
        *,
        correlation_id: str = "",
    ) -> list[Bookmark]:
        """Return the bookmarks, same ids and order, with preview images set."""
        previous_by_id = {bookmark.id: bookmark for bookmark in previous or []}
        stats = EnrichmentStats()
        enriched: list[Bookmark] = []

        for position, bookmark in enumerate(bookmarks):
            if position and self._delay:
                await asyncio.sleep(self._delay)
            result = EnrichmentResult(bookmark_id=bookmark.id)
            try:
                updated = await self._enrich_one(
                    bookmark, previous_by_id.get(bookmark.id), result, correlation_id
                )
            except Exception as exc:
                raise_if_cancelled(exc)
                result.error = str(exc)
                updated = bookmark
                logger.warning(
                    "enrichment_item_failed",
                    extra={"bookmark_id": bookmark.id, "cid": correlation_id, "error": str(exc)},
                )
            stats.record(result)
            enriched.append(updated)

        logger.info(
            "enrichment_complete",
            extra={"cid": correlation_id, "mode": self.mode.value, **stats.as_log_extra()},
        )
        return enriched

    async def _enrich_one(
        self,
        bookmark: Bookmark,
        previous: Bookmark | None,
        result: EnrichmentResult,
        correlation_id: str,
    ) -> Bookmark:
        candidate = select_image(
            bookmark,
            previous,
            cdn_base=self._cdn_base,
            asset_url=self._asset_url,
            use_screenshots=self._use_screenshots,
        )
        result.source = candidate.source
        result.image_url = candidate.url

        if candidate.source is ImageSource.NONE:
            return bookmark

        if not candidate.needs_persistence:
            result.already_present = True
            return self._with_image(bookmark, candidate.url, candidate)

        if self.mode is PersistenceMode.BACKGROUND and self._queue is not None:
            await self._queue.enqueue(ImageJob(bookmark, candidate, correlation_id))
            result.scheduled = True
            return self._with_image(bookmark, candidate.url, candidate)

        persisted = await self._persister.persist(bookmark, candidate)
        result.image_url = persisted.url
        result.persisted = persisted.newly_written
        result.already_present = not persisted.newly_written
        return self._with_image(bookmark, persisted.url, candidate)

    @staticmethod
    def _with_image(bookmark: Bookmark, url: str | None, candidate: ImageCandidate) -> Bookmark:
        return bookmark.model_copy(
            update={"preview_image_url": url, "preview_image_source": candidate.source}
        )
