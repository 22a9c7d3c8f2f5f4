"""Bookmark source port and its Karakeep implementation."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Protocol

from app.adapters.karakeep.normalize import to_bookmarks

if TYPE_CHECKING:
    from app.adapters.karakeep.client import KarakeepClient
    from app.domain.models.bookmark import Bookmark

logger = logging.getLogger(__name__)


class BookmarkSource(Protocol):
    async def fetch_all(self) -> list[Bookmark]: ...


class KarakeepBookmarkSource:
    """Fetches the complete collection through an open ``KarakeepClient``."""

    def __init__(self, client: KarakeepClient) -> None:
        self._client = client

    async def fetch_all(self) -> list[Bookmark]:
        started = time.perf_counter()
        raws = await self._client.get_all_bookmarks()
        bookmarks = to_bookmarks(raws)
        logger.info(
            "upstream_collection_normalized",
            extra={
                "count": len(bookmarks),
                "fetch_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return bookmarks
