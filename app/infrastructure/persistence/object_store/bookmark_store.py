"""Paginated bookmark persistence on the object store.

Layout per environment: one manifest (the full collection), one index plus
numbered pages, and an index plus pages for each of the most popular tags.
Writers always put the index before its pages and only record the
global checksum once every write has landed; readers treat any read
failure as "no data".
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from app.adapters.storage.errors import ObjectNotFoundError, ObjectStoreError
from app.core.time_utils import isoformat_z, utc_now
from app.domain.exceptions.domain_exceptions import PersistenceError
from app.domain.models.bookmark import Bookmark, BookmarkList, dump_bookmarks
from app.domain.models.collection import CollectionIndex, RefreshHeartbeat, SlugMapping
from app.domain.services.checksum import fingerprint
from app.infrastructure.persistence.object_store.keys import BookmarkKeys, page_number_from_key

if TYPE_CHECKING:
    from app.adapters.storage.protocols import ObjectStore

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def rank_tags(bookmarks: list[Bookmark], max_tags: int) -> list[tuple[str, list[Bookmark]]]:
    """Group bookmarks by tag slug, most popular first (ties by slug).

    ``max_tags <= 0`` keeps every tag.
    """
    groups: dict[str, list[Bookmark]] = {}
    for bookmark in bookmarks:
        for slug in bookmark.tag_slugs:
            groups.setdefault(slug, []).append(bookmark)
    ranked = sorted(groups.items(), key=lambda item: (-len(item[1]), item[0]))
    return ranked if max_tags <= 0 else ranked[:max_tags]


class BookmarkStore:
    """Reads and writes the manifest, page sets and supplementary records."""

    def __init__(
        self,
        store: ObjectStore,
        keys: BookmarkKeys,
        *,
        page_size: int = 24,
        max_tags_to_persist: int = 10,
        tag_persistence_enabled: bool = True,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._store = store
        self.keys = keys
        self.page_size = page_size
        self._max_tags = max_tags_to_persist
        self._tags_enabled = tag_persistence_enabled
        self._clock = clock

    # ------------------------------------------------------------------
    # Low-level JSON helpers
    # ------------------------------------------------------------------

    async def _read_json(self, key: str) -> Any | None:
        try:
            raw = await self._store.get(key)
        except ObjectNotFoundError:
            return None
        except ObjectStoreError as exc:
            logger.warning("persistence_read_failed", extra={"key": key, "error": str(exc)})
            return None
        try:
            return json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("persistence_decode_failed", extra={"key": key, "error": str(exc)})
            return None

    async def _write_json(self, key: str, payload: Any) -> None:
        body = json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        try:
            await self._store.put(key, body, content_type="application/json")
        except ObjectStoreError as exc:
            raise PersistenceError(
                f"Failed to write {key}", key=key, details={"error": str(exc)}
            ) from exc

    async def _delete_quietly(self, key: str) -> None:
        try:
            await self._store.delete(key)
        except ObjectStoreError as exc:
            logger.warning("persistence_prune_failed", extra={"key": key, "error": str(exc)})

    async def _list_quietly(self, prefix: str) -> list[str]:
        try:
            return await self._store.list_keys(prefix)
        except ObjectStoreError as exc:
            logger.warning("persistence_list_failed", extra={"prefix": prefix, "error": str(exc)})
            return []

    async def _read_model(self, key: str, model: Any) -> Any | None:
        payload = await self._read_json(key)
        if payload is None:
            return None
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            logger.warning(
                "persistence_invalid_payload",
                extra={"key": key, "errors": exc.error_count()},
            )
            return None

    async def _read_bookmarks(self, key: str) -> list[Bookmark] | None:
        payload = await self._read_json(key)
        if payload is None:
            return None
        try:
            return BookmarkList.validate_python(payload)
        except ValidationError as exc:
            logger.warning(
                "persistence_invalid_payload",
                extra={"key": key, "errors": exc.error_count()},
            )
            return None

    # ------------------------------------------------------------------
    # Page sets
    # ------------------------------------------------------------------

    def _build_index(
        self, bookmarks: list[Bookmark], checksum: str, change_detected: bool
    ) -> CollectionIndex:
        now_ms = self._clock()
        return CollectionIndex(
            count=len(bookmarks),
            total_pages=CollectionIndex.pages_for(len(bookmarks), self.page_size),
            page_size=self.page_size,
            checksum=checksum,
            last_fetched_at=now_ms,
            last_attempted_at=now_ms,
            last_modified=isoformat_z(utc_now()),
            change_detected=change_detected,
        )

    async def _write_page_set(
        self,
        bookmarks: list[Bookmark],
        index: CollectionIndex,
        *,
        index_key: str,
        page_key: Callable[[int], str],
        prefix: str,
    ) -> None:
        await self._write_json(index_key, index.to_json_dict())
        for page_number in range(1, index.total_pages + 1):
            start = (page_number - 1) * self.page_size
            chunk = bookmarks[start : start + self.page_size]
            await self._write_json(page_key(page_number), dump_bookmarks(chunk))

        for key in await self._list_quietly(prefix):
            page_number = page_number_from_key(key)
            if page_number is not None and page_number > index.total_pages:
                await self._delete_quietly(key)

    async def write_collection(
        self,
        bookmarks: list[Bookmark],
        checksum: str | None = None,
        *,
        change_detected: bool = True,
        commit: bool = True,
    ) -> CollectionIndex:
        """Write the global index, then every page, then prune leftover pages.

        The index goes out first with an empty checksum, so a write that dies
        part way reads as changed to the next refresh. The real checksum is
        recorded by ``commit_index``, called here unless ``commit`` is False.

        Raises:
            PersistenceError: If the index or any page cannot be written.
        """
        index = self._build_index(
            bookmarks, checksum or fingerprint(bookmarks), change_detected
        )
        await self._write_page_set(
            bookmarks,
            index.model_copy(update={"checksum": ""}),
            index_key=self.keys.index,
            page_key=self.keys.page,
            prefix=self.keys.pages_prefix,
        )
        logger.info(
            "bookmark_pages_written",
            extra={"count": index.count, "total_pages": index.total_pages},
        )
        if commit:
            await self.commit_index(index)
        return index

    async def commit_index(self, index: CollectionIndex) -> None:
        """Record the checksum of a fully written page set."""
        await self._write_json(self.keys.index, index.to_json_dict())

    async def read_page(self, page_number: int) -> list[Bookmark]:
        if page_number < 1:
            return []
        return await self._read_bookmarks(self.keys.page(page_number)) or []

    async def read_index(self) -> CollectionIndex | None:
        return await self._read_model(self.keys.index, CollectionIndex)

    async def touch_index(self, index: CollectionIndex) -> CollectionIndex:
        """Record an unchanged fetch: bump timestamps, keep checksum and pages."""
        now_ms = self._clock()
        touched = index.model_copy(
            update={
                "last_fetched_at": now_ms,
                "last_attempted_at": now_ms,
                "change_detected": False,
            }
        )
        await self._write_json(self.keys.index, touched.to_json_dict())
        return touched

    async def write_tag_collections(self, bookmarks: list[Bookmark]) -> dict[str, CollectionIndex]:
        """Write index and pages for the top-N tags and drop tags that fell out.

        Raises:
            PersistenceError: If any tag index or page cannot be written.
        """
        if not self._tags_enabled:
            return {}

        written: dict[str, CollectionIndex] = {}
        for slug, members in rank_tags(bookmarks, self._max_tags):
            index = self._build_index(members, fingerprint(members), True)
            await self._write_page_set(
                members,
                index,
                index_key=self.keys.tag_index(slug),
                page_key=lambda n, slug=slug: self.keys.tag_page(slug, n),
                prefix=self.keys.tag_prefix(slug),
            )
            written[slug] = index

        for key in await self._list_quietly(self.keys.tags_prefix):
            slug = self.keys.tag_slug_from_key(key)
            if slug is not None and slug not in written:
                await self._delete_quietly(key)

        logger.info("tag_pages_written", extra={"tags": len(written)})
        return written

    async def read_tag_page(self, slug: str, page_number: int) -> list[Bookmark]:
        if page_number < 1:
            return []
        return await self._read_bookmarks(self.keys.tag_page(slug, page_number)) or []

    async def read_tag_index(self, slug: str) -> CollectionIndex | None:
        return await self._read_model(self.keys.tag_index(slug), CollectionIndex)

    async def list_cached_tags(self) -> list[str]:
        slugs = {
            self.keys.tag_slug_from_key(key)
            for key in await self._list_quietly(self.keys.tags_prefix)
            if key.endswith("/index.json")
        }
        return sorted(slug for slug in slugs if slug)

    # ------------------------------------------------------------------
    # Manifest and supplementary records
    # ------------------------------------------------------------------

    async def read_manifest(self) -> list[Bookmark] | None:
        return await self._read_bookmarks(self.keys.manifest)

    async def write_manifest(self, bookmarks: list[Bookmark]) -> None:
        await self._write_json(self.keys.manifest, dump_bookmarks(bookmarks))
        logger.info("bookmark_manifest_written", extra={"count": len(bookmarks)})

    async def write_heartbeat(self, heartbeat: RefreshHeartbeat) -> None:
        await self._write_json(self.keys.heartbeat, heartbeat.to_json_dict())

    async def read_heartbeat(self) -> RefreshHeartbeat | None:
        return await self._read_model(self.keys.heartbeat, RefreshHeartbeat)

    async def write_slug_mapping(self, mapping: SlugMapping) -> None:
        await self._write_json(self.keys.slug_mapping, mapping.to_json_dict())

    async def read_slug_mapping(self) -> SlugMapping | None:
        return await self._read_model(self.keys.slug_mapping, SlugMapping)
