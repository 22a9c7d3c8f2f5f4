"""Copy external preview images into the object store exactly once.

Each image lands under a key derived from the bookmark's domain, the image
source and a stable id, so re-running enrichment finds the existing object
instead of uploading again.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

import httpx

from app.adapters.storage.errors import ObjectStoreError
from app.domain.exceptions.domain_exceptions import UpstreamError
from app.infrastructure.persistence.object_store.keys import image_key

if TYPE_CHECKING:
    from app.adapters.karakeep.client import KarakeepClient
    from app.adapters.storage.protocols import ObjectStore
    from app.domain.models.bookmark import Bookmark
    from app.services.enrichment.image_selection import ImageCandidate

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ("png", "jpg", "jpeg", "gif", "webp", "svg", "avif")
DEFAULT_EXTENSION = "png"
_CONTENT_TYPE_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "image/avif": "avif",
}


class ImagePersistenceError(Exception):
    """The image could not be downloaded or stored."""


@dataclass(frozen=True)
class PersistedImage:
    url: str
    key: str
    newly_written: bool


def bookmark_domain(url: str) -> str:
    host = urlsplit(url if "://" in url else f"https://{url}").hostname or ""
    return host.removeprefix("www.") or "unknown"


def idempotency_key(bookmark: Bookmark, candidate: ImageCandidate) -> str:
    """``{source}-{asset id or bookmark id}``; stable across runs."""
    return f"{candidate.source.value}-{candidate.asset_id or bookmark.id}"


def extension_for(url: str | None, content_type: str | None) -> str:
    if content_type:
        mapped = _CONTENT_TYPE_EXTENSIONS.get(content_type.split(";")[0].strip().lower())
        if mapped:
            return mapped
    if url:
        ext = posixpath.splitext(urlsplit(url).path)[1].lstrip(".").lower()
        if ext in IMAGE_EXTENSIONS:
            return ext
    return DEFAULT_EXTENSION


class ImagePersister:
    """Downloads an image and writes it under its idempotency key."""

    def __init__(
        self,
        store: ObjectStore,
        upstream: KarakeepClient | None = None,
        *,
        timeout: float = 10.0,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._store = store
        self._upstream = upstream
        self._timeout = timeout
        self._http_transport = http_transport

    def _key_stem(self, bookmark: Bookmark, candidate: ImageCandidate) -> str:
        return image_key(bookmark_domain(bookmark.url), idempotency_key(bookmark, candidate), "")

    async def find_existing(self, bookmark: Bookmark, candidate: ImageCandidate) -> str | None:
        stem = self._key_stem(bookmark, candidate)
        try:
            keys = await self._store.list_keys(stem)
        except ObjectStoreError as exc:
            raise ImagePersistenceError(f"Failed to look up {stem}: {exc}") from exc
        # the stem ends with "." so a longer id sharing the prefix cannot match
        for key in keys:
            if key.startswith(stem) and key[len(stem) :] in IMAGE_EXTENSIONS:
                return key
        return None

    async def _download(self, candidate: ImageCandidate) -> tuple[bytes, str | None]:
        if candidate.asset_id and self._upstream is not None:
            return await self._upstream.fetch_asset(candidate.asset_id)

        if not candidate.url:
            raise ImagePersistenceError("Image candidate has no URL")
        async with httpx.AsyncClient(
            timeout=self._timeout, follow_redirects=True, transport=self._http_transport
        ) as client:
            response = await client.get(candidate.url)
            response.raise_for_status()
            return response.content, response.headers.get("content-type")

    async def persist(self, bookmark: Bookmark, candidate: ImageCandidate) -> PersistedImage:
        """Return the hosted URL, uploading only when no object exists yet.

        Raises:
            ImagePersistenceError: If the download or the upload fails.
        """
        existing = await self.find_existing(bookmark, candidate)
        if existing is not None:
            logger.debug(
                "image_already_persisted",
                extra={"bookmark_id": bookmark.id, "key": existing},
            )
            return PersistedImage(
                url=self._store.public_url(existing), key=existing, newly_written=False
            )

        try:
            body, content_type = await self._download(candidate)
        except (httpx.HTTPError, UpstreamError) as exc:
            raise ImagePersistenceError(
                f"Failed to download image for {bookmark.id}: {exc}"
            ) from exc

        if content_type and not content_type.lower().startswith("image/"):
            raise ImagePersistenceError(
                f"Refusing non-image content ({content_type}) for {bookmark.id}"
            )
        if not body:
            raise ImagePersistenceError(f"Empty image body for {bookmark.id}")

        ext = extension_for(candidate.url, content_type)
        key = f"{self._key_stem(bookmark, candidate)}{ext}"
        try:
            await self._store.put(key, body, content_type=content_type or f"image/{ext}")
        except ObjectStoreError as exc:
            raise ImagePersistenceError(f"Failed to store {key}: {exc}") from exc

        logger.info(
            "image_persisted",
            extra={
                "bookmark_id": bookmark.id,
                "key": key,
                "source": candidate.source.value,
                "bytes": len(body),
            },
        )
        return PersistedImage(url=self._store.public_url(key), key=key, newly_written=True)
