"""Deterministic preview-image choice for a bookmark."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from app.domain.models.bookmark import Bookmark, ImageSource


@dataclass(frozen=True)
class ImageCandidate:
    source: ImageSource
    url: str | None = None
    asset_id: str | None = None
    hosted: bool = False

    @property
    def needs_persistence(self) -> bool:
        return self.url is not None and not self.hosted


NO_IMAGE = ImageCandidate(source=ImageSource.NONE)


def _not_advanced(bookmark: Bookmark, previous: Bookmark) -> bool:
    if bookmark.source_updated_at is None or previous.source_updated_at is None:
        return bookmark.source_updated_at == previous.source_updated_at
    return bookmark.source_updated_at <= previous.source_updated_at


def select_image(
    bookmark: Bookmark,
    previous: Bookmark | None,
    *,
    cdn_base: str,
    asset_url: Callable[[str], str],
    use_screenshots: bool = False,
) -> ImageCandidate:
    """Pick the preview image; the first matching source wins.

    1. a previously persisted CDN image, if the bookmark has not changed since
    2. the dedicated image asset
    3. the screenshot asset (opt-in)
    4. any other known image URL (crawled ``image_url`` or the prior preview)
    5. nothing
    """

    def is_hosted(url: str | None) -> bool:
        return bool(url and cdn_base and url.startswith(f"{cdn_base}/"))

    if previous is not None and is_hosted(previous.preview_image_url) and _not_advanced(
        bookmark, previous
    ):
        return ImageCandidate(
            source=ImageSource.PERSISTED, url=previous.preview_image_url, hosted=True
        )

    metadata = bookmark.content_metadata
    if metadata and metadata.image_asset_id:
        return ImageCandidate(
            source=ImageSource.ASSET,
            url=asset_url(metadata.image_asset_id),
            asset_id=metadata.image_asset_id,
        )

    if use_screenshots and metadata and metadata.screenshot_asset_id:
        return ImageCandidate(
            source=ImageSource.SCREENSHOT,
            url=asset_url(metadata.screenshot_asset_id),
            asset_id=metadata.screenshot_asset_id,
        )

    fallback = (metadata.image_url if metadata else None) or (
        previous.preview_image_url if previous else None
    )
    if fallback:
        return ImageCandidate(source=ImageSource.FALLBACK, url=fallback, hosted=is_hosted(fallback))

    return NO_IMAGE
