"""Convert raw Karakeep bookmarks into domain bookmarks."""

from __future__ import annotations

import math
import re

from app.adapters.karakeep.models import KarakeepBookmark
from app.domain.models.bookmark import Bookmark, ContentMetadata, Tag, normalize_tags

_TAG_RE = re.compile(r"<[^>]+>")
WORDS_PER_MINUTE = 200


def _word_count(html: str | None) -> int | None:
    if not html:
        return None
    words = _TAG_RE.sub(" ", html).split()
    return len(words) or None


def to_bookmark(raw: KarakeepBookmark) -> Bookmark:
    content = raw.content
    url = (content.url if content else None) or ""
    words = _word_count(content.html_content if content else None)

    metadata = ContentMetadata(
        image_asset_id=(content.image_asset_id if content else None)
        or raw.asset_id_of_type("bannerImage"),
        screenshot_asset_id=(content.screenshot_asset_id if content else None)
        or raw.asset_id_of_type("screenshot"),
        image_url=content.image_url if content else None,
        word_count=words,
        reading_time=math.ceil(words / WORDS_PER_MINUTE) if words else None,
    )

    tags: list[Tag] = normalize_tags(
        [{"id": t.id, "name": t.name, "attachedBy": t.attached_by} for t in raw.tags]
    )

    return Bookmark(
        id=raw.id,
        url=url,
        title=(raw.title or (content.title if content else None) or url).strip(),
        description=(
            (content.description if content else None) or raw.summary or raw.note or ""
        ).strip(),
        tags=tags,
        date_bookmarked=raw.created_at,
        source_updated_at=raw.modified_at or raw.created_at,
        modified_at=raw.modified_at,
        content_metadata=metadata,
    )


def to_bookmarks(raws: list[KarakeepBookmark]) -> list[Bookmark]:
    return [to_bookmark(raw) for raw in raws]
