"""Stable, unique per-bookmark slugs derived from bookmark URLs."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from app.core.time_utils import utc_now
from app.domain.models.bookmark import Bookmark
from app.domain.models.collection import SlugEntry, SlugMapping

MAX_SLUG_LENGTH = 80
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def base_slug(url: str) -> str:
    """``host + path`` lowercased with every non-alphanumeric run turned into ``-``."""
    raw = url.strip()
    if raw and "://" not in raw:
        raw = f"https://{raw}"
    parts = urlsplit(raw)
    host = (parts.hostname or "").removeprefix("www.")
    slug = _NON_ALNUM_RE.sub("-", f"{host}{parts.path}".lower()).strip("-")
    slug = slug[:MAX_SLUG_LENGTH].rstrip("-")
    return slug or "unknown-url"


def build_slug_mapping(bookmarks: list[Bookmark]) -> SlugMapping:
    """Assign slugs in id order; repeated bases get ``-2``, ``-3``... suffixes."""
    slugs: dict[str, SlugEntry] = {}
    reverse_map: dict[str, str] = {}
    seen: dict[str, int] = {}

    for bookmark in sorted(bookmarks, key=lambda b: b.id):
        base = base_slug(bookmark.url)
        seen[base] = seen.get(base, 0) + 1
        slug = base if seen[base] == 1 else f"{base}-{seen[base]}"
        # a suffixed slug can collide with another bookmark's natural base
        while slug in reverse_map:
            seen[base] += 1
            slug = f"{base}-{seen[base]}"
        slugs[bookmark.id] = SlugEntry(
            id=bookmark.id, slug=slug, url=bookmark.url, title=bookmark.title or bookmark.url
        )
        reverse_map[slug] = bookmark.id

    return SlugMapping(
        generated_at=utc_now(), count=len(slugs), slugs=slugs, reverse_map=reverse_map
    )


def apply_slugs(bookmarks: list[Bookmark], mapping: SlugMapping) -> list[Bookmark]:
    result = []
    for bookmark in bookmarks:
        entry = mapping.slugs.get(bookmark.id)
        result.append(bookmark.model_copy(update={"slug": entry.slug}) if entry else bookmark)
    return result
