"""Order-insensitive collection fingerprint and change detection."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable

from app.domain.models.bookmark import Bookmark
from app.domain.models.collection import CollectionIndex


def fingerprint(bookmarks: Iterable[Bookmark]) -> str:
    """SHA-256 over ``id:freshness_ms`` pairs sorted by id and joined with ``|``."""
    parts = sorted(bookmarks, key=lambda bookmark: bookmark.id)
    payload = "|".join(f"{bookmark.id}:{bookmark.freshness_ms}" for bookmark in parts)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def has_changed(
    new_fingerprint: str, new_count: int, previous_index: CollectionIndex | None
) -> bool:
    if previous_index is None:
        return True
    if previous_index.count != new_count:
        return True
    return previous_index.checksum != new_fingerprint
