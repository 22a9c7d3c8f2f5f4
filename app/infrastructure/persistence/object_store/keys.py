"""Object key layout for persisted bookmark data.

Every JSON key carries the environment suffix (``""`` in production,
``-dev`` / ``-test`` elsewhere) so environments can share one bucket.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote, unquote

JSON_PREFIX = "json/bookmarks"
IMAGE_PREFIX = "images/opengraph"


@dataclass(frozen=True)
class BookmarkKeys:
    suffix: str = ""

    @property
    def manifest(self) -> str:
        return f"{JSON_PREFIX}/bookmarks{self.suffix}.json"

    @property
    def index(self) -> str:
        return f"{JSON_PREFIX}/index{self.suffix}.json"

    @property
    def refresh_lock(self) -> str:
        return f"{JSON_PREFIX}/refresh-lock{self.suffix}.json"

    @property
    def heartbeat(self) -> str:
        return f"{JSON_PREFIX}/heartbeat{self.suffix}.json"

    @property
    def slug_mapping(self) -> str:
        return f"{JSON_PREFIX}/slug-mapping{self.suffix}.json"

    @property
    def pages_prefix(self) -> str:
        return f"{JSON_PREFIX}/pages{self.suffix}/"

    def page(self, page_number: int) -> str:
        return f"{self.pages_prefix}page-{page_number}.json"

    @property
    def tags_prefix(self) -> str:
        return f"{JSON_PREFIX}/tags{self.suffix}/"

    def tag_prefix(self, slug: str) -> str:
        return f"{self.tags_prefix}{quote(slug, safe='')}/"

    def tag_slug_from_key(self, key: str) -> str | None:
        """Inverse of ``tag_prefix`` for any key under a tag directory."""
        if not key.startswith(self.tags_prefix):
            return None
        encoded = key[len(self.tags_prefix) :].split("/", 1)[0]
        return unquote(encoded) or None

    def tag_index(self, slug: str) -> str:
        return f"{self.tag_prefix(slug)}index.json"

    def tag_page(self, slug: str, page_number: int) -> str:
        return f"{self.tag_prefix(slug)}page-{page_number}.json"


def page_number_from_key(key: str) -> int | None:
    """Extract ``n`` from ``.../page-{n}.json``; None for anything else."""
    name = key.rsplit("/", 1)[-1]
    if not (name.startswith("page-") and name.endswith(".json")):
        return None
    digits = name[len("page-") : -len(".json")]
    return int(digits) if digits.isdigit() else None


def image_key(domain: str, idempotency_key: str, extension: str) -> str:
    safe_domain = domain.replace(".", "-") or "unknown"
    return f"{IMAGE_PREFIX}/{safe_domain}-{idempotency_key}.{extension}"
