"""Bookmark domain models.

Bookmarks are persisted as JSON with camelCase keys; models accept either
spelling on input and always dump by alias.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

from app.core.time_utils import ensure_datetime, to_epoch_ms

_WHITESPACE_RE = re.compile(r"\s+")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class TagAttribution(str, Enum):
    """Who attached a tag to a bookmark."""

    USER = "user"
    AUTOMATED = "automated"
    UNSPECIFIED = "unspecified"

    @classmethod
    def from_upstream(cls, value: Any) -> TagAttribution:
        if value == "user":
            return cls.USER
        if value == "ai":
            return cls.AUTOMATED
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                return cls.UNSPECIFIED
        return cls.UNSPECIFIED


class ImageSource(str, Enum):
    """Where a bookmark's preview image came from, in priority order."""

    PERSISTED = "persisted"
    ASSET = "asset"
    SCREENSHOT = "screenshot"
    FALLBACK = "fallback"
    NONE = "none"


def tag_slug(name: str) -> str:
    """Lowercase the name and collapse whitespace runs into single dashes."""
    return _WHITESPACE_RE.sub("-", name.strip().lower())


class Tag(CamelModel):
    id: str = ""
    name: str
    slug: str = ""
    attributed_by: TagAttribution = TagAttribution.UNSPECIFIED

    @field_validator("attributed_by", mode="before")
    @classmethod
    def _coerce_attribution(cls, value: Any) -> TagAttribution:
        if isinstance(value, TagAttribution):
            return value
        return TagAttribution.from_upstream(value)

    def model_post_init(self, __context: Any) -> None:
        if not self.slug:
            self.slug = tag_slug(self.name)
        if not self.id:
            self.id = self.slug


def normalize_tag(value: str | dict[str, Any] | Tag) -> Tag | None:
    """Build a Tag from a bare name, a structured dict, or an existing Tag."""
    if isinstance(value, Tag):
        return value
    if isinstance(value, str):
        name = value.strip()
        return Tag(name=name) if name else None
    if isinstance(value, dict):
        name = str(value.get("name") or "").strip()
        if not name:
            return None
        return Tag(
            id=str(value.get("id") or ""),
            name=name,
            slug=str(value.get("slug") or ""),
            attributed_by=value.get("attributedBy")
            or value.get("attributed_by")
            or value.get("attachedBy"),
        )
    return None


def normalize_tags(values: list[Any] | None) -> list[Tag]:
    """Normalise and de-duplicate by slug, keeping first-seen order."""
    tags: list[Tag] = []
    seen: set[str] = set()
    for value in values or []:
        tag = normalize_tag(value)
        if tag is None or tag.slug in seen:
            continue
        seen.add(tag.slug)
        tags.append(tag)
    return tags


class ContentMetadata(CamelModel):
    image_asset_id: str | None = None
    screenshot_asset_id: str | None = None
    image_url: str | None = None
    reading_time: int | None = None
    word_count: int | None = None


class Bookmark(CamelModel):
    """A single bookmark as served to consumers.

    ``id`` is assigned by the upstream source and never changes;
    ``source_updated_at`` is the authoritative modification timestamp.
    """

    id: str
    url: str = ""
    title: str = ""
    description: str = ""
    tags: list[Tag] = Field(default_factory=list)
    date_bookmarked: datetime | None = None
    source_updated_at: datetime | None = None
    modified_at: datetime | None = None
    content_metadata: ContentMetadata | None = Field(default=None, alias="content")
    preview_image_url: str | None = Field(default=None, alias="ogImage")
    preview_image_source: ImageSource | None = Field(default=None, alias="ogImageSource")
    slug: str | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Any) -> list[Tag]:
        return normalize_tags(value if isinstance(value, list) else [])

    @field_validator("date_bookmarked", "source_updated_at", "modified_at", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> datetime | None:
        return ensure_datetime(value)

    @property
    def freshness(self) -> datetime | None:
        return self.modified_at or self.source_updated_at or self.date_bookmarked

    @property
    def freshness_ms(self) -> int:
        stamp = self.freshness
        return to_epoch_ms(stamp) if stamp is not None else 0

    @property
    def tag_slugs(self) -> list[str]:
        return [tag.slug for tag in self.tags]

    def without_images(self) -> Bookmark:
        return self.model_copy(update={"preview_image_url": None, "preview_image_source": None})


BookmarkList = TypeAdapter(list[Bookmark])


def dump_bookmarks(bookmarks: list[Bookmark]) -> list[dict[str, Any]]:
    return [bookmark.to_json_dict() for bookmark in bookmarks]
