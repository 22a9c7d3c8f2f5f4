"""Persisted collection records: index, lock entry, heartbeat, slug mapping."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import Field

from app.core.time_utils import utc_now
from app.domain.models.bookmark import CamelModel, ImageSource


class LockEntry(CamelModel):
    owner_id: str
    acquired_at: int
    ttl_ms: int

    def is_stale(self, now_ms: int) -> bool:
        return now_ms - self.acquired_at > self.ttl_ms


class CollectionIndex(CamelModel):
    """Summary of one paginated page set (global or per tag)."""

    count: int
    total_pages: int
    page_size: int
    checksum: str
    last_fetched_at: int
    last_attempted_at: int
    last_modified: str
    change_detected: bool = True

    @staticmethod
    def pages_for(count: int, page_size: int) -> int:
        return math.ceil(count / page_size) if count > 0 else 0


class RefreshHeartbeat(CamelModel):
    run_at: datetime = Field(default_factory=utc_now)
    success: bool
    change_detected: bool = False
    used_fallback: bool = False
    error: str | None = None


class SlugEntry(CamelModel):
    id: str
    slug: str
    url: str
    title: str


class SlugMapping(CamelModel):
    version: str = "1"
    generated_at: datetime = Field(default_factory=utc_now)
    count: int = 0
    slugs: dict[str, SlugEntry] = Field(default_factory=dict)
    reverse_map: dict[str, str] = Field(default_factory=dict)


@dataclass
class EnrichmentResult:
    """Outcome of selecting and persisting one bookmark's preview image."""

    bookmark_id: str
    source: ImageSource = ImageSource.NONE
    image_url: str | None = None
    persisted: bool = False
    already_present: bool = False
    scheduled: bool = False
    error: str | None = None


@dataclass
class EnrichmentStats:
    total: int = 0
    by_source: dict[str, int] = field(default_factory=dict)
    persisted: int = 0
    already_present: int = 0
    scheduled: int = 0
    failed: int = 0

    def record(self, result: EnrichmentResult) -> None:
        self.total += 1
        self.by_source[result.source.value] = self.by_source.get(result.source.value, 0) + 1
        if result.persisted:
            self.persisted += 1
        if result.already_present:
            self.already_present += 1
        if result.scheduled:
            self.scheduled += 1
        if result.error:
            self.failed += 1

    def as_log_extra(self) -> dict[str, object]:
        return {
            "total": self.total,
            "by_source": dict(self.by_source),
            "persisted": self.persisted,
            "already_present": self.already_present,
            "scheduled": self.scheduled,
            "failed": self.failed,
        }
