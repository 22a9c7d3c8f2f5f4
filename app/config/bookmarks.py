from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from ._validators import _parse_bool, _parse_int_in_range

_INT_LIMITS: dict[str, tuple[int, int]] = {
    "request_timeout_sec": (1, 120),
    "page_size": (1, 500),
    "max_tags_to_persist": (0, 10_000),
    "lock_ttl_ms": (1_000, 24 * 60 * 60 * 1000),
    "lock_sweep_interval_sec": (5, 24 * 60 * 60),
    "memory_cache_ttl_sec": (0, 7 * 24 * 60 * 60),
    "enrichment_delay_ms": (0, 10_000),
    "image_queue_size": (1, 100_000),
    "api_max_retries": (0, 10),
}


class BookmarksConfig(BaseModel):
    """Upstream bookmarks API and refresh engine settings."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_url: str = Field(
        default="http://localhost:3000/api/v1",
        validation_alias="BOOKMARKS_API_URL",
    )
    list_id: str | None = Field(default=None, validation_alias="BOOKMARKS_LIST_ID")
    bearer_token: str = Field(default="", validation_alias="BOOKMARK_BEARER_TOKEN")
    request_timeout_sec: int = Field(
        default=10,
        validation_alias="BOOKMARKS_REQUEST_TIMEOUT_SEC",
        description="Upper bound for a single upstream page request",
    )
    api_max_retries: int = Field(default=3, validation_alias="BOOKMARKS_API_MAX_RETRIES")
    page_size: int = Field(default=24, validation_alias="BOOKMARKS_PER_PAGE")
    max_tags_to_persist: int = Field(
        default=10,
        validation_alias="BOOKMARKS_MAX_TAGS_TO_PERSIST",
        description="Number of most popular tags that get dedicated pages (0 = all)",
    )
    tag_persistence_enabled: bool = Field(
        default=True, validation_alias="BOOKMARKS_TAG_PERSISTENCE_ENABLED"
    )
    force_refresh_enabled: bool = Field(
        default=True,
        validation_alias="BOOKMARKS_FORCE_REFRESH_ENABLED",
        description="Allow force=True refreshes to bypass checksum change detection",
    )
    lock_ttl_ms: int = Field(
        default=300_000,
        validation_alias="BOOKMARKS_LOCK_TTL_MS",
        description="TTL for the refresh distributed lock (default: 5 minutes)",
    )
    lock_sweep_interval_sec: int = Field(
        default=120, validation_alias="BOOKMARKS_LOCK_SWEEP_INTERVAL_SEC"
    )
    memory_cache_ttl_sec: int = Field(
        default=300, validation_alias="BOOKMARKS_MEMORY_CACHE_TTL_SEC"
    )
    enrichment_delay_ms: int = Field(default=100, validation_alias="BOOKMARKS_ENRICHMENT_DELAY_MS")
    use_screenshots: bool = Field(default=False, validation_alias="BOOKMARKS_USE_SCREENSHOTS")
    image_persistence_mode: str = Field(
        default="sync",
        validation_alias="BOOKMARKS_IMAGE_PERSISTENCE_MODE",
        description="'sync' uploads images inline, 'background' queues them",
    )
    image_queue_size: int = Field(default=256, validation_alias="BOOKMARKS_IMAGE_QUEUE_SIZE")

    @field_validator("api_url", mode="before")
    @classmethod
    def _validate_api_url(cls, value: Any) -> str:
        url = str(value or "http://localhost:3000/api/v1").strip()
        if not url:
            return "http://localhost:3000/api/v1"
        if not url.startswith(("http://", "https://")):
            msg = "Bookmarks API URL must start with http:// or https://"
            raise ValueError(msg)
        return url.rstrip("/")

    @field_validator("list_id", mode="before")
    @classmethod
    def _validate_list_id(cls, value: Any) -> str | None:
        if value in (None, ""):
            return None
        cleaned = str(value).strip()
        return cleaned or None

    @field_validator("bearer_token", mode="before")
    @classmethod
    def _validate_bearer_token(cls, value: Any) -> str:
        if value in (None, ""):
            return ""
        token = str(value).strip()
        if len(token) > 500:
            msg = "Bookmark bearer token appears to be too long"
            raise ValueError(msg)
        return token

    @field_validator(*_INT_LIMITS, mode="before")
    @classmethod
    def _validate_int_bounds(cls, value: Any, info: ValidationInfo) -> int:
        low, high = _INT_LIMITS[info.field_name]
        return _parse_int_in_range(
            value,
            name=info.field_name.replace("_", " "),
            default=cls.model_fields[info.field_name].default,
            low=low,
            high=high,
        )

    @field_validator(
        "tag_persistence_enabled", "force_refresh_enabled", "use_screenshots", mode="before"
    )
    @classmethod
    def _validate_flags(cls, value: Any, info: ValidationInfo) -> bool:
        return _parse_bool(value, default=cls.model_fields[info.field_name].default)

    @field_validator("image_persistence_mode", mode="before")
    @classmethod
    def _validate_persistence_mode(cls, value: Any) -> str:
        mode = str(value or "sync").lower().strip()
        if mode not in {"sync", "background"}:
            msg = f"Invalid image persistence mode: {mode}. Must be 'sync' or 'background'"
            raise ValueError(msg)
        return mode
