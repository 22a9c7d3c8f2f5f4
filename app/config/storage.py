from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ObjectStoreConfig(BaseModel):
    """S3-compatible object store settings."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    bucket: str = Field(default="", validation_alias="S3_BUCKET")
    region: str = Field(default="us-east-1", validation_alias="S3_REGION")
    endpoint_url: str | None = Field(default=None, validation_alias="S3_ENDPOINT_URL")
    access_key_id: str | None = Field(default=None, validation_alias="S3_ACCESS_KEY_ID")
    secret_access_key: str | None = Field(default=None, validation_alias="S3_SECRET_ACCESS_KEY")
    cdn_url: str = Field(
        default="",
        validation_alias="S3_CDN_URL",
        description="Public base URL under which stored objects are served",
    )
    key_env_suffix: str | None = Field(
        default=None,
        validation_alias="S3_KEY_ENV_SUFFIX",
        description="Suffix for environment-scoped keys; derived from APP_ENV when unset",
    )

    @field_validator("endpoint_url", "access_key_id", "secret_access_key", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> str | None:
        if value in (None, ""):
            return None
        cleaned = str(value).strip()
        return cleaned or None

    @field_validator("cdn_url", mode="before")
    @classmethod
    def _normalize_cdn_url(cls, value: Any) -> str:
        return str(value or "").strip().rstrip("/")

    @field_validator("bucket", mode="before")
    @classmethod
    def _validate_bucket(cls, value: Any) -> str:
        bucket = str(value or "").strip()
        if len(bucket) > 63:
            msg = "S3 bucket name must be 63 characters or fewer"
            raise ValueError(msg)
        return bucket
