"""S3-compatible object store backed by boto3.

boto3 is synchronous, so each call runs in a worker thread via
``asyncio.to_thread``. Conditional creates use ``IfNoneMatch='*'``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from app.adapters.storage.errors import (
    ObjectNotFoundError,
    ObjectStoreError,
    PreconditionFailedError,
)
from app.adapters.storage.protocols import ObjectInfo

if TYPE_CHECKING:
    from app.config import ObjectStoreConfig

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})
_PRECONDITION_CODES = frozenset({"PreconditionFailed", "412", "ConditionalRequestConflict"})


def _error_code(exc: ClientError) -> str:
    error = exc.response.get("Error", {}) if isinstance(exc.response, dict) else {}
    code = str(error.get("Code") or "")
    if not code:
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        code = str(status or "")
    return code


class S3ObjectStore:
    """ObjectStore implementation for AWS S3 and compatible providers."""

    def __init__(self, config: ObjectStoreConfig, client: Any | None = None) -> None:
        if not config.bucket:
            msg = "S3_BUCKET is required for the S3 object store"
            raise ValueError(msg)
        self._bucket = config.bucket
        self._cdn_url = config.cdn_url
        self._s3 = client or self._build_client(config)

    @staticmethod
    def _build_client(config: ObjectStoreConfig) -> Any:
        kwargs: dict[str, Any] = {
            "region_name": config.region,
            "config": BotoConfig(retries={"max_attempts": 3, "mode": "standard"}),
        }
        if config.access_key_id:
            kwargs["aws_access_key_id"] = config.access_key_id
        if config.secret_access_key:
            kwargs["aws_secret_access_key"] = config.secret_access_key
        if config.endpoint_url:
            kwargs["endpoint_url"] = config.endpoint_url
        if config.endpoint_url and not (config.access_key_id and config.secret_access_key):
            logger.warning(
                "s3_endpoint_without_credentials",
                extra={"endpoint_url": config.endpoint_url},
            )
        return boto3.client("s3", **kwargs)

    def _translate(self, exc: Exception, key: str, operation: str) -> ObjectStoreError:
        if isinstance(exc, ClientError):
            code = _error_code(exc)
            if code in _NOT_FOUND_CODES:
                return ObjectNotFoundError(f"{key} not found", key=key)
            if code in _PRECONDITION_CODES:
                return PreconditionFailedError(f"{key} already exists", key=key)
            return ObjectStoreError(f"S3 {operation} failed for {key}: {code}", key=key)
        return ObjectStoreError(f"S3 {operation} failed for {key}: {exc}", key=key)

    async def get(self, key: str) -> bytes:
        def _get() -> bytes:
            response = self._s3.get_object(Bucket=self._bucket, Key=key)
            return response["Body"].read()

        try:
            return await asyncio.to_thread(_get)
        except (ClientError, BotoCoreError) as exc:
            raise self._translate(exc, key, "get") from exc

    async def put(
        self,
        key: str,
        body: bytes,
        *,
        content_type: str = "application/json",
        if_none_match: bool = False,
    ) -> None:
        kwargs: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": key,
            "Body": body,
            "ContentType": content_type,
        }
        if if_none_match:
            kwargs["IfNoneMatch"] = "*"
        try:
            await asyncio.to_thread(self._s3.put_object, **kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise self._translate(exc, key, "put") from exc

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._s3.delete_object, Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise self._translate(exc, key, "delete") from exc

    async def list_keys(self, prefix: str) -> list[str]:
        def _list() -> list[str]:
            paginator = self._s3.get_paginator("list_objects_v2")
            keys: list[str] = []
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
            return keys

        try:
            return await asyncio.to_thread(_list)
        except (ClientError, BotoCoreError) as exc:
            raise self._translate(exc, prefix, "list") from exc

    async def head(self, key: str) -> ObjectInfo | None:
        try:
            response = await asyncio.to_thread(self._s3.head_object, Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            error = self._translate(exc, key, "head")
            if isinstance(error, ObjectNotFoundError):
                return None
            raise error from exc
        return ObjectInfo(
            key=key,
            size=int(response.get("ContentLength", 0)),
            last_modified=response.get("LastModified"),
            content_type=response.get("ContentType"),
        )

    def public_url(self, key: str) -> str:
        if self._cdn_url:
            return f"{self._cdn_url}/{key}"
        return f"https://{self._bucket}.s3.amazonaws.com/{key}"
