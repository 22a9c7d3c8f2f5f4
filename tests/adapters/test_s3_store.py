"""Tests for the boto3-backed object store, driven by botocore's Stubber."""

from __future__ import annotations

import io

import boto3
import pytest
from botocore.response import StreamingBody
from botocore.stub import Stubber

from app.adapters.storage.errors import (
    ObjectNotFoundError,
    ObjectStoreError,
    PreconditionFailedError,
)
from app.adapters.storage.s3_store import S3ObjectStore
from app.config import ObjectStoreConfig

BUCKET = "bookmarks-test"


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )


@pytest.fixture
def stubber(s3_client):
    with Stubber(s3_client) as stub:
        yield stub
        stub.assert_no_pending_responses()


@pytest.fixture
def object_store(s3_client) -> S3ObjectStore:
    return S3ObjectStore(ObjectStoreConfig(bucket=BUCKET, cdn_url="https://cdn.test"), s3_client)


def test_bucket_is_required() -> None:
    with pytest.raises(ValueError):
        S3ObjectStore(ObjectStoreConfig(bucket=""))


def test_public_url() -> None:
    cdn = S3ObjectStore(ObjectStoreConfig(bucket=BUCKET, cdn_url="https://cdn.test/"), object())
    plain = S3ObjectStore(ObjectStoreConfig(bucket=BUCKET), object())

    assert cdn.public_url("images/a.png") == "https://cdn.test/images/a.png"
    assert plain.public_url("images/a.png") == f"https://{BUCKET}.s3.amazonaws.com/images/a.png"


@pytest.mark.asyncio
async def test_get(stubber: Stubber, object_store: S3ObjectStore) -> None:
    stubber.add_response(
        "get_object",
        {"Body": StreamingBody(io.BytesIO(b"[]"), 2)},
        {"Bucket": BUCKET, "Key": "json/a.json"},
    )

    assert await object_store.get("json/a.json") == b"[]"


@pytest.mark.asyncio
async def test_get_missing(stubber: Stubber, object_store: S3ObjectStore) -> None:
    stubber.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)

    with pytest.raises(ObjectNotFoundError):
        await object_store.get("json/missing.json")


@pytest.mark.asyncio
async def test_conditional_put(stubber: Stubber, object_store: S3ObjectStore) -> None:
    stubber.add_response(
        "put_object",
        {},
        {
            "Bucket": BUCKET,
            "Key": "lock.json",
            "Body": b"{}",
            "ContentType": "application/json",
            "IfNoneMatch": "*",
        },
    )

    await object_store.put("lock.json", b"{}", if_none_match=True)


@pytest.mark.asyncio
async def test_conditional_put_conflict(stubber: Stubber, object_store: S3ObjectStore) -> None:
    stubber.add_client_error(
        "put_object", service_error_code="PreconditionFailed", http_status_code=412
    )

    with pytest.raises(PreconditionFailedError):
        await object_store.put("lock.json", b"{}", if_none_match=True)


@pytest.mark.asyncio
async def test_other_errors(stubber: Stubber, object_store: S3ObjectStore) -> None:
    stubber.add_client_error("delete_object", service_error_code="AccessDenied", http_status_code=403)

    with pytest.raises(ObjectStoreError) as exc_info:
        await object_store.delete("json/a.json")

    assert not isinstance(exc_info.value, (ObjectNotFoundError, PreconditionFailedError))
    assert exc_info.value.key == "json/a.json"


@pytest.mark.asyncio
async def test_list_keys(stubber: Stubber, object_store: S3ObjectStore) -> None:
    stubber.add_response(
        "list_objects_v2",
        {"Contents": [{"Key": "pages/page-1.json"}, {"Key": "pages/page-2.json"}]},
        {"Bucket": BUCKET, "Prefix": "pages/"},
    )

    assert await object_store.list_keys("pages/") == ["pages/page-1.json", "pages/page-2.json"]


@pytest.mark.asyncio
async def test_head(stubber: Stubber, object_store: S3ObjectStore) -> None:
    stubber.add_response(
        "head_object",
        {"ContentLength": 12, "ContentType": "image/png"},
        {"Bucket": BUCKET, "Key": "a.png"},
    )
    stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)

    info = await object_store.head("a.png")
    assert info is not None
    assert info.size == 12
    assert info.content_type == "image/png"
    assert await object_store.head("b.png") is None
