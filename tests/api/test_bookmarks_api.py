"""Tests for the bookmarks HTTP API."""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import pytest
import pytest_asyncio

from app.api.main import create_app
from app.domain.exceptions.domain_exceptions import UpstreamError, UpstreamTimeoutError
from app.services.engine import BookmarkEngine
from tests.fakes import InMemoryObjectStore, StaticSource, build_config, image_transport, make_bookmark


@pytest.fixture
def source() -> StaticSource:
    return StaticSource(
        [
            make_bookmark("1", tags=["Python"]),
            make_bookmark("2", tags=["Python"]),
            make_bookmark("3", tags=["Rust"]),
        ]
    )


@pytest_asyncio.fixture
async def engine(source: StaticSource) -> AsyncIterator[BookmarkEngine]:
    engine = BookmarkEngine(
        build_config(),
        InMemoryObjectStore(),
        source=source,
        http_transport=image_transport(),
        owner_id="api-test",
    )
    await engine.start(sweep_locks=False)
    yield engine
    await engine.stop()


@pytest_asyncio.fixture
async def client(engine: BookmarkEngine) -> AsyncIterator[httpx.AsyncClient]:
    app = create_app(engine=engine)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_health(client: httpx.AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["status"] == "healthy"


@pytest.mark.asyncio
async def test_list_bookmarks_envelope(client: httpx.AsyncClient) -> None:
    response = await client.get("/v1/bookmarks")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["count"] == 3
    assert body["data"]["bookmarks"][0]["id"] == "1"
    assert "sourceUpdatedAt" in body["data"]["bookmarks"][0]
    assert body["meta"]["correlation_id"].startswith("api-")


@pytest.mark.asyncio
async def test_skip_upstream_on_empty_store(
    client: httpx.AsyncClient, source: StaticSource
) -> None:
    response = await client.get("/v1/bookmarks", params={"skipUpstream": "true"})

    assert response.json()["data"]["count"] == 0
    assert source.calls == 0


@pytest.mark.asyncio
async def test_pages_and_pagination(client: httpx.AsyncClient) -> None:
    await client.post("/v1/bookmarks/refresh")

    first = (await client.get("/v1/bookmarks/pages/1")).json()
    second = (await client.get("/v1/bookmarks/pages/2")).json()

    assert [b["id"] for b in first["data"]["bookmarks"]] == ["1", "2"]
    assert first["data"]["total_pages"] == 2
    assert first["meta"]["pagination"] == {"total": 3, "limit": 2, "offset": 0, "hasMore": True}
    assert second["meta"]["pagination"]["hasMore"] is False


@pytest.mark.asyncio
async def test_page_must_be_positive(client: httpx.AsyncClient) -> None:
    response = await client.get("/v1/bookmarks/pages/0")

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "VALIDATION_FAILED"


@pytest.mark.asyncio
async def test_index_not_found_before_first_refresh(client: httpx.AsyncClient) -> None:
    response = await client.get("/v1/bookmarks/index")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


@pytest.mark.asyncio
async def test_index_after_refresh(client: httpx.AsyncClient) -> None:
    refresh = await client.post("/v1/bookmarks/refresh")
    assert refresh.json()["data"] == {"refreshed": True, "count": 3, "forced": False}

    response = await client.get("/v1/bookmarks/index")

    assert response.status_code == 200
    assert response.json()["data"]["totalPages"] == 2


@pytest.mark.asyncio
async def test_tag_routes(client: httpx.AsyncClient) -> None:
    await client.post("/v1/bookmarks/refresh")

    index = await client.get("/v1/bookmarks/tags/Python/index")
    page = await client.get("/v1/bookmarks/tags/python/pages/1")
    missing = await client.get("/v1/bookmarks/tags/haskell/index")

    assert index.json()["data"]["count"] == 2
    assert page.json()["data"]["tag"] == "python"
    assert page.json()["data"]["count"] == 2
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_refresh_without_data_is_unavailable(
    client: httpx.AsyncClient, source: StaticSource
) -> None:
    source.error = UpstreamError("upstream down", status_code=502)

    response = await client.post("/v1/bookmarks/refresh")

    assert response.status_code == 503
    body = response.json()
    assert body["error"]["code"] == "NO_DATA_AVAILABLE"
    assert body["error"]["message"] == "No bookmark data is available yet"


@pytest.mark.asyncio
async def test_refresh_timeout_code(client: httpx.AsyncClient, source: StaticSource) -> None:
    source.error = UpstreamTimeoutError("page timed out")

    response = await client.post("/v1/bookmarks/refresh")

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "EXTERNAL_SERVICE_TIMEOUT"


@pytest.mark.asyncio
async def test_list_degrades_to_empty_on_refresh_failure(
    client: httpx.AsyncClient, source: StaticSource
) -> None:
    source.error = UpstreamError("upstream down")

    response = await client.get("/v1/bookmarks")

    assert response.status_code == 200
    assert response.json()["data"]["count"] == 0


@pytest.mark.asyncio
async def test_heartbeat(client: httpx.AsyncClient) -> None:
    await client.post("/v1/bookmarks/refresh")

    body = (await client.get("/v1/bookmarks/heartbeat")).json()

    assert body["data"]["heartbeat"]["success"] is True
    assert body["data"]["engine"]["lock_owner"] == "api-test"


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(client: httpx.AsyncClient) -> None:
    response = await client.get("/v1/bookmarks", headers={"X-Correlation-ID": "req-42"})

    assert response.headers["X-Correlation-ID"] == "req-42"
    assert response.json()["meta"]["correlation_id"] == "req-42"
