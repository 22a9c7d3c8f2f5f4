"""Tests for the Karakeep API client using httpx.MockTransport."""

from __future__ import annotations

import httpx
import pytest

from app.adapters.karakeep.client import KarakeepClient
from app.adapters.karakeep.source import KarakeepBookmarkSource
from app.domain.exceptions.domain_exceptions import (
    UpstreamError,
    UpstreamRetryableError,
    UpstreamTimeoutError,
)

API_URL = "https://bookmarks.test/api/v1"


def _raw(bookmark_id: str) -> dict:
    return {
        "id": bookmark_id,
        "title": f"Title {bookmark_id}",
        "createdAt": "2024-01-01T00:00:00Z",
        "modifiedAt": "2024-01-05T00:00:00Z",
        "tags": [{"id": "t1", "name": "Python", "attachedBy": "human"}],
        "content": {"type": "link", "url": f"https://example.com/{bookmark_id}"},
    }


def _client(handler, **kwargs) -> KarakeepClient:
    kwargs.setdefault("retry_base_delay", 0.0)
    return KarakeepClient(
        API_URL, "secret-token", transport=httpx.MockTransport(handler), **kwargs
    )


@pytest.mark.asyncio
async def test_follows_cursor_until_exhausted() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        cursor = request.url.params.get("cursor")
        if cursor is None:
            return httpx.Response(200, json={"bookmarks": [_raw("a"), _raw("b")], "nextCursor": "c2"})
        assert cursor == "c2"
        return httpx.Response(200, json={"items": [_raw("c")], "nextCursor": None})

    async with _client(handler, list_id="L1") as client:
        bookmarks = await client.get_all_bookmarks()

    assert [b.id for b in bookmarks] == ["a", "b", "c"]
    assert len(seen) == 2
    assert seen[0].url.path == "/api/v1/lists/L1/bookmarks"
    assert seen[0].headers["Authorization"] == "Bearer secret-token"


@pytest.mark.asyncio
async def test_without_list_reads_all_bookmarks() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json={"bookmarks": [], "nextCursor": None})

    async with _client(handler) as client:
        assert await client.get_all_bookmarks() == []

    assert paths == ["/api/v1/bookmarks"]


@pytest.mark.asyncio
async def test_cursor_cycle_stops_pagination() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={"bookmarks": [_raw(f"x{calls}")], "nextCursor": "same"})

    async with _client(handler) as client:
        bookmarks = await client.get_all_bookmarks()

    assert calls == 2
    assert len(bookmarks) == 2


@pytest.mark.asyncio
async def test_retries_transient_status_then_succeeds() -> None:
    responses = [httpx.Response(503), httpx.Response(429)]

    def handler(request: httpx.Request) -> httpx.Response:
        if responses:
            return responses.pop(0)
        return httpx.Response(200, json={"bookmarks": [_raw("a")], "nextCursor": None})

    async with _client(handler, max_retries=3) as client:
        bookmarks = await client.get_all_bookmarks()

    assert [b.id for b in bookmarks] == ["a"]


@pytest.mark.asyncio
async def test_retry_exhaustion_raises_retryable_error() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(502)

    async with _client(handler, max_retries=2) as client:
        with pytest.raises(UpstreamRetryableError) as exc_info:
            await client.get_all_bookmarks()

    assert calls == 3
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_client_errors_are_not_retried() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(401, json={"error": "unauthorized"})

    async with _client(handler) as client:
        with pytest.raises(UpstreamError) as exc_info:
            await client.get_all_bookmarks()

    assert calls == 1
    assert exc_info.value.status_code == 401
    assert not isinstance(exc_info.value, UpstreamRetryableError)


@pytest.mark.asyncio
async def test_page_timeout_aborts_fetch() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if request.url.params.get("cursor"):
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(200, json={"bookmarks": [_raw("a")], "nextCursor": "c2"})

    async with _client(handler) as client:
        with pytest.raises(UpstreamTimeoutError):
            await client.get_all_bookmarks()

    assert calls == 2


@pytest.mark.asyncio
async def test_malformed_body_is_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>oops</html>")

    async with _client(handler) as client:
        with pytest.raises(UpstreamError):
            await client.get_all_bookmarks()


@pytest.mark.asyncio
async def test_fetch_asset() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/assets/asset-1"
        return httpx.Response(200, content=b"img", headers={"content-type": "image/webp"})

    async with _client(handler) as client:
        assert client.asset_url("asset-1") == "https://bookmarks.test/api/assets/asset-1"
        body, content_type = await client.fetch_asset("asset-1")

    assert body == b"img"
    assert content_type == "image/webp"


@pytest.mark.asyncio
async def test_health_check() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"bookmarks": []})

    async with _client(handler) as client:
        assert await client.health_check()


@pytest.mark.asyncio
async def test_requires_context_manager() -> None:
    client = KarakeepClient(API_URL, "token")
    with pytest.raises(UpstreamError):
        await client.get_bookmarks()


@pytest.mark.asyncio
async def test_source_returns_normalized_bookmarks() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"bookmarks": [_raw("a")], "nextCursor": None})

    async with _client(handler) as client:
        bookmarks = await KarakeepBookmarkSource(client).fetch_all()

    assert bookmarks[0].url == "https://example.com/a"
    assert bookmarks[0].tag_slugs == ["python"]
