"""Karakeep API client."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING, TypeVar

import httpx

from app.adapters.karakeep.models import KarakeepBookmark, KarakeepBookmarkList
from app.domain.exceptions.domain_exceptions import (
    UpstreamError,
    UpstreamRetryableError,
    UpstreamTimeoutError,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from typing import Self

logger = logging.getLogger(__name__)

T = TypeVar("T")

# HTTP status codes that should trigger a retry
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0  # seconds
DEFAULT_MAX_DELAY = 30.0  # seconds
DEFAULT_JITTER = 0.1  # 10% jitter
DEFAULT_TIMEOUT = 10.0  # seconds, per page


def _is_retryable_error(exc: Exception) -> bool:
    """Check if an exception is retryable.

    Timeouts are deliberately excluded: a page that times out aborts the
    whole fetch.
    """
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    if isinstance(exc, httpx.TimeoutException):
        return False
    if isinstance(exc, (httpx.ConnectError, httpx.RemoteProtocolError)):
        return True
    return isinstance(exc, UpstreamRetryableError)


def _calculate_delay(attempt: int, base_delay: float, max_delay: float, jitter: float) -> float:
    """Calculate delay with exponential backoff and jitter.

    Args:
        attempt: Current attempt number (0-indexed)
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds
        jitter: Jitter factor (0.1 = 10% random variation)

    Returns:
        Delay in seconds
    """
    delay = min(base_delay * (2**attempt), max_delay)
    jitter_amount = delay * jitter * random.random()
    return delay + jitter_amount


def _as_upstream_error(exc: Exception, operation_name: str) -> UpstreamError:
    if isinstance(exc, UpstreamError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return UpstreamTimeoutError(f"{operation_name} timed out: {exc}")
    if isinstance(exc, httpx.HTTPStatusError):
        return UpstreamError(
            f"{operation_name} failed with HTTP {exc.response.status_code}",
            status_code=exc.response.status_code,
        )
    return UpstreamError(f"{operation_name} failed: {exc}")


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    *,
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    jitter: float = DEFAULT_JITTER,
    operation_name: str = "operation",
) -> T:
    """Execute an async function with exponential backoff retry.

    Args:
        func: Async function to execute
        max_retries: Maximum number of retry attempts
        base_delay: Base delay between retries in seconds
        max_delay: Maximum delay between retries
        jitter: Random jitter factor to add to delay
        operation_name: Name of operation for logging

    Returns:
        Result of the function

    Raises:
        UpstreamError: On a non-retryable failure or when all retries are exhausted
    """
    for attempt in range(max_retries + 1):
        try:
            return await func()
        except (httpx.HTTPError, UpstreamError, ValueError) as e:
            if not _is_retryable_error(e):
                raise _as_upstream_error(e, operation_name) from e

            if attempt == max_retries:
                logger.error(
                    "upstream_retry_exhausted",
                    extra={
                        "operation": operation_name,
                        "attempts": attempt + 1,
                        "error": str(e),
                    },
                )
                status = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
                raise UpstreamRetryableError(
                    f"{operation_name} failed after {attempt + 1} attempts: {e}",
                    status_code=status,
                ) from e

            delay = _calculate_delay(attempt, base_delay, max_delay, jitter)
            logger.warning(
                "upstream_retry_attempt",
                extra={
                    "operation": operation_name,
                    "attempt": attempt + 1,
                    "max_retries": max_retries,
                    "delay_seconds": round(delay, 2),
                    "error": str(e),
                },
            )
            await asyncio.sleep(delay)

    raise UpstreamError(f"{operation_name} failed")


class KarakeepClient:
    """Async HTTP client for the Karakeep bookmarks API."""

    def __init__(
        self,
        api_url: str,
        bearer_token: str,
        timeout: float = DEFAULT_TIMEOUT,
        *,
        list_id: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_BASE_DELAY,
        retry_max_delay: float = DEFAULT_MAX_DELAY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Karakeep client.

        Args:
            api_url: Base URL for the API (e.g., http://localhost:3000/api/v1)
            bearer_token: Token sent as ``Authorization: Bearer``
            timeout: Per-request timeout in seconds
            list_id: Restrict fetching to one list; None reads all bookmarks
            max_retries: Maximum number of retry attempts for transient failures
            retry_base_delay: Base delay between retries in seconds
            retry_max_delay: Maximum delay between retries in seconds
            transport: Optional httpx transport (tests use ``httpx.MockTransport``)
        """
        self.api_url = api_url.rstrip("/")
        self.bearer_token = bearer_token
        self.timeout = timeout
        self.list_id = list_id
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> Self:
        """Enter async context."""
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            headers={
                "Authorization": f"Bearer {self.bearer_token}",
                "Accept": "application/json",
            },
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client."""
        if self._client is None:
            raise UpstreamError("Client not initialized. Use async context manager.")
        return self._client

    @property
    def bookmarks_path(self) -> str:
        if self.list_id:
            return f"/lists/{self.list_id}/bookmarks"
        return "/bookmarks"

    @property
    def asset_base_url(self) -> str:
        """Origin that serves ``/api/assets/{id}``."""
        for suffix in ("/api/v1", "/api"):
            if self.api_url.endswith(suffix):
                return self.api_url[: -len(suffix)]
        return self.api_url

    def asset_url(self, asset_id: str) -> str:
        return f"{self.asset_base_url}/api/assets/{asset_id}"

    async def _with_retry(
        self,
        func: Callable[[], Awaitable[T]],
        operation_name: str,
    ) -> T:
        return await retry_with_backoff(
            func,
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
            operation_name=operation_name,
        )

    async def get_bookmarks(self, cursor: str | None = None) -> KarakeepBookmarkList:
        """Get one cursor page of bookmarks."""
        params: dict[str, str] = {}
        if cursor:
            params["cursor"] = cursor

        async def _fetch() -> KarakeepBookmarkList:
            response = await self.client.get(self.bookmarks_path, params=params)
            response.raise_for_status()
            return KarakeepBookmarkList.model_validate(response.json())

        return await self._with_retry(_fetch, "get_bookmarks")

    async def get_all_bookmarks(self) -> list[KarakeepBookmark]:
        """Follow ``nextCursor`` until exhausted.

        Raises:
            UpstreamTimeoutError: If any page times out; partial results are discarded.
            UpstreamError: For any other page failure.
        """
        all_bookmarks: list[KarakeepBookmark] = []
        cursor: str | None = None
        seen_cursors: set[str] = set()
        pages = 0

        while True:
            result = await self.get_bookmarks(cursor=cursor)
            pages += 1
            all_bookmarks.extend(result.bookmarks)

            if not result.next_cursor:
                break
            if result.next_cursor in seen_cursors:
                logger.warning(
                    "upstream_cursor_cycle",
                    extra={"cursor": result.next_cursor, "pages": pages},
                )
                break
            seen_cursors.add(result.next_cursor)
            cursor = result.next_cursor

        logger.info(
            "upstream_fetched_all_bookmarks",
            extra={"count": len(all_bookmarks), "pages": pages, "list_id": self.list_id},
        )
        return all_bookmarks

    async def fetch_asset(self, asset_id: str) -> tuple[bytes, str | None]:
        """Download an asset's bytes and content type."""
        url = self.asset_url(asset_id)

        async def _fetch() -> tuple[bytes, str | None]:
            response = await self.client.get(url)
            response.raise_for_status()
            return response.content, response.headers.get("content-type")

        return await self._with_retry(_fetch, f"fetch_asset({asset_id})")

    async def health_check(self) -> bool:
        try:
            response = await self.client.get(self.bookmarks_path, params={"limit": 1})
            return response.status_code == 200
        except httpx.HTTPError as exc:
            logger.warning("upstream_health_check_failed", extra={"error": str(exc)})
            return False
