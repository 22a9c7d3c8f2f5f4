"""
Pydantic models for API responses.
"""

from __future__ import annotations

import os
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from app.api.context import correlation_id_ctx
from app.core.time_utils import UTC


class ErrorType(str, Enum):
    """Categories of errors for client handling."""

    VALIDATION = "validation"  # Invalid path or query parameters
    NOT_FOUND = "not_found"
    EXTERNAL_SERVICE = "external_service"  # Upstream bookmarks API failures
    INTERNAL = "internal"


class ErrorCode(str, Enum):
    """Structured error codes for programmatic handling."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    EXTERNAL_UPSTREAM_ERROR = "EXTERNAL_UPSTREAM_ERROR"
    EXTERNAL_SERVICE_TIMEOUT = "EXTERNAL_SERVICE_TIMEOUT"
    NO_DATA_AVAILABLE = "NO_DATA_AVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
APP_BUILD: str | None = os.getenv("APP_BUILD") or None


class MetaInfo(BaseModel):
    """Metadata for all API responses."""

    correlation_id: str = ""
    timestamp: str = Field(
        default_factory=lambda: datetime.now(UTC).isoformat().replace("+00:00", "Z")
    )
    version: str = APP_VERSION
    build: str | None = APP_BUILD
    pagination: PaginationInfo | None = None
    debug: dict[str, Any] | None = None


class ErrorDetail(BaseModel):
    """Error details aligned to API error envelope."""

    code: str
    error_type: str = Field(default=ErrorType.INTERNAL.value, serialization_alias="errorType")
    message: str
    retryable: bool = False
    details: dict[str, Any] | None = None
    correlation_id: str = ""


class SuccessResponse(BaseModel):
    """Standard success response wrapper.

    When success=True, data is always present and non-null.
    """

    success: bool = True
    data: dict[str, Any]
    meta: MetaInfo = Field(default_factory=MetaInfo)


class ErrorResponse(BaseModel):
    """Standard error response wrapper."""

    success: bool = False
    error: ErrorDetail
    meta: MetaInfo = Field(default_factory=MetaInfo)


class PaginationInfo(BaseModel):
    """Pagination metadata."""

    total: int
    limit: int
    offset: int
    has_more: bool = Field(serialization_alias="hasMore")


class BookmarkListData(BaseModel):
    """A list of bookmarks in their persisted (camelCase) shape."""

    bookmarks: list[dict[str, Any]]
    count: int


class BookmarkPageData(BookmarkListData):
    page: int
    total_pages: int
    tag: str | None = None


class RefreshResultData(BaseModel):
    """Outcome of ``POST /v1/bookmarks/refresh``.

    ``refreshed`` is False when another process held the refresh lock.
    """

    refreshed: bool
    count: int
    forced: bool


def _coerce_pagination(pagination: BaseModel | dict[str, Any] | None) -> PaginationInfo | None:
    if pagination is None:
        return None
    if isinstance(pagination, PaginationInfo):
        return pagination
    if isinstance(pagination, BaseModel):
        return PaginationInfo.model_validate(pagination.model_dump())
    return PaginationInfo.model_validate(pagination)


def build_meta(
    *,
    correlation_id: str | None = None,
    pagination: BaseModel | dict[str, Any] | None = None,
    debug: dict[str, Any] | None = None,
) -> MetaInfo:
    """Construct meta with the context-aware correlation ID."""
    corr = correlation_id or correlation_id_ctx.get() or ""
    meta_kwargs: dict[str, Any] = {
        "correlation_id": corr,
        "pagination": _coerce_pagination(pagination),
    }
    if debug:
        meta_kwargs["debug"] = debug
    return MetaInfo(**meta_kwargs)


def success_response(
    data: BaseModel | dict[str, Any],
    *,
    correlation_id: str | None = None,
    pagination: BaseModel | dict[str, Any] | None = None,
    debug: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Helper to build a standardized success response."""
    payload = data.model_dump() if isinstance(data, BaseModel) else data
    meta = build_meta(correlation_id=correlation_id, pagination=pagination, debug=debug)
    return SuccessResponse(data=payload, meta=meta).model_dump(by_alias=True)


def make_error(
    code: str | ErrorCode,
    message: str,
    *,
    error_type: str | ErrorType | None = None,
    retryable: bool | None = None,
    details: dict[str, Any] | None = None,
) -> ErrorDetail:
    """Create an ErrorDetail, inferring type and retryability from the code."""
    code_str = code.value if isinstance(code, ErrorCode) else code

    if error_type is None:
        if code_str.startswith("VALIDATION_"):
            error_type = ErrorType.VALIDATION
        elif code_str.startswith("RESOURCE_NOT_FOUND"):
            error_type = ErrorType.NOT_FOUND
        elif code_str.startswith("EXTERNAL_"):
            error_type = ErrorType.EXTERNAL_SERVICE
        else:
            error_type = ErrorType.INTERNAL

    error_type_str = error_type.value if isinstance(error_type, ErrorType) else error_type

    if retryable is None:
        retryable = error_type_str == ErrorType.EXTERNAL_SERVICE.value

    return ErrorDetail(
        code=code_str,
        error_type=error_type_str,
        message=message,
        retryable=retryable,
        details=details,
    )


def error_response(
    detail: ErrorDetail,
    *,
    correlation_id: str | None = None,
    debug: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Helper to build a standardized error response."""
    corr = correlation_id or correlation_id_ctx.get() or ""
    if not detail.correlation_id:
        detail = detail.model_copy(update={"correlation_id": corr})
    meta = build_meta(correlation_id=corr, debug=debug)
    return ErrorResponse(error=detail, meta=meta).model_dump(by_alias=True)
