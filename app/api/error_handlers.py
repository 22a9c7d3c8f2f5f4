"""Global exception handlers for the bookmarks API.

Provides consistent error responses across all endpoints with correlation ID tracking.
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from app.api.exceptions import APIException
from app.api.models.responses import ErrorCode, ErrorType, error_response, make_error
from app.domain.exceptions.domain_exceptions import BookmarkEngineError, UpstreamTimeoutError

logger = logging.getLogger(__name__)


async def api_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle custom API exceptions."""
    if not isinstance(exc, APIException):
        raise exc

    correlation_id = getattr(request.state, "correlation_id", None)
    logger.warning(
        "api_error",
        extra={
            "correlation_id": correlation_id,
            "error_code": exc.error_code.value,
            "status_code": exc.status_code,
            "path": request.url.path,
        },
    )

    detail = make_error(
        code=exc.error_code,
        message=exc.message,
        error_type=exc.error_type,
        retryable=exc.retryable,
        details=exc.details or None,
    )
    return JSONResponse(
        status_code=exc.status_code, content=error_response(detail, correlation_id=correlation_id)
    )


async def validation_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle FastAPI request validation errors."""
    if not isinstance(exc, RequestValidationError):
        raise exc

    correlation_id = getattr(request.state, "correlation_id", None)
    formatted_errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.info(
        "request_validation_failed",
        extra={"correlation_id": correlation_id, "errors": formatted_errors},
    )

    detail = make_error(
        code=ErrorCode.VALIDATION_FAILED,
        message="Request validation failed",
        details={"fields": formatted_errors},
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response(detail, correlation_id=correlation_id),
    )


async def engine_exception_handler(request: Request, exc: Exception) -> Response:
    """A refresh failed and nothing was persisted to serve instead."""
    if not isinstance(exc, BookmarkEngineError):
        raise exc

    correlation_id = getattr(request.state, "correlation_id", None)
    logger.error(
        "bookmark_engine_unavailable",
        extra={
            "correlation_id": correlation_id,
            "error": exc.message,
            "error_type": type(exc).__name__,
            "path": request.url.path,
        },
    )

    code = (
        ErrorCode.EXTERNAL_SERVICE_TIMEOUT
        if isinstance(exc, UpstreamTimeoutError)
        else ErrorCode.NO_DATA_AVAILABLE
    )
    detail = make_error(
        code=code,
        message="No bookmark data is available yet",
        error_type=ErrorType.EXTERNAL_SERVICE,
        retryable=True,
        details={"reason": type(exc).__name__},
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=error_response(detail, correlation_id=correlation_id),
    )


async def global_exception_handler(request: Request, exc: Exception) -> Response:
    """Catch-all handler for unexpected exceptions."""
    correlation_id = getattr(request.state, "correlation_id", None)
    logger.error(
        "unhandled_exception",
        exc_info=True,
        extra={"correlation_id": correlation_id, "path": request.url.path},
    )

    detail = make_error(
        code=ErrorCode.INTERNAL_ERROR,
        message="An internal server error occurred",
        retryable=False,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response(detail, correlation_id=correlation_id),
    )
