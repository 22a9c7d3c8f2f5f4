"""API exceptions mapped onto the standard error envelope."""

from typing import Any

from app.api.models.responses import ErrorCode, ErrorType

_ERROR_TYPE_MAP: dict[ErrorCode, ErrorType] = {
    ErrorCode.VALIDATION_FAILED: ErrorType.VALIDATION,
    ErrorCode.RESOURCE_NOT_FOUND: ErrorType.NOT_FOUND,
    ErrorCode.EXTERNAL_UPSTREAM_ERROR: ErrorType.EXTERNAL_SERVICE,
    ErrorCode.EXTERNAL_SERVICE_TIMEOUT: ErrorType.EXTERNAL_SERVICE,
    ErrorCode.NO_DATA_AVAILABLE: ErrorType.EXTERNAL_SERVICE,
    ErrorCode.INTERNAL_ERROR: ErrorType.INTERNAL,
}

_RETRYABLE_CODES: set[ErrorCode] = {
    ErrorCode.EXTERNAL_UPSTREAM_ERROR,
    ErrorCode.EXTERNAL_SERVICE_TIMEOUT,
    ErrorCode.NO_DATA_AVAILABLE,
}


class APIException(Exception):
    """Base exception for all API errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
        error_type: ErrorType | None = None,
        retryable: bool | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        self.error_type = error_type or _ERROR_TYPE_MAP.get(error_code, ErrorType.INTERNAL)
        self.retryable = retryable if retryable is not None else (error_code in _RETRYABLE_CODES)


class ResourceNotFoundError(APIException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: int | str):
        super().__init__(
            message=f"{resource_type} {resource_id} not found",
            error_code=ErrorCode.RESOURCE_NOT_FOUND,
            status_code=404,
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
        )
