"""Domain-specific exceptions.

These exceptions represent failures of the bookmark refresh and read
cycle. Lock contention and missing objects are not errors: they surface
as ``False`` / ``None`` at the component boundary.
"""


class BookmarkEngineError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        """Initialize engine exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class UpstreamError(BookmarkEngineError):
    """Raised when the upstream bookmarks API cannot be read."""

    def __init__(
        self, message: str, status_code: int | None = None, details: dict | None = None
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class UpstreamRetryableError(UpstreamError):
    """Transient upstream failure (rate limit, 5xx, connection reset)."""

    pass


class UpstreamTimeoutError(UpstreamError):
    """A single upstream page exceeded its request timeout."""

    pass


class DatasetValidationError(BookmarkEngineError):
    """Raised when a freshly fetched dataset must not replace persisted data."""

    pass


class PersistenceError(BookmarkEngineError):
    """Raised when a write to the object store fails."""

    def __init__(self, message: str, key: str | None = None, details: dict | None = None) -> None:
        super().__init__(message, details)
        self.key = key


class LockError(BookmarkEngineError):
    """Unexpected store failure while acquiring or releasing a lock."""

    pass
