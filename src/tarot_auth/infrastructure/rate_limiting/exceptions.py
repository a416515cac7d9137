"""
Rate limiting exceptions.
"""

from typing import Any


class RateLimitError(Exception):
    """Base exception for all rate limiting errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RateLimitExceeded(RateLimitError):
    """Raised when a rate limit is exceeded."""

    def __init__(
        self,
        message: str,
        limit: int,
        window_seconds: int,
        current_count: int,
        retry_after: int,
        identifier: str | None = None,
    ) -> None:
        super().__init__(message)
        self.limit = limit
        self.window_seconds = window_seconds
        self.current_count = current_count
        self.retry_after = retry_after
        self.identifier = identifier

    def headers(self) -> dict[str, str]:
        return {
            "Retry-After": str(self.retry_after),
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": "0",
        }


class RateLimitStorageError(RateLimitError):
    """Raised when rate limit storage operations fail."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        storage_backend: str | None = None,
    ) -> None:
        super().__init__(message, {"operation": operation, "storage_backend": storage_backend})
        self.operation = operation
        self.storage_backend = storage_backend
