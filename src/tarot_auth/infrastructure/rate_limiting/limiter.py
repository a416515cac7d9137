"""
Throttle for the public auth endpoints.

A fixed-window counter per client address and route. Used as a FastAPI
dependency; an exhausted window raises RateLimitExceeded, which the app
turns into a 429 with Retry-After.
"""

import logging
from datetime import timedelta

from fastapi import Request

from .exceptions import RateLimitExceeded, RateLimitStorageError
from .storage import RateLimitStorage

logger = logging.getLogger(__name__)


class AuthRateLimiter:
    """Fixed-window request counter keyed by client and route."""

    def __init__(
        self,
        storage: RateLimitStorage,
        limit: int = 20,
        window: timedelta = timedelta(seconds=60),
        enabled: bool = True,
    ) -> None:
        self.storage = storage
        self.limit = limit
        self.window_seconds = max(1, int(window.total_seconds()))
        self.enabled = enabled

    def hit(self, identifier: str) -> int:
        """
        Count a request for an identifier.

        Returns:
            Remaining requests in the current window

        Raises:
            RateLimitExceeded: If the window is exhausted
        """
        if not self.enabled:
            return self.limit

        try:
            count = self.storage.increment(identifier, ttl=self.window_seconds)
        except RateLimitStorageError as e:
            # Allow the request but log the error
            logger.error(f"Error checking rate limit for {identifier}: {e}")
            return self.limit

        if count > self.limit:
            retry_after = self._retry_after(identifier)
            logger.warning(f"Rate limit exceeded for {identifier}")
            raise RateLimitExceeded(
                "Too many requests, please try again later",
                limit=self.limit,
                window_seconds=self.window_seconds,
                current_count=count,
                retry_after=retry_after,
                identifier=identifier,
            )
        return self.limit - count

    def _retry_after(self, identifier: str) -> int:
        try:
            remaining = self.storage.ttl(identifier)
        except RateLimitStorageError:
            return self.window_seconds
        return remaining if remaining > 0 else self.window_seconds

    async def __call__(self, request: Request) -> None:
        """FastAPI dependency entry point."""
        client = request.client.host if request.client else "unknown"
        self.hit(f"{client}:{request.url.path}")
