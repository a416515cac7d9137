"""
Storage backends for auth throttling.

Provides Redis and in-memory counter storage for distributed and local
rate limiting.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Any

import redis
from redis.exceptions import RedisError

from .exceptions import RateLimitStorageError


class RateLimitStorage(ABC):
    """Abstract base class for rate limit storage backends."""

    @abstractmethod
    def increment(self, key: str, amount: int = 1, ttl: int | None = None) -> int:
        """
        Atomically increment a counter.

        The TTL is applied when the counter is created and left alone on
        later increments, giving fixed windows.
        """
        pass

    @abstractmethod
    def ttl(self, key: str) -> int:
        """Get TTL for key (-1 if no TTL, -2 if key doesn't exist)."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete key."""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Check if storage backend is healthy."""
        pass


class MemoryRateLimitStorage(RateLimitStorage):
    """
    In-memory storage backend for rate limiting.

    Suitable for single-instance deployments or development.
    Data is lost when application restarts.
    """

    def __init__(self, cleanup_interval: int = 3600) -> None:
        self._store: dict[str, tuple[int, float | None]] = {}  # key -> (count, expires_at)
        self._lock = threading.RLock()
        self.cleanup_interval = cleanup_interval
        self._last_cleanup = time.monotonic()

    def _cleanup_if_needed(self) -> None:
        now = time.monotonic()
        if now - self._last_cleanup > self.cleanup_interval:
            self.cleanup_expired()
            self._last_cleanup = now

    def _live_entry(self, key: str) -> tuple[int, float | None] | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._store[key]
            return None
        return entry

    def increment(self, key: str, amount: int = 1, ttl: int | None = None) -> int:
        """Atomically increment counter."""
        with self._lock:
            self._cleanup_if_needed()
            entry = self._live_entry(key)
            if entry is None:
                expires_at = time.monotonic() + ttl if ttl is not None else None
                self._store[key] = (amount, expires_at)
                return amount
            count, expires_at = entry
            self._store[key] = (count + amount, expires_at)
            return count + amount

    def ttl(self, key: str) -> int:
        """Get TTL for key."""
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return -2
            _, expires_at = entry
            if expires_at is None:
                return -1
            return max(0, int(round(expires_at - time.monotonic())))

    def delete(self, key: str) -> bool:
        """Delete key."""
        with self._lock:
            return self._store.pop(key, None) is not None

    def cleanup_expired(self) -> int:
        """Clean up expired keys."""
        with self._lock:
            now = time.monotonic()
            expired_keys = [
                key
                for key, (_, expires_at) in self._store.items()
                if expires_at is not None and now >= expires_at
            ]
            for key in expired_keys:
                del self._store[key]
            return len(expired_keys)

    def health_check(self) -> bool:
        """Memory storage is always healthy."""
        return True


class RedisRateLimitStorage(RateLimitStorage):
    """
    Redis storage backend for rate limiting.

    Provides rate limiting shared across multiple application instances.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        client: Any | None = None,
        key_prefix: str = "tarot_auth:throttle:",
    ) -> None:
        self.key_prefix = key_prefix
        if client is not None:
            self.redis_client = client
            return
        if not redis_url:
            raise RateLimitStorageError("Redis URL is required", storage_backend="redis")

        # Parse Redis URL and create connection
        try:
            self.redis_client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
        except (RedisError, ValueError) as e:
            raise RateLimitStorageError(
                f"Failed to configure Redis: {e}", storage_backend="redis"
            ) from e

    def _make_key(self, key: str) -> str:
        """Create prefixed key."""
        return f"{self.key_prefix}{key}"

    def increment(self, key: str, amount: int = 1, ttl: int | None = None) -> int:
        """
        Atomically increment counter.

        The expiry is queued in the same MULTI/EXEC block and only applies to
        a key that has none, so the window never slides and a key left
        without a TTL is repaired by the next hit.
        """
        try:
            prefixed_key = self._make_key(key)

            with self.redis_client.pipeline(transaction=True) as pipe:
                pipe.incrby(prefixed_key, amount)
                if ttl is not None:
                    pipe.expire(prefixed_key, ttl, nx=True)
                results = pipe.execute()
            return int(results[0])

        except RedisError as e:
            raise RateLimitStorageError(
                f"Redis INCREMENT failed: {e}", operation="increment", storage_backend="redis"
            ) from e

    def ttl(self, key: str) -> int:
        """Get TTL for key."""
        try:
            return int(self.redis_client.ttl(self._make_key(key)))

        except RedisError as e:
            raise RateLimitStorageError(
                f"Redis TTL failed: {e}", operation="ttl", storage_backend="redis"
            ) from e

    def delete(self, key: str) -> bool:
        """Delete key."""
        try:
            return bool(self.redis_client.delete(self._make_key(key)))

        except RedisError as e:
            raise RateLimitStorageError(
                f"Redis DELETE failed: {e}", operation="delete", storage_backend="redis"
            ) from e

    def health_check(self) -> bool:
        """Check Redis connection health."""
        try:
            return bool(self.redis_client.ping())
        except RedisError:
            return False


def create_storage(redis_url: str | None = None) -> RateLimitStorage:
    """Factory function to create appropriate storage backend."""
    if redis_url:
        return RedisRateLimitStorage(redis_url)
    return MemoryRateLimitStorage()
