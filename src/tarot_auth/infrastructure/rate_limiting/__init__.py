"""
Rate limiting for the auth endpoints.
"""

from .exceptions import RateLimitError, RateLimitExceeded, RateLimitStorageError
from .limiter import AuthRateLimiter
from .storage import (
    MemoryRateLimitStorage,
    RateLimitStorage,
    RedisRateLimitStorage,
    create_storage,
)

__all__ = [
    "AuthRateLimiter",
    "RateLimitError",
    "RateLimitExceeded",
    "RateLimitStorageError",
    "RateLimitStorage",
    "MemoryRateLimitStorage",
    "RedisRateLimitStorage",
    "create_storage",
]
