"""
Secret hashing service.

Handles one-way hashing of passwords and refresh tokens with bcrypt, and
the opaque one-time tokens used for email confirmation and password reset.
"""

import base64
import hashlib
import logging
import secrets

import bcrypt

logger = logging.getLogger(__name__)


class HashingError(Exception):
    """Raised when a secret could not be hashed."""


def generate_token(num_bytes: int = 32) -> str:
    """Generate a random opaque token (hex encoded, 64 chars by default)."""
    return secrets.token_hex(num_bytes)


def digest_token(token: str) -> str:
    """SHA-256 hex digest under which one-time tokens are stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class SecretHasher:
    """Bcrypt hashing for passwords and refresh tokens."""

    def __init__(self, rounds: int = 10) -> None:
        """Initialize with bcrypt rounds (cost factor)."""
        self.rounds = rounds
        self._dummy_hash: str | None = None

    @staticmethod
    def _prehash(secret: str) -> bytes:
        # bcrypt only reads 72 bytes; refresh JWTs are far longer
        return base64.b64encode(hashlib.sha256(secret.encode("utf-8")).digest())

    def hash(self, secret: str) -> str:
        """
        Hash a secret using bcrypt with a fresh salt.

        Raises:
            HashingError: If bcrypt fails
        """
        try:
            salt = bcrypt.gensalt(rounds=self.rounds)
            hashed = bcrypt.hashpw(self._prehash(secret), salt)
        except (ValueError, TypeError) as e:
            raise HashingError(f"Secret hashing failed: {e}") from e
        return hashed.decode("utf-8")

    def verify(self, secret: str, hashed: str | None) -> bool:
        """Verify a secret against its hash. A malformed hash never matches."""
        if secret is None or not hashed:
            return False
        try:
            return bcrypt.checkpw(self._prehash(secret), hashed.encode("utf-8"))
        except (ValueError, TypeError) as e:
            logger.warning(f"Secret verification failed on malformed hash: {e}")
            return False

    def verify_dummy(self, secret: str) -> bool:
        """
        Run a verification against a throwaway hash.

        Used when the account does not exist so the response takes as long
        as a real password check.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash(generate_token(16))
        self.verify(secret or "", self._dummy_hash)
        return False

    def needs_rehash(self, hashed: str) -> bool:
        """Check if a hash was produced with fewer rounds than configured."""
        parts = hashed.split("$")
        if len(parts) >= 3 and parts[2].isdigit():
            return int(parts[2]) < self.rounds
        return False
