"""
JWT token management service for authentication.

This module mints and verifies the signed access and refresh tokens handed
to clients. Access and refresh tokens are signed with different secrets and
carry different audiences, so neither can be replayed as the other.
"""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from ...application.dto import TokenPair
from ...application.result import Err, ErrorKind, Ok, Result
from ...domain.entities import Account
from ..config import TokenConfig

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

_REQUIRED_CLAIMS = ["exp", "iat", "iss", "aud", "sub", "jti"]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of an access or refresh token."""

    account_id: int
    username: str
    email: str
    is_email_confirmed: bool
    token_type: str
    jti: str
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TokenClaims":
        return cls(
            account_id=int(payload["sub"]),
            username=str(payload.get("username", "")),
            email=str(payload.get("email", "")),
            is_email_confirmed=bool(payload.get("is_email_confirmed", False)),
            token_type=str(payload["type"]),
            jti=str(payload["jti"]),
            issued_at=datetime.fromtimestamp(payload["iat"], UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], UTC),
        )


class TokenMinter:
    """
    JWT token service for creating and validating tokens.

    Supports:
    - Access tokens (15 minutes default)
    - Refresh tokens (7 days default)
    - Separate signing secrets and audiences per token type
    """

    def __init__(self, config: TokenConfig, clock: Callable[[], datetime] = utc_now) -> None:
        """
        Initialize JWT service.

        Args:
            config: Secrets, lifetimes, issuer and audiences
            clock: Source of the current time used for ``iat``/``exp``
        """
        self.config = config
        self.algorithm = config.algorithm
        self._clock = clock

    @property
    def access_ttl(self) -> timedelta:
        return self.config.access_ttl

    @property
    def refresh_ttl(self) -> timedelta:
        return self.config.refresh_ttl

    def _encode(
        self, account: Account, token_type: str, secret: str, audience: str, ttl: timedelta
    ) -> tuple[str, datetime]:
        now = self._clock()
        expires_at = now + ttl
        payload = {
            # Standard claims
            "iss": self.config.issuer,
            "sub": str(account.id),
            "aud": audience,
            "exp": expires_at,
            "iat": now,
            "jti": secrets.token_urlsafe(16),
            # Account info
            "username": account.username,
            "email": account.email,
            "is_email_confirmed": account.is_email_confirmed,
            "type": token_type,
        }
        token = jwt.encode(payload, secret, algorithm=self.algorithm)
        return token, expires_at

    def create_access_token(self, account: Account) -> tuple[str, datetime]:
        """
        Create JWT access token.

        Returns:
            Signed token and its expiry
        """
        return self._encode(
            account,
            ACCESS_TOKEN_TYPE,
            self.config.access_secret,
            self.config.audience,
            self.config.access_ttl,
        )

    def create_refresh_token(self, account: Account) -> tuple[str, datetime]:
        """
        Create JWT refresh token.

        Returns:
            Signed token and its expiry
        """
        return self._encode(
            account,
            REFRESH_TOKEN_TYPE,
            self.config.refresh_secret,
            self.config.refresh_audience,
            self.config.refresh_ttl,
        )

    def issue_pair(self, account: Account) -> TokenPair:
        """Mint a fresh access and refresh token for an account."""
        access_token, access_expires = self.create_access_token(account)
        refresh_token, refresh_expires = self.create_refresh_token(account)
        logger.info(f"Issued token pair for account {account.id}")
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            access_expires_at=access_expires,
            refresh_expires_at=refresh_expires,
        )

    def _decode(
        self, token: str, secret: str, audience: str, token_type: str
    ) -> Result[TokenClaims]:
        if not token or not isinstance(token, str):
            return Err(ErrorKind.INVALID_OR_EXPIRED_TOKEN, "Token is missing")
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                issuer=self.config.issuer,
                audience=audience,
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            return Err(ErrorKind.INVALID_OR_EXPIRED_TOKEN, f"{token_type.capitalize()} token has expired")
        except jwt.InvalidTokenError as e:
            logger.debug(f"Rejected {token_type} token: {e}")
            return Err(ErrorKind.INVALID_OR_EXPIRED_TOKEN, f"Invalid {token_type} token")

        if payload.get("type") != token_type:
            return Err(ErrorKind.INVALID_OR_EXPIRED_TOKEN, f"Invalid {token_type} token")
        try:
            return Ok(TokenClaims.from_payload(payload))
        except (KeyError, TypeError, ValueError):
            return Err(ErrorKind.INVALID_OR_EXPIRED_TOKEN, f"Invalid {token_type} token")

    def verify_access(self, token: str) -> Result[TokenClaims]:
        """
        Verify and decode an access token.

        Checks signature, expiry, issuer, audience and token type. Malformed
        input yields an ``Err`` rather than an exception.
        """
        return self._decode(
            token, self.config.access_secret, self.config.audience, ACCESS_TOKEN_TYPE
        )

    def verify_refresh(self, token: str) -> Result[TokenClaims]:
        """Verify and decode a refresh token against the refresh secret."""
        return self._decode(
            token, self.config.refresh_secret, self.config.refresh_audience, REFRESH_TOKEN_TYPE
        )
