"""
Authentication middleware for FastAPI.

This module provides the bearer-token gate for protected routes plus the
request-id, request-logging and security-header middleware.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from fastapi import Request, status
from fastapi.responses import Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.middleware.base import BaseHTTPMiddleware

from ...application.dto import AccountView
from ...application.result import ErrorKind
from ..monitoring.logging import (
    account_id_var,
    generate_request_id,
    mask_sensitive_data,
    request_id_var,
)
from .http_errors import ApiError, error_to_http
from .jwt_service import TokenClaims

logger = logging.getLogger(__name__)


def get_container(request: Request) -> Any:
    """Get the auth container attached to the application."""
    return request.app.state.container


@dataclass(frozen=True)
class AuthenticatedAccount:
    """Caller identity resolved from a verified access token."""

    account: AccountView
    claims: TokenClaims

    @property
    def id(self) -> int:
        return self.account.id


class JWTBearer(HTTPBearer):
    """
    JWT Bearer token authentication.

    Validates the access token in the Authorization header, then re-checks
    the account so disabled or deleted accounts are refused even while
    their access tokens are unexpired.
    """

    def __init__(self) -> None:
        super().__init__(auto_error=False)

    async def __call__(self, request: Request) -> AuthenticatedAccount:  # type: ignore[override]
        """
        Validate JWT token from Authorization header.

        Raises:
            ApiError: 401 if missing, invalid or expired; 403 if the account is disabled
        """
        credentials: HTTPAuthorizationCredentials | None = await super().__call__(request)
        if not credentials or not credentials.credentials:
            raise ApiError(
                status.HTTP_401_UNAUTHORIZED,
                "Authorization required",
                ErrorKind.INVALID_OR_EXPIRED_TOKEN.value,
                headers={"WWW-Authenticate": "Bearer"},
            )

        container = get_container(request)
        verified = container.minter.verify_access(credentials.credentials)
        if not verified.is_ok:
            raise error_to_http(verified)
        claims: TokenClaims = verified.value

        session = await container.orchestrator.validate_session(claims.account_id)
        if not session.is_ok:
            raise error_to_http(session)

        # Store account context in request state
        request.state.account_id = claims.account_id
        request.state.username = claims.username
        account_id_var.set(claims.account_id)

        return AuthenticatedAccount(account=session.value, claims=claims)


require_auth = JWTBearer()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Security headers middleware.

    Adds security headers to all responses.
    """

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        """Add security headers to response."""
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"

        return response  # type: ignore[no-any-return]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Request ID middleware.

    Adds unique request ID for tracing and exposes it to log records.
    """

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        """Add request ID to request and response."""
        # Get or generate request ID
        request_id = request.headers.get("X-Request-ID")
        if not request_id:
            request_id = generate_request_id()

        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = request_id
        return response  # type: ignore[no-any-return]


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Request logging middleware.

    Logs method, path, status and duration of every request. JSON bodies
    are logged at DEBUG only after secrets have been masked.
    """

    def __init__(self, app: Any, log_bodies: bool = True) -> None:
        super().__init__(app)
        self.log_bodies = log_bodies

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        start_time = time.perf_counter()

        if self.log_bodies and logger.isEnabledFor(logging.DEBUG):
            await self._log_body(request)

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms:.1f}ms)"
        )
        return response  # type: ignore[no-any-return]

    async def _log_body(self, request: Request) -> None:
        if "application/json" not in request.headers.get("content-type", ""):
            return
        body = await request.body()
        if not body:
            return
        try:
            payload = await request.json()
        except ValueError:
            logger.debug(f"{request.method} {request.url.path} body: <unparseable>")
            return
        logger.debug(f"{request.method} {request.url.path} body: {mask_sensitive_data(payload)}")
