"""
HTTP error mapping for the auth API.

Converts ``Err`` results into HTTP exceptions and registers the handlers
that render every error as ``{"detail": ..., "code": ...}``.
"""

from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...application.result import Err, ErrorKind
from ..rate_limiting.exceptions import RateLimitExceeded

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION_FAILED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.DUPLICATE_CREDENTIAL: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.ACCOUNT_DISABLED: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_OR_EXPIRED_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.NOT_AUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INTERNAL_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _default_code(status_code: int) -> str:
    if status_code == status.HTTP_400_BAD_REQUEST:
        return "bad_request"
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return "unauthorized"
    if status_code == status.HTTP_403_FORBIDDEN:
        return "forbidden"
    if status_code == status.HTTP_404_NOT_FOUND:
        return "not_found"
    if status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return "method_not_allowed"
    return "http_error"


class ApiError(HTTPException):
    """HTTP exception carrying a machine readable error code."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        code: str,
        fields: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.code = code
        self.fields = fields or {}


def error_to_http(error: Err, one_time_token: bool = False) -> ApiError:
    """
    Map an ``Err`` result to an HTTP error.

    Args:
        error: Failed result
        one_time_token: The token in question is a confirmation or reset
            token, reported as 400 rather than 401
    """
    status_code = STATUS_BY_KIND[error.kind]
    headers = None
    if error.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN and one_time_token:
        status_code = status.HTTP_400_BAD_REQUEST
    elif status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return ApiError(status_code, error.detail, error.kind.value, error.fields, headers)


def _error_body(detail: Any, code: str, fields: dict[str, Any] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"detail": detail, "code": code}
    if fields:
        body["fields"] = fields
    return body


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP exceptions in the common error shape."""
    code = getattr(exc, "code", None) or _default_code(exc.status_code)
    fields = getattr(exc, "fields", None)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.detail, code, fields),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request-shape errors (missing fields, wrong types) are reported as 400."""
    fields: dict[str, list[str]] = {}
    for err in exc.errors():
        name = ".".join(str(item) for item in err.get("loc", []) if item not in ("body", "query"))
        fields.setdefault(name or "body", []).append(str(err.get("msg")))
    detail = "; ".join(f"{name}: {', '.join(messages)}" for name, messages in fields.items())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(detail or "Invalid request", ErrorKind.VALIDATION_FAILED.value, fields),
    )


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=_error_body(exc.message, "rate_limited"),
        headers=exc.headers(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)  # type: ignore[arg-type]
