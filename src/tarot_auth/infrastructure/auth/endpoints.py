"""
Authentication API endpoints.

This module provides FastAPI endpoints for registration, login, token
refresh, logout, email confirmation, password reset and account
management. Handlers only translate between HTTP and the auth services;
every decision is made by the services.
"""

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field, SecretStr

from ...application.dto import AccountView
from ...application.result import Err, ErrorKind
from .http_errors import ApiError, error_to_http
from .middleware import AuthenticatedAccount, get_container, require_auth

logger = logging.getLogger(__name__)

# Create routers
router = APIRouter(prefix="/auth", tags=["Authentication"])
users_router = APIRouter(prefix="/users", tags=["Users"])


# Request/Response models
class RegisterRequest(BaseModel):
    """Registration request."""

    model_config = ConfigDict(populate_by_name=True)

    username: str
    email: str
    password: SecretStr
    full_name: str | None = Field(None, alias="fullName")


class LoginRequest(BaseModel):
    """Login request."""

    model_config = ConfigDict(populate_by_name=True)

    username_or_email: str = Field(..., alias="usernameOrEmail")
    password: SecretStr


class RefreshTokenRequest(BaseModel):
    """Token refresh request."""

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: SecretStr = Field(..., alias="refreshToken")


class EmailRequest(BaseModel):
    """Forgot-password and resend-confirmation request."""

    email: str


class PasswordResetConfirmRequest(BaseModel):
    """Password reset confirmation."""

    model_config = ConfigDict(populate_by_name=True)

    token: SecretStr
    new_password: SecretStr = Field(..., alias="newPassword")


class UpdateAccountRequest(BaseModel):
    """Profile update request. A new password requires the current one."""

    model_config = ConfigDict(populate_by_name=True)

    email: str | None = None
    full_name: str | None = Field(None, alias="fullName")
    password: SecretStr | None = None
    current_password: SecretStr | None = Field(None, alias="currentPassword")


class AccountStatusRequest(BaseModel):
    """Administrative enable/disable request."""

    model_config = ConfigDict(populate_by_name=True)

    is_active: bool = Field(..., alias="isActive")


class AccountResponse(BaseModel):
    """Sanitized account."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    full_name: str | None
    is_active: bool
    is_email_confirmed: bool
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_view(cls, view: AccountView) -> "AccountResponse":
        return cls.model_validate(view)


class RegisterResponse(BaseModel):
    """Registration response."""

    user: AccountResponse
    access_token: str
    token_type: str = "Bearer"


class LoginResponse(BaseModel):
    """Login response."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: AccountResponse


class TokenPairResponse(BaseModel):
    """Token refresh response."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int


class AccountEnvelope(BaseModel):
    user: AccountResponse


class MessageResponse(BaseModel):
    message: str


class ConfirmEmailResponse(BaseModel):
    message: str
    confirmed: bool


# Dependencies


async def throttle(request: Request) -> None:
    """Count the request against the public auth endpoint throttle."""
    await get_container(request).rate_limiter(request)


def _expires_in(container: Any) -> int:
    return int(container.minter.access_ttl.total_seconds())


# Public endpoints (no authentication required)


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(throttle)],
)
async def register(body: RegisterRequest, container: Any = Depends(get_container)) -> RegisterResponse:
    """
    Register a new account.

    Requires:
    - Unique username (3-50 characters, letters, digits, _ or -)
    - Unique, valid email address
    - Password of 6-128 characters with upper case, lower case and a digit
    """
    result = await container.orchestrator.register(
        username=body.username,
        email=body.email,
        password=body.password.get_secret_value(),
        full_name=body.full_name,
    )
    if not result.is_ok:
        raise error_to_http(result)

    outcome = result.value
    return RegisterResponse(
        user=AccountResponse.from_view(outcome.user), access_token=outcome.access_token
    )


@router.post("/login", response_model=LoginResponse, dependencies=[Depends(throttle)])
async def login(body: LoginRequest, container: Any = Depends(get_container)) -> LoginResponse:
    """
    Authenticate and start a session.

    Accepts a username or an email address (anything containing ``@``).
    """
    result = await container.orchestrator.login(
        body.username_or_email, body.password.get_secret_value()
    )
    if not result.is_ok:
        raise error_to_http(result)

    outcome = result.value
    return LoginResponse(
        access_token=outcome.tokens.access_token,
        refresh_token=outcome.tokens.refresh_token,
        expires_in=_expires_in(container),
        user=AccountResponse.from_view(outcome.user),
    )


@router.post("/refresh", response_model=TokenPairResponse, dependencies=[Depends(throttle)])
async def refresh_tokens(
    body: RefreshTokenRequest, container: Any = Depends(get_container)
) -> TokenPairResponse:
    """Exchange a refresh token for a new token pair; the old refresh token stops working."""
    result = await container.orchestrator.refresh_tokens(body.refresh_token.get_secret_value())
    if not result.is_ok:
        raise error_to_http(result)

    pair = result.value
    return TokenPairResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=_expires_in(container),
    )


@router.get(
    "/confirm-email", response_model=ConfirmEmailResponse, dependencies=[Depends(throttle)]
)
async def confirm_email(
    token: str = Query(..., min_length=1), container: Any = Depends(get_container)
) -> ConfirmEmailResponse:
    """Confirm an email address with the token that was mailed to it."""
    result = await container.orchestrator.confirm_email(token)
    if not result.is_ok:
        raise error_to_http(result, one_time_token=True)
    return ConfirmEmailResponse(message="Email confirmed successfully", confirmed=result.value)


@router.post(
    "/resend-confirmation", response_model=MessageResponse, dependencies=[Depends(throttle)]
)
async def resend_confirmation(
    body: EmailRequest, container: Any = Depends(get_container)
) -> MessageResponse:
    """Send a fresh confirmation token. The response does not reveal whether the email exists."""
    result = await container.orchestrator.resend_confirmation(body.email)
    if not result.is_ok:
        raise error_to_http(result)
    return MessageResponse(message=result.value)


@router.post("/forgot-password", response_model=MessageResponse, dependencies=[Depends(throttle)])
async def forgot_password(
    body: EmailRequest, container: Any = Depends(get_container)
) -> MessageResponse:
    """Request a password reset. The response does not reveal whether the email exists."""
    result = await container.orchestrator.forgot_password(body.email)
    if not result.is_ok:
        raise error_to_http(result)
    return MessageResponse(message=result.value)


@router.post("/reset-password", response_model=MessageResponse, dependencies=[Depends(throttle)])
async def reset_password(
    body: PasswordResetConfirmRequest, container: Any = Depends(get_container)
) -> MessageResponse:
    """Set a new password using a reset token."""
    result = await container.orchestrator.reset_password(
        body.token.get_secret_value(), body.new_password.get_secret_value()
    )
    if not result.is_ok:
        raise error_to_http(result, one_time_token=True)
    return MessageResponse(message=result.value)


# Protected endpoints (authentication required)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    caller: AuthenticatedAccount = Depends(require_auth),
    container: Any = Depends(get_container),
) -> MessageResponse:
    """End the caller's refresh session."""
    result = await container.orchestrator.logout(caller.id)
    if not result.is_ok:
        raise error_to_http(result)
    return MessageResponse(message="Logged out successfully")


@router.get("/profile", response_model=AccountEnvelope)
async def get_profile(caller: AuthenticatedAccount = Depends(require_auth)) -> AccountEnvelope:
    """Return the authenticated account."""
    return AccountEnvelope(user=AccountResponse.from_view(caller.account))


@users_router.put("/{account_id}", response_model=AccountEnvelope)
async def update_account(
    account_id: int,
    body: UpdateAccountRequest,
    caller: AuthenticatedAccount = Depends(require_auth),
    container: Any = Depends(get_container),
) -> AccountEnvelope:
    """
    Update email, full name or password.

    A password change is only allowed on the caller's own account and
    requires ``currentPassword``. Changing the email requires confirming
    the new address.
    """
    view: AccountView | None = None

    if body.password is not None:
        if caller.id != account_id:
            raise error_to_http(
                Err(ErrorKind.NOT_AUTHORIZED, "Only the account owner can change the password")
            )
        if body.current_password is None:
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                "Current password is required to set a new password",
                ErrorKind.VALIDATION_FAILED.value,
                fields={"currentPassword": ["Current password is required"]},
            )
        changed = await container.accounts.change_password(
            account_id,
            body.current_password.get_secret_value(),
            body.password.get_secret_value(),
        )
        if not changed.is_ok:
            raise error_to_http(changed)
        view = changed.value

    if view is None or body.email is not None or body.full_name is not None:
        updated = await container.accounts.update_profile(
            caller.id, account_id, email=body.email, full_name=body.full_name
        )
        if not updated.is_ok:
            raise error_to_http(updated)
        view = updated.value

    return AccountEnvelope(user=AccountResponse.from_view(view))


@users_router.patch("/{account_id}/status", response_model=AccountEnvelope)
async def set_account_status(
    account_id: int,
    body: AccountStatusRequest,
    caller: AuthenticatedAccount = Depends(require_auth),
    container: Any = Depends(get_container),
) -> AccountEnvelope:
    """Enable or disable an account (admin only)."""
    result = await container.accounts.set_active(caller.id, account_id, body.is_active)
    if not result.is_ok:
        raise error_to_http(result)
    logger.info(f"Account {account_id} status set to active={body.is_active}")
    return AccountEnvelope(user=AccountResponse.from_view(result.value))
