"""
Account Entity - A user's credentials and lifecycle flags

The Account is the unit the authentication core reasons about. Its
transition methods never mutate the instance; each returns a change-set
(field name -> new value) that the credential store applies in a single
atomic write, so related fields such as a token and its expiry always move
together.
"""

# Standard library imports
import hmac
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

# Internal imports
from ..exceptions import (
    AccountDisabledError,
    AccountStateError,
    NoActiveSessionError,
    TokenExpiredError,
    TokenMismatchError,
)

AccountChanges = dict[str, Any]

# Fields that must never leave the store/orchestrator boundary
SECRET_FIELDS = frozenset(
    {
        "password_hash",
        "email_confirmation_token",
        "email_confirmation_expires",
        "password_reset_token",
        "password_reset_expires",
        "refresh_token_hash",
        "refresh_token_expires",
    }
)


class ConfirmationState(Enum):
    """Email confirmation state"""

    UNCONFIRMED = "unconfirmed"
    CONFIRMED = "confirmed"


class ActivationState(Enum):
    """Administrative activation state"""

    ACTIVE = "active"
    DISABLED = "disabled"


@dataclass(frozen=True)
class NewAccount:
    """Field values for an account that has not been persisted yet."""

    username: str
    email: str
    password_hash: str
    email_confirmation_token: str
    email_confirmation_expires: datetime | None
    full_name: str | None = None


@dataclass(frozen=True)
class Account:
    """
    Persisted account with its credential and session state.

    Token fields hold digests or hashes, never the values handed to clients.
    """

    # Identity
    id: int
    username: str
    email: str
    password_hash: str
    full_name: str | None = None

    # Lifecycle flags
    is_active: bool = True
    is_email_confirmed: bool = False

    # Pending email confirmation
    email_confirmation_token: str | None = None
    email_confirmation_expires: datetime | None = None

    # Open password reset
    password_reset_token: str | None = None
    password_reset_expires: datetime | None = None

    # Single refresh session
    refresh_token_hash: str | None = None
    refresh_token_expires: datetime | None = None

    # Timestamps
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def confirmation_state(self) -> ConfirmationState:
        if self.is_email_confirmed:
            return ConfirmationState.CONFIRMED
        return ConfirmationState.UNCONFIRMED

    @property
    def activation_state(self) -> ActivationState:
        return ActivationState.ACTIVE if self.is_active else ActivationState.DISABLED

    def apply(self, changes: AccountChanges) -> "Account":
        """Return a copy of this account with a change-set applied."""
        return replace(self, **changes)

    # Authentication gate

    def ensure_can_authenticate(self) -> None:
        """Raise if the account may not log in, refresh or use a session."""
        if not self.is_active:
            raise AccountDisabledError(self.id)

    def has_refresh_session(self, now: datetime) -> bool:
        """Check whether a stored refresh session exists and has not expired."""
        if not self.refresh_token_hash or self.refresh_token_expires is None:
            return False
        return now < self.refresh_token_expires

    # Refresh session

    def begin_session(self, refresh_token_hash: str, expires_at: datetime) -> AccountChanges:
        """
        Replace the stored refresh session.

        Any previously issued refresh token stops validating once this
        change-set is written.
        """
        self.ensure_can_authenticate()
        return {"refresh_token_hash": refresh_token_hash, "refresh_token_expires": expires_at}

    def rotate_session(
        self, refresh_token_hash: str, expires_at: datetime, now: datetime
    ) -> AccountChanges:
        """Replace the current refresh session during a token refresh."""
        self.ensure_can_authenticate()
        if not self.has_refresh_session(now):
            raise NoActiveSessionError(self.id)
        return self.begin_session(refresh_token_hash, expires_at)

    @staticmethod
    def end_session() -> AccountChanges:
        return {"refresh_token_hash": None, "refresh_token_expires": None}

    # Email confirmation

    def confirm_email(self, token_digest: str, now: datetime) -> AccountChanges:
        """
        Move the account to the confirmed state.

        Args:
            token_digest: Digest of the token presented by the client
            now: Current time

        Returns:
            Change-set clearing the pending token

        Raises:
            TokenMismatchError: No pending token or it does not match
            TokenExpiredError: The pending token is past its expiry
        """
        pending = self.email_confirmation_token
        if not pending or not hmac.compare_digest(pending, token_digest):
            raise TokenMismatchError("Email confirmation", self.id)
        if self.email_confirmation_expires is not None and now >= self.email_confirmation_expires:
            raise TokenExpiredError("Email confirmation", self.id)
        return {
            "is_email_confirmed": True,
            "email_confirmation_token": None,
            "email_confirmation_expires": None,
        }

    def reissue_confirmation(self, token_digest: str, expires_at: datetime | None) -> AccountChanges:
        """Replace the pending confirmation token of an unconfirmed account."""
        if self.is_email_confirmed:
            raise AccountStateError("Email already confirmed", account_id=self.id)
        return {"email_confirmation_token": token_digest, "email_confirmation_expires": expires_at}

    def change_email(
        self, new_email: str, token_digest: str, expires_at: datetime | None
    ) -> AccountChanges:
        """Switch to a new email address, which must be confirmed again."""
        if new_email == self.email:
            return {}
        return {
            "email": new_email,
            "is_email_confirmed": False,
            "email_confirmation_token": token_digest,
            "email_confirmation_expires": expires_at,
        }

    # Password lifecycle

    def open_password_reset(self, token_digest: str, expires_at: datetime) -> AccountChanges:
        """Record a reset request, replacing any earlier one."""
        self.ensure_can_authenticate()
        return {"password_reset_token": token_digest, "password_reset_expires": expires_at}

    def complete_password_reset(
        self, token_digest: str, new_password_hash: str, now: datetime
    ) -> AccountChanges:
        """
        Consume the open reset token and replace the password.

        The reset pair and the refresh session are cleared in the same write
        so the token cannot validate twice and stolen sessions end.
        """
        self.ensure_can_authenticate()
        pending = self.password_reset_token
        if not pending or not hmac.compare_digest(pending, token_digest):
            raise TokenMismatchError("Password reset", self.id)
        if self.password_reset_expires is None or now >= self.password_reset_expires:
            raise TokenExpiredError("Password reset", self.id)
        return {
            "password_hash": new_password_hash,
            "password_reset_token": None,
            "password_reset_expires": None,
            **self.end_session(),
        }

    def change_password(self, new_password_hash: str) -> AccountChanges:
        return {"password_hash": new_password_hash, **self.end_session()}

    # Administrative activation

    def disable(self) -> AccountChanges:
        """Deactivate the account, ending its session and any open password reset."""
        return {
            "is_active": False,
            "password_reset_token": None,
            "password_reset_expires": None,
            **self.end_session(),
        }

    def enable(self) -> AccountChanges:
        return {"is_active": True}
