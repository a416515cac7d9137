"""
Data transfer objects returned by the application services.

Nothing in here carries a password hash or a stored token digest; the
account view is the only shape of an account that leaves the services.
"""

# Standard library imports
from dataclasses import dataclass
from datetime import datetime
from typing import Any

# Internal imports
from ..domain.entities import Account


@dataclass(frozen=True)
class AccountView:
    """Sanitized account as exposed to clients."""

    id: int
    username: str
    email: str
    full_name: str | None
    is_active: bool
    is_email_confirmed: bool
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_account(cls, account: Account) -> "AccountView":
        return cls(
            id=account.id,
            username=account.username,
            email=account.email,
            full_name=account.full_name,
            is_active=account.is_active,
            is_email_confirmed=account.is_email_confirmed,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "is_active": self.is_active,
            "is_email_confirmed": self.is_email_confirmed,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class TokenPair:
    """Access and refresh token issued together."""

    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime
    token_type: str = "Bearer"


@dataclass(frozen=True)
class RegistrationOutcome:
    user: AccountView
    access_token: str


@dataclass(frozen=True)
class LoginOutcome:
    user: AccountView
    tokens: TokenPair
