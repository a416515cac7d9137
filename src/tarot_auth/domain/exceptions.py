"""
Domain-level exceptions for account lifecycle rules.

These exceptions are raised by the Account entity when a requested state
transition is not allowed. The application layer translates them into
typed error results.
"""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain-level errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class AccountStateError(DomainException):
    """Raised when an account transition is rejected."""

    def __init__(self, message: str, account_id: int | None = None, **details: Any) -> None:
        if account_id is not None:
            details["account_id"] = account_id
        super().__init__(message, details)
        self.account_id = account_id


class AccountDisabledError(AccountStateError):
    """Raised when a disabled account attempts to authenticate."""

    def __init__(self, account_id: int) -> None:
        super().__init__("Account is disabled", account_id=account_id)


class TokenMismatchError(AccountStateError):
    """Raised when a presented one-time token does not match the pending one."""

    def __init__(self, purpose: str, account_id: int | None = None) -> None:
        super().__init__(f"{purpose} token does not match", account_id=account_id, purpose=purpose)
        self.purpose = purpose


class TokenExpiredError(AccountStateError):
    """Raised when a pending one-time token has passed its expiry."""

    def __init__(self, purpose: str, account_id: int | None = None) -> None:
        super().__init__(f"{purpose} token has expired", account_id=account_id, purpose=purpose)
        self.purpose = purpose


class NoActiveSessionError(AccountStateError):
    """Raised when a refresh is attempted on an account without a stored session."""

    def __init__(self, account_id: int) -> None:
        super().__init__("No active refresh session", account_id=account_id)
