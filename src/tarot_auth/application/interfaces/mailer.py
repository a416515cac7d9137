"""
Account Mailer Interface

Outbound delivery of one-time tokens. Implementations receive the raw
token; it is never persisted or logged in that form.
"""

# Standard library imports
from abc import abstractmethod
from typing import Protocol

# Internal imports
from ...domain.entities import Account


class IAccountMailer(Protocol):
    """Delivers confirmation and password reset tokens to account owners."""

    @abstractmethod
    async def send_confirmation(self, account: Account, token: str) -> None:
        """Deliver an email confirmation token to the account's address."""
        ...

    @abstractmethod
    async def send_password_reset(self, account: Account, token: str) -> None:
        """Deliver a password reset token to the account's address."""
        ...
