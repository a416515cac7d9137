"""
Credential Store Interface Definition

Defines the contract the persistence layer must implement for accounts.
The auth services depend only on this protocol.
"""

# Standard library imports
from abc import abstractmethod
from typing import Any, Protocol

# Internal imports
from ...domain.entities import Account, AccountChanges, NewAccount


class ICredentialStore(Protocol):
    """
    Account persistence interface.

    Email arguments are expected to be normalized (stripped, lower case)
    by the caller. Username lookups are exact.
    """

    @abstractmethod
    async def get_by_id(self, account_id: int) -> Account | None:
        """
        Retrieve an account by its identifier.

        Args:
            account_id: The unique identifier of the account

        Returns:
            The account if found, None otherwise

        Raises:
            StoreError: If retrieval fails
        """
        ...

    @abstractmethod
    async def get_by_username(self, username: str) -> Account | None:
        """Retrieve an account by exact username."""
        ...

    @abstractmethod
    async def get_by_email(self, email: str) -> Account | None:
        """Retrieve an account by normalized email."""
        ...

    @abstractmethod
    async def get_by_confirmation_token(self, token_digest: str) -> Account | None:
        """Retrieve the account whose pending confirmation token has this digest."""
        ...

    @abstractmethod
    async def get_by_reset_token(self, token_digest: str) -> Account | None:
        """Retrieve the account whose open password reset token has this digest."""
        ...

    @abstractmethod
    async def create(self, new_account: NewAccount) -> Account:
        """
        Persist a new account.

        Args:
            new_account: Field values for the account

        Returns:
            The stored account with its assigned identifier

        Raises:
            DuplicateCredentialError: Username or email already taken
            StoreError: If the write fails
        """
        ...

    @abstractmethod
    async def update(
        self,
        account_id: int,
        changes: AccountChanges,
        expected: dict[str, Any] | None = None,
    ) -> Account | None:
        """
        Apply a change-set to an account in a single atomic write.

        Args:
            account_id: Account to update
            changes: Field name to new value
            expected: Optional compare-and-set guard; the write only applies
                if every listed field still holds the given value

        Returns:
            The updated account, or None if the account does not exist or
            the guard did not match

        Raises:
            DuplicateCredentialError: The change would violate uniqueness
            StoreError: If the write fails
        """
        ...

    @abstractmethod
    async def delete(self, account_id: int) -> bool:
        """Remove an account. Returns False if it did not exist."""
        ...
