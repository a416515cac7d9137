"""
Account management service.

Handles profile reads and updates, password changes, provisioning of admin
accounts, and administrative enable/disable of accounts.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from ....application.dto import AccountView
from ....application.interfaces.credential_store import ICredentialStore
from ....application.interfaces.exceptions import DuplicateCredentialError
from ....application.interfaces.mailer import IAccountMailer
from ....application.result import Err, ErrorKind, Ok, Result
from ....domain.entities import Account, AccountChanges, NewAccount
from ...config import AccountConfig
from ..credential_policy import (
    PasswordPolicy,
    normalize_email,
    validate_email_address,
    validate_full_name,
    validate_registration,
)
from ..jwt_service import utc_now
from ..secret_hasher import SecretHasher
from .base import (
    INVALID_CREDENTIALS,
    contained,
    deliver,
    duplicate_credential,
    new_one_time_token,
    validation_failed,
)

logger = logging.getLogger(__name__)


def _not_found(account_id: int) -> Err:
    return Err(ErrorKind.NOT_FOUND, f"Account {account_id} not found")


def _not_authorized() -> Err:
    return Err(ErrorKind.NOT_AUTHORIZED, "Not allowed to modify this account")


class AccountService:
    """Account management service."""

    def __init__(
        self,
        store: ICredentialStore,
        hasher: SecretHasher,
        mailer: IAccountMailer,
        config: AccountConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.mailer = mailer
        self.config = config or AccountConfig()
        self._clock = clock

    def is_admin(self, account: Account) -> bool:
        return account.username in self.config.admin_usernames

    @contained("provision_admin")
    async def provision_admin(
        self, username: str, email: str, password: str, full_name: str | None = None
    ) -> Result[AccountView]:
        """
        Create an admin account on behalf of an operator.

        Admin usernames are reserved at registration, so this is the only
        way to obtain one. The username must be listed in the configured
        admin usernames.
        """
        if username not in self.config.admin_usernames:
            return validation_failed({"username": ["Username is not a configured admin"]})
        errors = validate_registration(username, email, password, full_name)
        if errors:
            return validation_failed(errors)

        email = normalize_email(email)
        if await self.store.get_by_username(username) is not None:
            return duplicate_credential("username")
        if await self.store.get_by_email(email) is not None:
            return duplicate_credential("email")

        token, token_digest, expires_at = new_one_time_token(
            self._clock(), self.config.email_confirmation_ttl
        )
        try:
            account = await self.store.create(
                NewAccount(
                    username=username,
                    email=email,
                    password_hash=self.hasher.hash(password),
                    email_confirmation_token=token_digest,
                    email_confirmation_expires=expires_at,
                    full_name=full_name,
                )
            )
        except DuplicateCredentialError as e:
            return duplicate_credential(e.field)

        await deliver(self.mailer.send_confirmation, account, token)
        logger.info(f"Provisioned admin account {account.id}")
        return Ok(AccountView.from_account(account))

    @contained("get_profile")
    async def get_profile(self, account_id: int) -> Result[AccountView]:
        account = await self.store.get_by_id(account_id)
        if account is None:
            return _not_found(account_id)
        return Ok(AccountView.from_account(account))

    @contained("update_profile")
    async def update_profile(
        self,
        requester_id: int,
        account_id: int,
        email: str | None = None,
        full_name: str | None = None,
    ) -> Result[AccountView]:
        """
        Update email and/or full name.

        Only the owner or an admin may update an account. A new email moves
        the account back to unconfirmed and mails a fresh confirmation token.
        """
        requester = await self.store.get_by_id(requester_id)
        if requester is None or (requester_id != account_id and not self.is_admin(requester)):
            return _not_authorized()

        target = requester if requester_id == account_id else await self.store.get_by_id(account_id)
        if target is None:
            return _not_found(account_id)

        errors: dict[str, list[str]] = {}
        if email is not None:
            email_errors = validate_email_address(email)
            if email_errors:
                errors["email"] = email_errors
        name_errors = validate_full_name(full_name)
        if name_errors:
            errors["full_name"] = name_errors
        if errors:
            return validation_failed(errors)

        changes: AccountChanges = {}
        if full_name is not None:
            changes["full_name"] = full_name

        confirmation_token = None
        if email is not None and normalize_email(email) != target.email:
            new_email = normalize_email(email)
            holder = await self.store.get_by_email(new_email)
            if holder is not None and holder.id != target.id:
                return duplicate_credential("email")
            confirmation_token, token_digest, expires_at = new_one_time_token(
                self._clock(), self.config.email_confirmation_ttl
            )
            changes.update(target.change_email(new_email, token_digest, expires_at))

        if not changes:
            return Ok(AccountView.from_account(target))

        try:
            updated = await self.store.update(target.id, changes)
        except DuplicateCredentialError as e:
            return duplicate_credential(e.field)
        if updated is None:
            return _not_found(account_id)

        if confirmation_token is not None:
            await deliver(self.mailer.send_confirmation, updated, confirmation_token)
            logger.info(f"Email changed for account {updated.id}; confirmation required")
        logger.info(f"Profile updated for account {updated.id}")
        return Ok(AccountView.from_account(updated))

    @contained("change_password")
    async def change_password(
        self, account_id: int, current_password: str, new_password: str
    ) -> Result[AccountView]:
        """
        Change the password of an account.

        The current password must verify. The refresh session is ended so
        other devices have to log in again.
        """
        account = await self.store.get_by_id(account_id)
        if account is None:
            return _not_found(account_id)

        # Verify current password
        if not self.hasher.verify(current_password, account.password_hash):
            logger.info(f"Password change rejected for account {account_id}: bad current password")
            return Err(ErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS)

        # Validate new password
        errors = PasswordPolicy.validate(new_password)
        if errors:
            return validation_failed({"password": errors})

        updated = await self.store.update(
            account_id, account.change_password(self.hasher.hash(new_password))
        )
        if updated is None:
            return _not_found(account_id)

        logger.info(f"Password changed for account {account_id}")
        return Ok(AccountView.from_account(updated))

    @contained("set_active")
    async def set_active(self, requester_id: int, account_id: int, active: bool) -> Result[AccountView]:
        """Enable or disable an account. Admin only; disabling ends the refresh session."""
        requester = await self.store.get_by_id(requester_id)
        if requester is None or not self.is_admin(requester):
            return _not_authorized()

        target = await self.store.get_by_id(account_id)
        if target is None:
            return _not_found(account_id)

        changes = target.enable() if active else target.disable()
        updated = await self.store.update(account_id, changes)
        if updated is None:
            return _not_found(account_id)

        logger.info(
            f"Account {account_id} {'enabled' if active else 'disabled'} by account {requester_id}"
        )
        return Ok(AccountView.from_account(updated))
