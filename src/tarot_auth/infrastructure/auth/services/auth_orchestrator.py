"""
Authentication orchestration service.

Coordinates registration, login, token refresh, logout, email
confirmation and the password reset lifecycle across the credential
store, the secret hasher and the token minter.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from ....application.dto import AccountView, LoginOutcome, RegistrationOutcome, TokenPair
from ....application.interfaces.credential_store import ICredentialStore
from ....application.interfaces.exceptions import DuplicateCredentialError
from ....application.interfaces.mailer import IAccountMailer
from ....application.result import Err, ErrorKind, Ok, Result
from ....domain.entities import Account, NewAccount
from ....domain.exceptions import AccountDisabledError, AccountStateError
from ...config import AccountConfig
from ..credential_policy import PasswordPolicy, normalize_email, validate_registration
from ..jwt_service import TokenMinter, utc_now
from ..secret_hasher import SecretHasher, digest_token
from .base import (
    ACCOUNT_DISABLED,
    INVALID_CREDENTIALS,
    contained,
    deliver,
    duplicate_credential,
    new_one_time_token,
    validation_failed,
)

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If the email exists, a password reset link has been sent"
RESEND_CONFIRMATION_MESSAGE = (
    "If the account exists and is unconfirmed, a confirmation email has been sent"
)
PASSWORD_RESET_MESSAGE = "Password has been reset successfully"


class AuthOrchestrator:
    """
    Authentication service.

    Every public operation returns ``Ok`` or ``Err`` and never raises.
    """

    def __init__(
        self,
        store: ICredentialStore,
        hasher: SecretHasher,
        minter: TokenMinter,
        mailer: IAccountMailer,
        config: AccountConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.minter = minter
        self.mailer = mailer
        self.config = config or AccountConfig()
        self._clock = clock

    # Registration

    @contained("register")
    async def register(
        self, username: str, email: str, password: str, full_name: str | None = None
    ) -> Result[RegistrationOutcome]:
        """
        Register a new account.

        Args:
            username: Unique username
            email: Email address
            password: Plaintext password
            full_name: Optional display name

        Returns:
            Sanitized account view and an access token, or an error of kind
            VALIDATION_FAILED or DUPLICATE_CREDENTIAL
        """
        errors = validate_registration(
            username, email, password, full_name, reserved_usernames=self.config.admin_usernames
        )
        if errors:
            return validation_failed(errors)

        email = normalize_email(email)

        # Check if account exists
        if await self.store.get_by_username(username) is not None:
            return duplicate_credential("username")
        if await self.store.get_by_email(email) is not None:
            return duplicate_credential("email")

        token, token_digest, expires_at = new_one_time_token(
            self._clock(), self.config.email_confirmation_ttl
        )
        new_account = NewAccount(
            username=username,
            email=email,
            password_hash=self.hasher.hash(password),
            email_confirmation_token=token_digest,
            email_confirmation_expires=expires_at,
            full_name=full_name,
        )
        try:
            account = await self.store.create(new_account)
        except DuplicateCredentialError as e:
            return duplicate_credential(e.field)

        await deliver(self.mailer.send_confirmation, account, token)

        access_token, _ = self.minter.create_access_token(account)
        logger.info(f"Registered account {account.id}")
        return Ok(RegistrationOutcome(user=AccountView.from_account(account), access_token=access_token))

    # Sessions

    @contained("login")
    async def login(self, username_or_email: str, password: str) -> Result[LoginOutcome]:
        """
        Authenticate with a username or email and a password.

        Unknown identifiers and wrong passwords give the same
        INVALID_CREDENTIALS error; a disabled account gives ACCOUNT_DISABLED.
        On success the new refresh token replaces any previous session.
        """
        identifier = (username_or_email or "").strip()
        account = await self._find_account(identifier) if identifier else None

        # Always perform password verification to prevent timing attacks
        if account is None:
            self.hasher.verify_dummy(password)
            logger.info("Login failed: unknown account")
            return Err(ErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS)

        try:
            account.ensure_can_authenticate()
        except AccountDisabledError:
            logger.info(f"Login rejected for disabled account {account.id}")
            return Err(ErrorKind.ACCOUNT_DISABLED, ACCOUNT_DISABLED)

        if not self.hasher.verify(password, account.password_hash):
            logger.info(f"Login failed: bad password for account {account.id}")
            return Err(ErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS)

        pair = self.minter.issue_pair(account)
        changes = account.begin_session(self.hasher.hash(pair.refresh_token), pair.refresh_expires_at)
        if self.hasher.needs_rehash(account.password_hash):
            changes["password_hash"] = self.hasher.hash(password)

        updated = await self.store.update(account.id, changes)
        if updated is None:
            logger.warning(f"Account {account.id} disappeared during login")
            return Err(ErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS)

        logger.info(f"Account {account.id} logged in")
        return Ok(LoginOutcome(user=AccountView.from_account(updated), tokens=pair))

    async def _find_account(self, identifier: str) -> Account | None:
        if "@" in identifier:
            return await self.store.get_by_email(normalize_email(identifier))
        return await self.store.get_by_username(identifier)

    @contained("refresh_tokens")
    async def refresh_tokens(self, refresh_token: str) -> Result[TokenPair]:
        """
        Exchange a refresh token for a new token pair.

        The presented token must match the stored session. The new session
        is written with a compare-and-set on the old hash; if a concurrent
        refresh won, this call fails instead of handing out a pair that
        would never validate.
        """
        verified = self.minter.verify_refresh(refresh_token)
        if not verified.is_ok:
            return self._reject_refresh(verified.detail)
        claims = verified.value

        account = await self.store.get_by_id(claims.account_id)
        if account is None:
            return self._reject_refresh(f"account {claims.account_id} not found")
        if not account.is_active:
            return self._reject_refresh(f"account {account.id} is disabled")

        now = self._clock()
        if not account.has_refresh_session(now):
            return self._reject_refresh(f"account {account.id} has no active session")
        if not self.hasher.verify(refresh_token, account.refresh_token_hash):
            return self._reject_refresh(f"token does not match session of account {account.id}")

        pair = self.minter.issue_pair(account)
        try:
            changes = account.rotate_session(
                self.hasher.hash(pair.refresh_token), pair.refresh_expires_at, now
            )
        except AccountStateError as e:
            return self._reject_refresh(str(e))

        updated = await self.store.update(
            account.id, changes, expected={"refresh_token_hash": account.refresh_token_hash}
        )
        if updated is None:
            return self._reject_refresh(f"session of account {account.id} changed concurrently")

        logger.info(f"Rotated refresh session for account {account.id}")
        return Ok(pair)

    @staticmethod
    def _reject_refresh(reason: str | None) -> Err:
        logger.info(f"Refresh rejected: {reason}")
        return Err(ErrorKind.INVALID_OR_EXPIRED_TOKEN, "Invalid or expired refresh token")

    @contained("logout")
    async def logout(self, account_id: int) -> Result[None]:
        """End the refresh session. Idempotent, and a missing account is not an error."""
        updated = await self.store.update(account_id, Account.end_session())
        if updated is None:
            logger.debug(f"Logout for unknown account {account_id}")
        else:
            logger.info(f"Account {account_id} logged out")
        return Ok(None)

    @contained("validate_session")
    async def validate_session(self, account_id: int) -> Result[AccountView]:
        """Re-check an authenticated caller against current account state."""
        account = await self.store.get_by_id(account_id)
        if account is None:
            return Err(ErrorKind.INVALID_OR_EXPIRED_TOKEN, "Session is no longer valid")
        try:
            account.ensure_can_authenticate()
        except AccountDisabledError:
            return Err(ErrorKind.ACCOUNT_DISABLED, ACCOUNT_DISABLED)
        return Ok(AccountView.from_account(account))

    # Email confirmation

    @contained("confirm_email")
    async def confirm_email(self, token: str) -> Result[bool]:
        """Confirm the email address the token was issued for."""
        if not token:
            return self._reject_one_time_token("confirmation")
        token_digest = digest_token(token)

        account = await self.store.get_by_confirmation_token(token_digest)
        if account is None:
            return self._reject_one_time_token("confirmation")
        try:
            changes = account.confirm_email(token_digest, self._clock())
        except AccountStateError as e:
            logger.info(f"Email confirmation rejected for account {account.id}: {e}")
            return self._reject_one_time_token("confirmation")

        updated = await self.store.update(
            account.id, changes, expected={"email_confirmation_token": token_digest}
        )
        if updated is None:
            return self._reject_one_time_token("confirmation")

        logger.info(f"Email confirmed for account {account.id}")
        return Ok(True)

    @contained("resend_confirmation")
    async def resend_confirmation(self, email: str) -> Result[str]:
        """Issue a fresh confirmation token. The response never reveals whether the email exists."""
        account = await self.store.get_by_email(normalize_email(email or ""))
        if account is None or account.is_email_confirmed or not account.is_active:
            logger.info("Confirmation resend requested for an unknown or confirmed account")
            return Ok(RESEND_CONFIRMATION_MESSAGE)

        token, token_digest, expires_at = new_one_time_token(
            self._clock(), self.config.email_confirmation_ttl
        )
        updated = await self.store.update(
            account.id, account.reissue_confirmation(token_digest, expires_at)
        )
        if updated is not None:
            await deliver(self.mailer.send_confirmation, updated, token)
            logger.info(f"Confirmation token reissued for account {account.id}")
        return Ok(RESEND_CONFIRMATION_MESSAGE)

    # Password reset

    @contained("forgot_password")
    async def forgot_password(self, email: str) -> Result[str]:
        """
        Open a password reset for the account with this email.

        Returns:
            The same message whether or not the email is registered
        """
        account = await self.store.get_by_email(normalize_email(email or ""))
        if account is None:
            logger.info("Password reset requested for an unknown email")
            return Ok(FORGOT_PASSWORD_MESSAGE)
        if not account.is_active:
            logger.info(f"Password reset requested for disabled account {account.id}")
            return Ok(FORGOT_PASSWORD_MESSAGE)

        token, token_digest, expires_at = new_one_time_token(
            self._clock(), self.config.password_reset_ttl
        )
        updated = await self.store.update(
            account.id, account.open_password_reset(token_digest, expires_at)
        )
        if updated is not None:
            await deliver(self.mailer.send_password_reset, updated, token)
            logger.info(f"Password reset requested for account {account.id}")
        return Ok(FORGOT_PASSWORD_MESSAGE)

    @contained("reset_password")
    async def reset_password(self, token: str, new_password: str) -> Result[str]:
        """
        Replace the password using an open reset token.

        The token is consumed by the same conditional write that stores the
        new hash, so two concurrent resets with one token cannot both win.
        The refresh session is ended as well.
        """
        errors = PasswordPolicy.validate(new_password)
        if errors:
            return validation_failed({"new_password": errors})
        if not token:
            return self._reject_one_time_token("reset")
        token_digest = digest_token(token)

        account = await self.store.get_by_reset_token(token_digest)
        if account is None:
            return self._reject_one_time_token("reset")
        try:
            changes = account.complete_password_reset(
                token_digest, self.hasher.hash(new_password), self._clock()
            )
        except AccountStateError as e:
            logger.info(f"Password reset rejected for account {account.id}: {e}")
            return self._reject_one_time_token("reset")

        updated = await self.store.update(
            account.id, changes, expected={"password_reset_token": token_digest}
        )
        if updated is None:
            return self._reject_one_time_token("reset")

        logger.info(f"Password reset for account {account.id}")
        return Ok(PASSWORD_RESET_MESSAGE)

    @staticmethod
    def _reject_one_time_token(purpose: str) -> Err:
        return Err(ErrorKind.INVALID_OR_EXPIRED_TOKEN, f"Invalid or expired {purpose} token")
