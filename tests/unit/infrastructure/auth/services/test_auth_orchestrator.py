"""
Unit tests for the authentication orchestrator.

Uses the real hasher, minter and SQLite-backed store from the shared
fixtures, with a capturing mailer and a controllable clock.
"""

import logging
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from tarot_auth.application.interfaces import DuplicateCredentialError
from tarot_auth.application.result import ErrorKind
from tarot_auth.domain.entities import SECRET_FIELDS
from tarot_auth.infrastructure.auth.secret_hasher import SecretHasher, digest_token
from tarot_auth.infrastructure.auth.services import AuthOrchestrator
from tarot_auth.infrastructure.auth.services.auth_orchestrator import (
    FORGOT_PASSWORD_MESSAGE,
    PASSWORD_RESET_MESSAGE,
    RESEND_CONFIRMATION_MESSAGE,
)

PASSWORD = "Secret123"


@pytest_asyncio.fixture
async def registered(orchestrator):
    """A registered, unconfirmed account."""
    result = await orchestrator.register("seeker", "Seeker@Example.com", PASSWORD, "Seeker")
    assert result.is_ok
    return result.value.user


@pytest_asyncio.fixture
async def logged_in(orchestrator, registered):
    """Token pair of the registered account after login."""
    result = await orchestrator.login("seeker", PASSWORD)
    assert result.is_ok
    return result.value.tokens


class TestRegister:
    """Test account registration."""

    @pytest.mark.asyncio
    async def test_register_success(self, orchestrator, store, minter, mailer):
        result = await orchestrator.register("seeker", "Seeker@Example.com", PASSWORD, "Seeker")

        assert result.is_ok
        outcome = result.value
        assert outcome.user.username == "seeker"
        assert outcome.user.email == "seeker@example.com"
        assert outcome.user.is_email_confirmed is False
        assert minter.verify_access(outcome.access_token).value.account_id == outcome.user.id

        account = await store.get_by_id(outcome.user.id)
        assert account.password_hash != PASSWORD
        assert account.refresh_token_hash is None
        assert len(mailer.confirmations) == 1
        token = mailer.last_confirmation()
        assert account.email_confirmation_token == digest_token(token)

    @pytest.mark.asyncio
    async def test_user_view_has_no_secrets(self, orchestrator):
        result = await orchestrator.register("seeker", "seeker@example.com", PASSWORD)

        view = result.value.user.to_dict()
        assert SECRET_FIELDS.isdisjoint(view)

    @pytest.mark.asyncio
    async def test_register_validation_errors(self, orchestrator, store):
        result = await orchestrator.register("x", "not-an-email", "weak")

        assert not result.is_ok
        assert result.kind == ErrorKind.VALIDATION_FAILED
        assert set(result.fields) == {"username", "email", "password"}
        assert await store.get_by_username("x") is None

    @pytest.mark.asyncio
    async def test_duplicate_username(self, orchestrator, registered):
        result = await orchestrator.register("seeker", "other@example.com", PASSWORD)

        assert result.kind == ErrorKind.DUPLICATE_CREDENTIAL
        assert result.detail == "Username already taken"
        assert result.fields == {"field": "username"}

    @pytest.mark.asyncio
    async def test_duplicate_email_is_case_insensitive(self, orchestrator, registered):
        result = await orchestrator.register("other", "SEEKER@example.com", PASSWORD)

        assert result.kind == ErrorKind.DUPLICATE_CREDENTIAL
        assert result.fields == {"field": "email"}

    @pytest.mark.asyncio
    async def test_admin_usernames_are_reserved(self, orchestrator, store):
        for username in ("admin", "Admin"):
            result = await orchestrator.register(username, f"{username}@example.com", PASSWORD)

            assert result.kind == ErrorKind.VALIDATION_FAILED
            assert result.fields == {"username": ["Username is reserved"]}
        assert await store.get_by_email("admin@example.com") is None

    @pytest.mark.asyncio
    async def test_duplicate_detected_at_write_time(self, orchestrator, store):
        store.get_by_username = AsyncMock(return_value=None)
        store.get_by_email = AsyncMock(return_value=None)
        store.create = AsyncMock(side_effect=DuplicateCredentialError("email"))

        result = await orchestrator.register("seeker", "seeker@example.com", PASSWORD)

        assert result.kind == ErrorKind.DUPLICATE_CREDENTIAL
        assert result.detail == "Email already registered"
        assert result.fields == {"field": "email"}

    @pytest.mark.asyncio
    async def test_mail_failure_does_not_fail_registration(self, orchestrator, mailer, caplog):
        mailer.fail = True

        result = await orchestrator.register("seeker", "seeker@example.com", PASSWORD)

        assert result.is_ok
        assert "Mail delivery failed" in caplog.text

    @pytest.mark.asyncio
    async def test_store_failure_is_contained(self, orchestrator, store, caplog):
        store.create = AsyncMock(side_effect=RuntimeError("disk on fire"))

        with caplog.at_level(logging.ERROR):
            result = await orchestrator.register("seeker", "seeker@example.com", PASSWORD)

        assert result.kind == ErrorKind.INTERNAL_FAILURE
        assert result.detail == "internal error"
        assert "Error executing register: RuntimeError" in caplog.text


class TestLogin:
    """Test password login."""

    @pytest.mark.asyncio
    async def test_login_with_username(self, orchestrator, store, hasher, minter, registered):
        result = await orchestrator.login("seeker", PASSWORD)

        assert result.is_ok
        tokens = result.value.tokens
        assert minter.verify_access(tokens.access_token).is_ok
        account = await store.get_by_id(registered.id)
        assert hasher.verify(tokens.refresh_token, account.refresh_token_hash)
        assert account.refresh_token_hash != tokens.refresh_token

    @pytest.mark.asyncio
    async def test_login_with_email_any_case(self, orchestrator, registered):
        result = await orchestrator.login("SEEKER@example.com", PASSWORD)

        assert result.is_ok
        assert result.value.user.id == registered.id

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_user_look_alike(self, orchestrator, registered):
        wrong = await orchestrator.login("seeker", "Wrong123")
        unknown = await orchestrator.login("nobody", PASSWORD)

        assert wrong.kind == unknown.kind == ErrorKind.INVALID_CREDENTIALS
        assert wrong.detail == unknown.detail == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_unconfirmed_account_can_login(self, orchestrator, registered):
        assert registered.is_email_confirmed is False
        assert (await orchestrator.login("seeker", PASSWORD)).is_ok

    @pytest.mark.asyncio
    async def test_disabled_account(self, orchestrator, store, registered):
        await store.update(registered.id, {"is_active": False})

        result = await orchestrator.login("seeker", PASSWORD)

        assert result.kind == ErrorKind.ACCOUNT_DISABLED
        assert result.detail == "Account is disabled"

    @pytest.mark.asyncio
    async def test_second_login_replaces_session(self, orchestrator, logged_in):
        await orchestrator.login("seeker", PASSWORD)

        result = await orchestrator.refresh_tokens(logged_in.refresh_token)

        assert result.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN

    @pytest.mark.asyncio
    async def test_login_upgrades_weak_hash(self, store, minter, mailer, account_config, clock, registered):
        stronger = AuthOrchestrator(
            store, SecretHasher(rounds=5), minter, mailer, config=account_config, clock=clock
        )

        assert (await stronger.login("seeker", PASSWORD)).is_ok

        account = await store.get_by_id(registered.id)
        assert account.password_hash.startswith("$2b$05$")


class TestRefreshTokens:
    """Test refresh token rotation."""

    @pytest.mark.asyncio
    async def test_refresh_rotates_pair(self, orchestrator, minter, logged_in):
        result = await orchestrator.refresh_tokens(logged_in.refresh_token)

        assert result.is_ok
        pair = result.value
        assert pair.refresh_token != logged_in.refresh_token
        assert minter.verify_access(pair.access_token).is_ok
        assert (await orchestrator.refresh_tokens(pair.refresh_token)).is_ok

    @pytest.mark.asyncio
    async def test_old_refresh_token_is_single_use(self, orchestrator, logged_in):
        assert (await orchestrator.refresh_tokens(logged_in.refresh_token)).is_ok

        replay = await orchestrator.refresh_tokens(logged_in.refresh_token)

        assert replay.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN
        assert replay.detail == "Invalid or expired refresh token"

    @pytest.mark.asyncio
    async def test_access_token_is_not_a_refresh_token(self, orchestrator, logged_in):
        result = await orchestrator.refresh_tokens(logged_in.access_token)

        assert result.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN

    @pytest.mark.asyncio
    async def test_refresh_after_logout(self, orchestrator, registered, logged_in):
        await orchestrator.logout(registered.id)

        result = await orchestrator.refresh_tokens(logged_in.refresh_token)

        assert result.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN

    @pytest.mark.asyncio
    async def test_refresh_for_disabled_account(self, orchestrator, store, registered, logged_in):
        await store.update(registered.id, {"is_active": False})

        result = await orchestrator.refresh_tokens(logged_in.refresh_token)

        assert result.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN

    @pytest.mark.asyncio
    async def test_refresh_after_stored_session_expired(self, orchestrator, clock, logged_in):
        clock.advance(timedelta(days=8))

        result = await orchestrator.refresh_tokens(logged_in.refresh_token)

        assert result.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN

    @pytest.mark.asyncio
    async def test_concurrent_refresh_loses_compare_and_set(
        self, orchestrator, store, registered, logged_in
    ):
        original_update = store.update

        async def racing_update(account_id, changes, expected=None):
            # Another refresh rotates the session first
            await original_update(account_id, {"refresh_token_hash": "rotated-elsewhere"})
            return await original_update(account_id, changes, expected)

        store.update = racing_update

        result = await orchestrator.refresh_tokens(logged_in.refresh_token)

        assert result.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN
        account = await store.get_by_id(registered.id)
        assert account.refresh_token_hash == "rotated-elsewhere"

    @pytest.mark.asyncio
    async def test_garbage_token(self, orchestrator):
        result = await orchestrator.refresh_tokens("garbage")

        assert result.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN


class TestLogoutAndSession:
    """Test logout and session validation."""

    @pytest.mark.asyncio
    async def test_logout_clears_session(self, orchestrator, store, registered, logged_in):
        result = await orchestrator.logout(registered.id)

        assert result.is_ok
        account = await store.get_by_id(registered.id)
        assert account.refresh_token_hash is None
        assert account.refresh_token_expires is None

    @pytest.mark.asyncio
    async def test_logout_is_idempotent(self, orchestrator, registered):
        assert (await orchestrator.logout(registered.id)).is_ok
        assert (await orchestrator.logout(registered.id)).is_ok
        assert (await orchestrator.logout(9999)).is_ok

    @pytest.mark.asyncio
    async def test_validate_session(self, orchestrator, store, registered):
        assert (await orchestrator.validate_session(registered.id)).value.username == "seeker"

        await store.update(registered.id, {"is_active": False})
        assert (await orchestrator.validate_session(registered.id)).kind == ErrorKind.ACCOUNT_DISABLED

        await store.delete(registered.id)
        missing = await orchestrator.validate_session(registered.id)
        assert missing.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN


class TestEmailConfirmation:
    """Test email confirmation and resend."""

    @pytest.mark.asyncio
    async def test_confirm_email(self, orchestrator, store, mailer, registered):
        result = await orchestrator.confirm_email(mailer.last_confirmation())

        assert result.is_ok
        assert result.value is True
        account = await store.get_by_id(registered.id)
        assert account.is_email_confirmed is True
        assert account.email_confirmation_token is None

    @pytest.mark.asyncio
    async def test_confirmation_token_is_single_use(self, orchestrator, mailer, registered):
        token = mailer.last_confirmation()
        await orchestrator.confirm_email(token)

        result = await orchestrator.confirm_email(token)

        assert result.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN
        assert result.detail == "Invalid or expired confirmation token"

    @pytest.mark.asyncio
    async def test_expired_confirmation_token(self, orchestrator, store, mailer, clock, registered):
        clock.advance(timedelta(hours=25))

        result = await orchestrator.confirm_email(mailer.last_confirmation())

        assert result.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN
        assert (await store.get_by_id(registered.id)).is_email_confirmed is False

    @pytest.mark.asyncio
    async def test_unknown_or_empty_token(self, orchestrator, registered):
        assert (await orchestrator.confirm_email("nope")).kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN
        assert (await orchestrator.confirm_email("")).kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN

    @pytest.mark.asyncio
    async def test_resend_replaces_token(self, orchestrator, mailer, registered):
        first = mailer.last_confirmation()

        result = await orchestrator.resend_confirmation("seeker@example.com")

        assert result.value == RESEND_CONFIRMATION_MESSAGE
        second = mailer.last_confirmation()
        assert second != first
        assert not (await orchestrator.confirm_email(first)).is_ok
        assert (await orchestrator.confirm_email(second)).is_ok

    @pytest.mark.asyncio
    async def test_resend_does_not_reveal_accounts(self, orchestrator, mailer, registered):
        await orchestrator.confirm_email(mailer.last_confirmation())
        sent = len(mailer.confirmations)

        confirmed = await orchestrator.resend_confirmation("seeker@example.com")
        unknown = await orchestrator.resend_confirmation("ghost@example.com")

        assert confirmed.value == unknown.value == RESEND_CONFIRMATION_MESSAGE
        assert len(mailer.confirmations) == sent


class TestPasswordReset:
    """Test the forgot/reset password lifecycle."""

    @pytest.mark.asyncio
    async def test_forgot_password_sends_token(self, orchestrator, store, mailer, registered):
        result = await orchestrator.forgot_password("SEEKER@example.com")

        assert result.value == FORGOT_PASSWORD_MESSAGE
        account = await store.get_by_id(registered.id)
        assert account.password_reset_token == digest_token(mailer.last_reset())
        assert account.password_reset_expires is not None

    @pytest.mark.asyncio
    async def test_forgot_password_unknown_email(self, orchestrator, mailer):
        result = await orchestrator.forgot_password("ghost@example.com")

        assert result.value == FORGOT_PASSWORD_MESSAGE
        assert mailer.resets == []

    @pytest.mark.asyncio
    async def test_forgot_password_disabled_account(self, orchestrator, store, mailer, registered):
        await store.update(registered.id, {"is_active": False})

        result = await orchestrator.forgot_password("seeker@example.com")

        assert result.value == FORGOT_PASSWORD_MESSAGE
        assert mailer.resets == []

    @pytest.mark.asyncio
    async def test_reset_password(self, orchestrator, store, mailer, registered, logged_in):
        await orchestrator.forgot_password("seeker@example.com")

        result = await orchestrator.reset_password(mailer.last_reset(), "NewSecret456")

        assert result.value == PASSWORD_RESET_MESSAGE
        assert (await orchestrator.login("seeker", "NewSecret456")).is_ok
        assert (await orchestrator.login("seeker", PASSWORD)).kind == ErrorKind.INVALID_CREDENTIALS

    @pytest.mark.asyncio
    async def test_reset_ends_refresh_session(self, orchestrator, store, mailer, registered, logged_in):
        await orchestrator.forgot_password("seeker@example.com")
        await orchestrator.reset_password(mailer.last_reset(), "NewSecret456")

        account = await store.get_by_id(registered.id)
        assert account.refresh_token_hash is None
        assert account.password_reset_token is None
        refreshed = await orchestrator.refresh_tokens(logged_in.refresh_token)
        assert refreshed.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN

    @pytest.mark.asyncio
    async def test_reset_refused_for_disabled_account(
        self, orchestrator, store, hasher, mailer, registered
    ):
        await orchestrator.forgot_password("seeker@example.com")
        await store.update(registered.id, {"is_active": False})

        result = await orchestrator.reset_password(mailer.last_reset(), "NewSecret456")

        assert result.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN
        account = await store.get_by_id(registered.id)
        assert hasher.verify(PASSWORD, account.password_hash)

    @pytest.mark.asyncio
    async def test_reset_token_is_single_use(self, orchestrator, mailer, registered):
        await orchestrator.forgot_password("seeker@example.com")
        token = mailer.last_reset()
        await orchestrator.reset_password(token, "NewSecret456")

        result = await orchestrator.reset_password(token, "Another789")

        assert result.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN
        assert result.detail == "Invalid or expired reset token"

    @pytest.mark.asyncio
    async def test_expired_reset_token(self, orchestrator, mailer, clock, registered):
        await orchestrator.forgot_password("seeker@example.com")
        clock.advance(timedelta(hours=1, seconds=1))

        result = await orchestrator.reset_password(mailer.last_reset(), "NewSecret456")

        assert result.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN
        assert (await orchestrator.login("seeker", PASSWORD)).is_ok

    @pytest.mark.asyncio
    async def test_new_request_supersedes_earlier_token(self, orchestrator, mailer, registered):
        await orchestrator.forgot_password("seeker@example.com")
        first = mailer.last_reset()
        await orchestrator.forgot_password("seeker@example.com")

        result = await orchestrator.reset_password(first, "NewSecret456")

        assert result.kind == ErrorKind.INVALID_OR_EXPIRED_TOKEN

    @pytest.mark.asyncio
    async def test_weak_new_password(self, orchestrator, mailer, registered):
        await orchestrator.forgot_password("seeker@example.com")

        result = await orchestrator.reset_password(mailer.last_reset(), "weak")

        assert result.kind == ErrorKind.VALIDATION_FAILED
        assert "new_password" in result.fields
        # Token was not consumed
        assert (await orchestrator.reset_password(mailer.last_reset(), "NewSecret456")).is_ok

    @pytest.mark.asyncio
    async def test_tokens_never_logged(self, orchestrator, mailer, registered, caplog):
        with caplog.at_level(logging.DEBUG):
            await orchestrator.forgot_password("seeker@example.com")
            await orchestrator.reset_password(mailer.last_reset(), "NewSecret456")

        assert mailer.last_reset() not in caplog.text
        assert "NewSecret456" not in caplog.text
