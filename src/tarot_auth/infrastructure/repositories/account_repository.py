"""
SQLAlchemy Credential Store Implementation

Concrete implementation of ICredentialStore over a SQLAlchemy session
factory. Handles account persistence, lookups and mapping between Account
domain entities and database records.
"""

# Standard library imports
import logging
from collections.abc import Callable
from dataclasses import fields
from datetime import UTC, datetime
from typing import Any

# Third-party imports
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

# Local imports
from ...application.interfaces.credential_store import ICredentialStore
from ...application.interfaces.exceptions import DuplicateCredentialError, StoreError
from ...domain.entities import Account, AccountChanges, NewAccount
from ..auth.credential_policy import normalize_email
from ..auth.models import AccountRecord

logger = logging.getLogger(__name__)

_ACCOUNT_FIELDS = tuple(f.name for f in fields(Account))
_MUTABLE_FIELDS = frozenset(_ACCOUNT_FIELDS) - {"id", "created_at", "updated_at"}


class SqlAlchemyCredentialStore(ICredentialStore):
    """
    SQLAlchemy implementation of ICredentialStore.

    Every call opens its own session and closes it before returning.
    Uniqueness is enforced by the table's unique constraints; violations
    surface as DuplicateCredentialError.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """
        Initialize store with a session factory.

        Args:
            session_factory: Callable returning a new SQLAlchemy session
        """
        self.session_factory = session_factory

    # Lookups

    async def get_by_id(self, account_id: int) -> Account | None:
        return self._fetch_one(AccountRecord.id == account_id)

    async def get_by_username(self, username: str) -> Account | None:
        return self._fetch_one(AccountRecord.username == username)

    async def get_by_email(self, email: str) -> Account | None:
        return self._fetch_one(AccountRecord.email == normalize_email(email))

    async def get_by_confirmation_token(self, token_digest: str) -> Account | None:
        return self._fetch_one(AccountRecord.email_confirmation_token == token_digest)

    async def get_by_reset_token(self, token_digest: str) -> Account | None:
        return self._fetch_one(AccountRecord.password_reset_token == token_digest)

    def _fetch_one(self, criterion: Any) -> Account | None:
        try:
            with self.session_factory() as session:
                record = session.execute(select(AccountRecord).where(criterion)).scalar_one_or_none()
                return self._to_entity(record) if record is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to load account: {e}")
            raise StoreError(f"Failed to load account: {e}", e) from e

    # Writes

    async def create(self, new_account: NewAccount) -> Account:
        """
        Insert a new account.

        Raises:
            DuplicateCredentialError: Username or email already taken
            StoreError: If the insert fails
        """
        record = AccountRecord(
            username=new_account.username,
            email=normalize_email(new_account.email),
            password_hash=new_account.password_hash,
            full_name=new_account.full_name,
            is_active=True,
            is_email_confirmed=False,
            email_confirmation_token=new_account.email_confirmation_token,
            email_confirmation_expires=new_account.email_confirmation_expires,
        )
        try:
            with self.session_factory() as session:
                session.add(record)
                try:
                    session.commit()
                except IntegrityError as e:
                    session.rollback()
                    raise self._duplicate_error(
                        session, e, username=new_account.username, email=record.email
                    ) from e
                session.refresh(record)
                account = self._to_entity(record)
        except StoreError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to create account {new_account.username}: {e}")
            raise StoreError(f"Failed to create account: {e}", e) from e

        logger.info(f"Created account {account.id}")
        return account

    async def update(
        self,
        account_id: int,
        changes: AccountChanges,
        expected: dict[str, Any] | None = None,
    ) -> Account | None:
        """
        Apply a change-set in a single UPDATE statement.

        The ``expected`` guard is folded into the statement's WHERE clause,
        so a concurrent writer that changed a guarded field makes this
        update match no rows and return None.
        """
        unknown = (set(changes) | set(expected or {})) - _MUTABLE_FIELDS
        if unknown:
            raise StoreError(f"Unknown account fields: {sorted(unknown)}")

        values = dict(changes)
        if "email" in values and values["email"] is not None:
            values["email"] = normalize_email(values["email"])
        if not values:
            return await self.get_by_id(account_id)
        values["updated_at"] = datetime.now(UTC)

        stmt = update(AccountRecord).where(AccountRecord.id == account_id)
        for name, value in (expected or {}).items():
            column = getattr(AccountRecord, name)
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)

        try:
            with self.session_factory() as session:
                try:
                    result = session.execute(stmt)
                    session.commit()
                except IntegrityError as e:
                    session.rollback()
                    raise self._duplicate_error(
                        session,
                        e,
                        username=values.get("username"),
                        email=values.get("email"),
                        exclude_id=account_id,
                    ) from e
                if result.rowcount == 0:
                    logger.debug(f"Update of account {account_id} matched no rows")
                    return None
                record = session.execute(
                    select(AccountRecord).where(AccountRecord.id == account_id)
                ).scalar_one()
                return self._to_entity(record)
        except StoreError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to update account {account_id}: {e}")
            raise StoreError(f"Failed to update account: {e}", e) from e

    async def delete(self, account_id: int) -> bool:
        try:
            with self.session_factory() as session:
                record = session.get(AccountRecord, account_id)
                if record is None:
                    return False
                session.delete(record)
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete account {account_id}: {e}")
            raise StoreError(f"Failed to delete account: {e}", e) from e
        logger.info(f"Deleted account {account_id}")
        return True

    # Mapping

    def _duplicate_error(
        self,
        session: Session,
        error: IntegrityError,
        username: str | None = None,
        email: str | None = None,
        exclude_id: int | None = None,
    ) -> StoreError:
        """Work out which unique field an integrity violation was about."""
        message = str(error.orig).lower()
        if "username" in message:
            return DuplicateCredentialError("username", error)
        if "email" in message:
            return DuplicateCredentialError("email", error)

        for name, value in (("username", username), ("email", email)):
            if value is None:
                continue
            stmt = select(AccountRecord.id).where(getattr(AccountRecord, name) == value)
            if exclude_id is not None:
                stmt = stmt.where(AccountRecord.id != exclude_id)
            if session.execute(stmt).first() is not None:
                return DuplicateCredentialError(name, error)
        return StoreError(f"Integrity violation: {error.orig}", error)

    @staticmethod
    def _to_entity(record: AccountRecord) -> Account:
        return Account(**{name: getattr(record, name) for name in _ACCOUNT_FIELDS})
