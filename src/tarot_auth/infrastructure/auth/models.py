"""
Database models for authentication.

This module defines the SQLAlchemy model for accounts, including the
columns that hold confirmation, reset and refresh session state.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator[datetime]):
    """Database-agnostic timestamp that always round-trips as aware UTC."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC).replace(tzinfo=None)

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


def _utc_now() -> datetime:
    return datetime.now(UTC)


Base = declarative_base()


class AccountRecord(Base):  # type: ignore[valid-type, misc]
    """Account row with credential and session state."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    # Profile information
    full_name = Column(String(100), nullable=True)

    # Account state
    is_active = Column(Boolean, nullable=False, default=True)
    is_email_confirmed = Column(Boolean, nullable=False, default=False)

    # Email confirmation
    email_confirmation_token = Column(String(64), index=True)
    email_confirmation_expires = Column(UTCDateTime)

    # Password reset
    password_reset_token = Column(String(64), index=True)
    password_reset_expires = Column(UTCDateTime)

    # Refresh session
    refresh_token_hash = Column(String(255))
    refresh_token_expires = Column(UTCDateTime)

    # Timestamps
    created_at = Column(UTCDateTime, nullable=False, default=_utc_now)
    updated_at = Column(UTCDateTime, nullable=False, default=_utc_now, onupdate=_utc_now)

    def __repr__(self) -> str:
        return f"<AccountRecord(id={self.id}, username={self.username})>"
