"""Persistence implementations of the application interfaces."""

from .account_repository import SqlAlchemyCredentialStore

__all__ = ["SqlAlchemyCredentialStore"]
