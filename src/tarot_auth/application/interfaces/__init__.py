"""Interfaces the application services depend on."""

from .credential_store import ICredentialStore
from .exceptions import DuplicateCredentialError, StoreError
from .mailer import IAccountMailer

__all__ = [
    "ICredentialStore",
    "IAccountMailer",
    "StoreError",
    "DuplicateCredentialError",
]
