"""
Domain layer for the authentication core.

Holds the Account entity with its lifecycle transitions and the
exceptions those transitions raise. Nothing here touches storage,
hashing or token signing.
"""

from .entities import Account, AccountChanges, NewAccount
from .exceptions import (
    AccountDisabledError,
    AccountStateError,
    DomainException,
    NoActiveSessionError,
    TokenExpiredError,
    TokenMismatchError,
)

__all__ = [
    "Account",
    "AccountChanges",
    "NewAccount",
    "DomainException",
    "AccountStateError",
    "AccountDisabledError",
    "TokenMismatchError",
    "TokenExpiredError",
    "NoActiveSessionError",
]
