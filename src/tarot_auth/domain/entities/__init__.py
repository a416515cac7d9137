"""Domain entities."""

from .account import (
    SECRET_FIELDS,
    Account,
    AccountChanges,
    ActivationState,
    ConfirmationState,
    NewAccount,
)

__all__ = [
    "Account",
    "AccountChanges",
    "ActivationState",
    "ConfirmationState",
    "NewAccount",
    "SECRET_FIELDS",
]
