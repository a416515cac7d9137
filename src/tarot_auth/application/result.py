"""
Operation Results

Application services return a tagged result instead of raising: either
``Ok(value)`` or ``Err(kind, detail)``. Callers branch on ``is_ok`` or on
the ``ErrorKind`` rather than on exception identity.
"""

# Standard library imports
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Closed set of failure kinds an auth operation can report."""

    VALIDATION_FAILED = "validation_failed"
    DUPLICATE_CREDENTIAL = "duplicate_credential"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_DISABLED = "account_disabled"
    INVALID_OR_EXPIRED_TOKEN = "invalid_or_expired_token"
    NOT_AUTHORIZED = "not_authorized"
    NOT_FOUND = "not_found"
    INTERNAL_FAILURE = "internal_failure"


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """
    Failed outcome.

    ``detail`` is the client-facing message. ``fields`` carries per-field
    validation messages or the offending field of a duplicate.
    """

    kind: ErrorKind
    detail: str
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def is_ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


def internal_error() -> Err:
    """Opaque failure returned when an unexpected exception was caught."""
    return Err(ErrorKind.INTERNAL_FAILURE, "internal error")
