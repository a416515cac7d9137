"""
Credential Store Exception Definitions

Defines exceptions that credential store implementations may raise.
These are application-level exceptions; storage drivers' own errors are
wrapped before they cross this boundary.
"""


class StoreError(Exception):
    """Base exception for credential store operations."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class DuplicateCredentialError(StoreError):
    """Raised when a write would violate username or email uniqueness."""

    def __init__(self, field: str, cause: Exception | None = None) -> None:
        super().__init__(f"An account with this {field} already exists", cause)
        self.field = field
