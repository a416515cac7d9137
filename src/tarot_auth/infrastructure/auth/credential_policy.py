"""
Credential validation rules.

Username, email and password checks applied before anything is hashed or
stored. Each validator returns a list of human readable errors; an empty
list means the value is acceptable.
"""

import re
from collections.abc import Collection

from email_validator import EmailNotValidError, validate_email

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]{3,50}$")
FULL_NAME_MAX_LENGTH = 100


def normalize_email(email: str) -> str:
    """Canonical stored form of an email address: stripped, lower case."""
    return email.strip().lower()


class PasswordPolicy:
    """Password strength validator."""

    MIN_LENGTH = 6
    MAX_LENGTH = 128
    ALLOWED_SPECIALS = "@$!%*?&#"

    _ALLOWED = re.compile(r"^[A-Za-z\d@$!%*?&#]+$")

    @classmethod
    def validate(cls, password: str) -> list[str]:
        """Validate password strength and character set."""
        if not isinstance(password, str) or not password:
            return ["Password is required"]

        errors = []

        # Length check
        if len(password) < cls.MIN_LENGTH:
            errors.append(f"Password must be at least {cls.MIN_LENGTH} characters long")
        if len(password) > cls.MAX_LENGTH:
            errors.append(f"Password must not exceed {cls.MAX_LENGTH} characters")

        # Complexity checks
        if not re.search(r"[A-Z]", password):
            errors.append("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", password):
            errors.append("Password must contain at least one lowercase letter")
        if not re.search(r"\d", password):
            errors.append("Password must contain at least one number")
        if not cls._ALLOWED.match(password):
            errors.append(
                f"Password may only contain letters, digits and {cls.ALLOWED_SPECIALS}"
            )

        return errors


def validate_username(username: str) -> list[str]:
    if not isinstance(username, str) or not username:
        return ["Username is required"]
    if not USERNAME_PATTERN.match(username):
        return [
            "Username must be 3-50 characters of letters, digits, underscores or hyphens"
        ]
    return []


def validate_email_address(email: str) -> list[str]:
    if not isinstance(email, str) or not email.strip():
        return ["Email is required"]
    try:
        validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as e:
        return [f"Invalid email address: {e}"]
    return []


def validate_full_name(full_name: str | None) -> list[str]:
    if full_name is not None and len(full_name) > FULL_NAME_MAX_LENGTH:
        return [f"Full name must not exceed {FULL_NAME_MAX_LENGTH} characters"]
    return []


def validate_registration(
    username: str,
    email: str,
    password: str,
    full_name: str | None = None,
    reserved_usernames: Collection[str] = (),
) -> dict[str, list[str]]:
    """
    Collect validation errors per field for a registration request.

    Names in ``reserved_usernames`` are refused regardless of case; they can
    only be given out by an operator.
    """
    username_errors = validate_username(username)
    if not username_errors and username.lower() in {name.lower() for name in reserved_usernames}:
        username_errors = ["Username is reserved"]
    checks = {
        "username": username_errors,
        "email": validate_email_address(email),
        "password": PasswordPolicy.validate(password),
        "full_name": validate_full_name(full_name),
    }
    return {name: errors for name, errors in checks.items() if errors}
