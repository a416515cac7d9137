"""
Shared plumbing for the auth services.

Service operations return ``Ok``/``Err`` and never raise. ``contained``
wraps an operation so that any unexpected exception is logged with its
traceback and turned into an opaque internal failure.
"""

import functools
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any, TypeVar

from ....application.result import Err, ErrorKind, Result, internal_error
from ....domain.entities import Account
from ..secret_hasher import digest_token, generate_token

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Result[Any]]])

INVALID_CREDENTIALS = "Invalid credentials"
ACCOUNT_DISABLED = "Account is disabled"


def contained(operation: str) -> Callable[[F], F]:
    """Convert unexpected exceptions raised by an operation into ``Err``."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Result[Any]:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error executing {operation}: {type(e).__name__}", exc_info=True)
                return internal_error()

        return wrapper  # type: ignore[return-value]

    return decorator


def validation_failed(fields: dict[str, list[str]]) -> Err:
    messages = [message for errors in fields.values() for message in errors]
    return Err(ErrorKind.VALIDATION_FAILED, "; ".join(messages), fields=fields)


def duplicate_credential(field: str) -> Err:
    detail = "Username already taken" if field == "username" else "Email already registered"
    return Err(ErrorKind.DUPLICATE_CREDENTIAL, detail, fields={"field": field})


def new_one_time_token(now: datetime, ttl: timedelta) -> tuple[str, str, datetime]:
    """
    Generate a one-time token.

    Returns:
        Raw token for delivery, its stored digest, and its expiry
    """
    token = generate_token()
    return token, digest_token(token), now + ttl


async def deliver(send: Callable[[Account, str], Awaitable[None]], account: Account, token: str) -> None:
    """Hand a token to the mailer; delivery problems are logged, not raised."""
    try:
        await send(account, token)
    except Exception as e:
        logger.error(
            f"Mail delivery failed for account {account.id}: {type(e).__name__}", exc_info=True
        )
