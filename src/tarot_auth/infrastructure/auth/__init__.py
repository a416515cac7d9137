"""
Authentication infrastructure.

Secret hashing, token minting, credential validation, the auth services
and their FastAPI surface.
"""

from .credential_policy import PasswordPolicy, normalize_email
from .jwt_service import TokenClaims, TokenMinter
from .mailer import LoggingAccountMailer
from .secret_hasher import HashingError, SecretHasher, digest_token, generate_token
from .services import AccountService, AuthOrchestrator

__all__ = [
    "AccountService",
    "AuthOrchestrator",
    "HashingError",
    "LoggingAccountMailer",
    "PasswordPolicy",
    "SecretHasher",
    "TokenClaims",
    "TokenMinter",
    "digest_token",
    "generate_token",
    "normalize_email",
]
