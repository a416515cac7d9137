"""
Configuration Management - Loads auth settings from the environment

Settings are read once into an ``AuthConfig`` and handed to the container
that wires the services; nothing reads the environment after startup.
"""

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables from .env file
load_dotenv()

DEV_ACCESS_SECRET = "dev-access-secret-change-me"
DEV_REFRESH_SECRET = "dev-refresh-secret-change-me"

_DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


class ConfigurationError(Exception):
    """Raised when configuration values are missing or unsafe."""


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration such as ``15m``, ``7d``, ``1h``, ``30s`` or ``900``.

    Raises:
        ConfigurationError: If the value is not a positive duration
    """
    match = _DURATION_PATTERN.match(value or "")
    if not match:
        raise ConfigurationError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    seconds = int(amount) * _DURATION_UNITS[unit]
    if seconds <= 0:
        raise ConfigurationError(f"Duration must be positive: {value!r}")
    return timedelta(seconds=seconds)


def _parse_int(env: Mapping[str, str], name: str, default: str) -> int:
    raw = env.get(name, default)
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


@dataclass
class TokenConfig:
    """Access/refresh token signing settings"""

    access_secret: str
    refresh_secret: str
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)
    issuer: str = "tarot-auth"
    audience: str = "tarot-app"
    refresh_audience: str = "tarot-app/refresh"
    algorithm: str = "HS256"

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "TokenConfig":
        """Load token config from environment variables"""
        return cls(
            access_secret=env.get("JWT_ACCESS_SECRET", DEV_ACCESS_SECRET),
            refresh_secret=env.get("JWT_REFRESH_SECRET", DEV_REFRESH_SECRET),
            access_ttl=parse_duration(env.get("JWT_ACCESS_TTL", "15m")),
            refresh_ttl=parse_duration(env.get("JWT_REFRESH_TTL", "7d")),
            issuer=env.get("JWT_ISSUER", "tarot-auth"),
            audience=env.get("JWT_AUDIENCE", "tarot-app"),
            refresh_audience=env.get("JWT_REFRESH_AUDIENCE", "tarot-app/refresh"),
        )


@dataclass
class AccountConfig:
    """Password hashing and one-time token settings"""

    hash_rounds: int = 10
    password_reset_ttl: timedelta = timedelta(hours=1)
    email_confirmation_ttl: timedelta = timedelta(hours=24)
    admin_usernames: frozenset[str] = frozenset({"admin"})

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "AccountConfig":
        """Load account config from environment variables"""
        admins = env.get("ADMIN_USERNAMES", "admin")
        return cls(
            hash_rounds=_parse_int(env, "PASSWORD_HASH_ROUNDS", "10"),
            password_reset_ttl=parse_duration(env.get("PASSWORD_RESET_TTL", "1h")),
            email_confirmation_ttl=parse_duration(env.get("EMAIL_CONFIRMATION_TTL", "24h")),
            admin_usernames=frozenset(name.strip() for name in admins.split(",") if name.strip()),
        )


@dataclass
class RateLimitConfig:
    """Throttle settings for the public auth endpoints"""

    limit: int = 20
    window: timedelta = timedelta(seconds=60)
    redis_url: str | None = None
    enabled: bool = True

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "RateLimitConfig":
        """Load throttle config from environment variables"""
        return cls(
            limit=_parse_int(env, "AUTH_RATE_LIMIT", "20"),
            window=parse_duration(env.get("AUTH_RATE_WINDOW", "60s")),
            redis_url=env.get("REDIS_URL") or None,
            enabled=env.get("AUTH_RATE_LIMIT_ENABLED", "true").lower() == "true",
        )


@dataclass
class AuthConfig:
    """Application configuration"""

    tokens: TokenConfig
    accounts: AccountConfig = field(default_factory=AccountConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    database_url: str = "sqlite:///./tarot_auth.db"
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "text"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AuthConfig":
        """
        Load all configuration from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``

        Raises:
            ConfigurationError: If a value is malformed or unsafe for the
                selected environment
        """
        env = os.environ if environ is None else environ
        config = cls(
            tokens=TokenConfig.from_env(env),
            accounts=AccountConfig.from_env(env),
            rate_limit=RateLimitConfig.from_env(env),
            database_url=env.get("DATABASE_URL", "sqlite:///./tarot_auth.db"),
            environment=env.get("ENVIRONMENT", "development"),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            log_format=env.get("LOG_FORMAT", "text").lower(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Reject settings that must never reach a production deployment."""
        tokens = self.tokens
        if not tokens.access_secret or not tokens.refresh_secret:
            raise ConfigurationError("JWT access and refresh secrets must be set")
        if not 4 <= self.accounts.hash_rounds <= 31:
            raise ConfigurationError("PASSWORD_HASH_ROUNDS must be between 4 and 31")
        if self.rate_limit.limit <= 0:
            raise ConfigurationError("AUTH_RATE_LIMIT must be positive")

        if tokens.access_secret == tokens.refresh_secret:
            if self.is_production:
                raise ConfigurationError("JWT access and refresh secrets must differ")
            logger.warning("JWT access and refresh secrets are identical")

        defaults = {DEV_ACCESS_SECRET, DEV_REFRESH_SECRET}
        if tokens.access_secret in defaults or tokens.refresh_secret in defaults:
            if self.is_production:
                raise ConfigurationError(
                    "JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must be configured in production"
                )
            logger.warning("Using development JWT secrets; set JWT_ACCESS_SECRET/JWT_REFRESH_SECRET")
