"""
Dependency Container - Wiring of the auth components.

Builds every component once from an AuthConfig. The HTTP layer reads the
container from ``app.state``; tests build one directly with substitutes
for the mailer or the throttle storage.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ..application.interfaces.credential_store import ICredentialStore
from ..application.interfaces.mailer import IAccountMailer
from .auth.jwt_service import TokenMinter, utc_now
from .auth.mailer import LoggingAccountMailer
from .auth.secret_hasher import SecretHasher
from .auth.services import AccountService, AuthOrchestrator
from .config import AuthConfig
from .database import build_engine, build_session_factory, create_schema
from .rate_limiting import AuthRateLimiter, RateLimitStorage, create_storage
from .repositories import SqlAlchemyCredentialStore

logger = logging.getLogger(__name__)


@dataclass
class AuthContainer:
    """Fully wired auth components."""

    config: AuthConfig
    engine: Engine
    session_factory: sessionmaker[Session]
    store: ICredentialStore
    hasher: SecretHasher
    minter: TokenMinter
    mailer: IAccountMailer
    orchestrator: AuthOrchestrator
    accounts: AccountService
    rate_limiter: AuthRateLimiter

    def dispose(self) -> None:
        self.engine.dispose()


def build_container(
    config: AuthConfig,
    mailer: IAccountMailer | None = None,
    rate_limit_storage: RateLimitStorage | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> AuthContainer:
    """
    Create all components for a configuration.

    Args:
        config: Loaded configuration
        mailer: Mailer to use instead of the logging mailer
        rate_limit_storage: Throttle storage to use instead of the configured one
        clock: Source of the current time
    """
    engine = build_engine(config.database_url)
    create_schema(engine)
    session_factory = build_session_factory(engine)

    store = SqlAlchemyCredentialStore(session_factory)
    hasher = SecretHasher(rounds=config.accounts.hash_rounds)
    minter = TokenMinter(config.tokens, clock=clock)
    mailer = mailer or LoggingAccountMailer()

    orchestrator = AuthOrchestrator(
        store, hasher, minter, mailer, config=config.accounts, clock=clock
    )
    accounts = AccountService(store, hasher, mailer, config=config.accounts, clock=clock)

    storage = rate_limit_storage or create_storage(config.rate_limit.redis_url)
    rate_limiter = AuthRateLimiter(
        storage,
        limit=config.rate_limit.limit,
        window=config.rate_limit.window,
        enabled=config.rate_limit.enabled,
    )

    logger.info(f"Auth container built for environment {config.environment}")
    return AuthContainer(
        config=config,
        engine=engine,
        session_factory=session_factory,
        store=store,
        hasher=hasher,
        minter=minter,
        mailer=mailer,
        orchestrator=orchestrator,
        accounts=accounts,
        rate_limiter=rate_limiter,
    )
