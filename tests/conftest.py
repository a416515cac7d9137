"""
Global test configuration and fixtures.

Builds the auth components against an in-memory SQLite database with a
low bcrypt cost so hashing stays fast.
"""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from tarot_auth.domain.entities import Account
from tarot_auth.infrastructure.auth.jwt_service import TokenMinter
from tarot_auth.infrastructure.auth.secret_hasher import SecretHasher
from tarot_auth.infrastructure.auth.services import AccountService, AuthOrchestrator
from tarot_auth.infrastructure.config import (
    AccountConfig,
    AuthConfig,
    RateLimitConfig,
    TokenConfig,
)
from tarot_auth.infrastructure.container import build_container
from tarot_auth.infrastructure.database import build_engine, build_session_factory, create_schema
from tarot_auth.infrastructure.rate_limiting import MemoryRateLimitStorage
from tarot_auth.infrastructure.repositories import SqlAlchemyCredentialStore
from tarot_auth.main import create_app


class CapturingMailer:
    """Mailer that keeps every delivered token for inspection."""

    def __init__(self) -> None:
        self.confirmations: list[tuple[int, str]] = []
        self.resets: list[tuple[int, str]] = []
        self.fail = False

    async def send_confirmation(self, account: Account, token: str) -> None:
        if self.fail:
            raise ConnectionError("SMTP unavailable")
        self.confirmations.append((account.id, token))

    async def send_password_reset(self, account: Account, token: str) -> None:
        if self.fail:
            raise ConnectionError("SMTP unavailable")
        self.resets.append((account.id, token))

    def last_confirmation(self) -> str:
        return self.confirmations[-1][1]

    def last_reset(self) -> str:
        return self.resets[-1][1]


class MutableClock:
    """Clock that starts at the real time and only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def token_config():
    """Token settings with distinct test secrets."""
    return TokenConfig(access_secret="test-access-secret", refresh_secret="test-refresh-secret")


@pytest.fixture
def account_config():
    """Account settings with the minimum bcrypt cost."""
    return AccountConfig(hash_rounds=4)


@pytest.fixture
def auth_config(token_config, account_config):
    """Complete configuration for an in-memory deployment."""
    return AuthConfig(
        tokens=token_config,
        accounts=account_config,
        rate_limit=RateLimitConfig(limit=1000),
        database_url="sqlite://",
        environment="test",
    )


@pytest.fixture(scope="function")
def session_factory():
    """Session factory over a fresh in-memory database."""
    engine = build_engine("sqlite://")
    create_schema(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return SqlAlchemyCredentialStore(session_factory)


@pytest.fixture
def hasher():
    return SecretHasher(rounds=4)


@pytest.fixture
def minter(token_config):
    return TokenMinter(token_config)


@pytest.fixture
def mailer():
    return CapturingMailer()


@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
def orchestrator(store, hasher, minter, mailer, account_config, clock):
    return AuthOrchestrator(store, hasher, minter, mailer, config=account_config, clock=clock)


@pytest.fixture
def account_service(store, hasher, mailer, account_config, clock):
    return AccountService(store, hasher, mailer, config=account_config, clock=clock)


@pytest.fixture
def container(auth_config, mailer):
    """Fully wired components sharing the capturing mailer."""
    built = build_container(auth_config, mailer=mailer, rate_limit_storage=MemoryRateLimitStorage())
    yield built
    built.dispose()


@pytest.fixture
def client(container):
    """Test client for the HTTP API."""
    app = create_app(container=container, configure_logging=False)
    with TestClient(app) as test_client:
        yield test_client
