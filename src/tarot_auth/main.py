"""
FastAPI application factory for the auth service.

Run with ``uvicorn tarot_auth.main:create_app --factory``.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .infrastructure.auth.endpoints import router as auth_router
from .infrastructure.auth.endpoints import users_router
from .infrastructure.auth.http_errors import register_exception_handlers
from .infrastructure.auth.middleware import (
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from .infrastructure.config import AuthConfig
from .infrastructure.container import AuthContainer, build_container
from .infrastructure.monitoring.logging import setup_logging

logger = logging.getLogger(__name__)


def create_app(
    config: AuthConfig | None = None,
    container: AuthContainer | None = None,
    configure_logging: bool = True,
) -> FastAPI:
    """
    Create the auth application.

    Args:
        config: Configuration; read from the environment when omitted
        container: Pre-built components, mainly for tests
        configure_logging: Install the masking log handler on the root logger
    """
    if container is None:
        config = config or AuthConfig.from_env()
        if configure_logging:
            setup_logging(config.log_level, config.log_format)
        container = build_container(config)
    elif configure_logging:
        setup_logging(container.config.log_level, container.config.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Auth service starting")
        yield
        container.dispose()
        logger.info("Auth service stopped")

    app = FastAPI(
        title="Tarot Auth",
        description="Account registration, login and session management",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.container = container

    # Middleware; the last one added runs first
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(users_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    return app
