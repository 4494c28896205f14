"""
campus_gateway.api.app

FastAPI app factory for the campus gateway.

Responsibilities:
- Build the FastAPI application and register routers/middleware/error handlers.
- Fail fast on missing secrets (ConfigurationError at construction).
- Own shared infrastructure (DB engine, upstream HTTP client, token service).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from campus_gateway import __version__
from campus_gateway.api.errors import register_error_handlers
from campus_gateway.api.routers.auth import router as auth_router
from campus_gateway.api.routers.chat import router as chat_router
from campus_gateway.api.routers.health import router as health_router
from campus_gateway.auth.tokens import JwtConfig, TokenService
from campus_gateway.db.init_db import init_db
from campus_gateway.db.session import create_engine, create_sessionmaker
from campus_gateway.observability.logging import configure_logging, get_logger
from campus_gateway.observability.middleware import RequestContextMiddleware
from campus_gateway.settings import Settings

log = get_logger(__name__)


def create_chat_http(settings: Settings) -> httpx.AsyncClient:
    # No read timeout: replies can take arbitrarily long between chunks.
    return httpx.AsyncClient(
        timeout=httpx.Timeout(None, connect=settings.chat_connect_timeout_seconds),
    )


def create_app(*, settings: Settings, chat_http: httpx.AsyncClient | None = None) -> FastAPI:
    """
    `chat_http` lets callers (tests) supply the upstream client; otherwise one is
    created at startup and closed at shutdown.
    """

    configure_logging(service_name=settings.service_name, level=settings.log_level)
    settings.require_secrets()
    tokens = TokenService(cfg=JwtConfig.from_settings(settings))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            # Prod uses Alembic migrations.
            await init_db(engine)

        owned_http = chat_http is None
        app.state.chat_http = create_chat_http(settings) if owned_http else chat_http
        try:
            yield
        finally:
            if owned_http:
                await app.state.chat_http.aclose()
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="Campus Gateway",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.tokens = tokens

    register_error_handlers(app)
    app.add_middleware(RequestContextMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router)
    app.include_router(chat_router)
    return app


# --- Module Notes -----------------------------------------------------------
# App composition stays here; request handling lives in routers and the relay package.
