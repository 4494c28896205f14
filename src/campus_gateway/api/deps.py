"""
campus_gateway.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for DB sessions and the upstream chat client.
- Encapsulate app.state access patterns.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from campus_gateway.relay.upstream import ChatUpstream
from campus_gateway.settings import Settings


def settings_from_app(request: Request) -> Settings:
    # The settings instance `create_app` was built with (not re-read from env).
    return request.app.state.settings  # type: ignore[attr-defined]


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # Created on app startup in `campus_gateway.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Commit/rollback is explicit in the routers.
    async with session_factory() as session:
        yield session


def chat_upstream(
    request: Request,
    settings: Settings = Depends(settings_from_app),
) -> ChatUpstream:
    return ChatUpstream(
        http=request.app.state.chat_http,  # type: ignore[attr-defined]
        url=settings.chat_service_url,
        connect_timeout=settings.chat_connect_timeout_seconds,
    )
