"""
campus_gateway.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (JWT signing secret).
- Refuse to boot without the signing secret and chat service URL.
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """A required startup setting is missing; fatal at boot, never per request."""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CAMPUS_", case_sensitive=False)

    # Environment controls toggle behavior like auto-init DB tables.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "campus-gateway"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 3000

    # Auth. No default secret: an unset secret is a startup error, not a weak key.
    jwt_alg: str = "HS256"
    jwt_issuer: str = "campus-gateway"
    jwt_audience: str = "campus-api"
    jwt_secret: str = Field(default="", repr=False)

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./campus.db"

    # Upstream conversational service
    chat_service_url: str = "http://127.0.0.1:8000/chat"
    chat_connect_timeout_seconds: float = Field(default=10.0, gt=0)
    chat_requires_auth: bool = True

    def require_secrets(self) -> None:
        if not self.jwt_secret:
            raise ConfigurationError("CAMPUS_JWT_SECRET must be set")
        if not self.chat_service_url:
            raise ConfigurationError("CAMPUS_CHAT_SERVICE_URL must be set")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# The credential validity window is deliberately not a setting; see
# `campus_gateway.auth.tokens.TOKEN_TTL`.
