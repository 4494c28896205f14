"""
campus_gateway.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Convert a bearer token into a typed `Credential`.
- Enforce RBAC via reusable dependency factories.
"""

from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.status import HTTP_403_FORBIDDEN

from campus_gateway.api.errors import ApiError
from campus_gateway.auth.models import Credential, Role
from campus_gateway.auth.tokens import TokenService

bearer_scheme = HTTPBearer(auto_error=False)


def token_service(request: Request) -> TokenService:
    # Built once in `campus_gateway.api.app.create_app`.
    return request.app.state.tokens  # type: ignore[attr-defined]


def get_credential(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    tokens: TokenService = Depends(token_service),
) -> Credential:
    # Unauthenticated propagates to the app-level handler (uniform 401).
    return tokens.verify(creds.credentials if creds is not None else None)


def require_roles(*required: Role):
    required_set = frozenset(required)

    def _dep(credential: Credential = Depends(get_credential)) -> Credential:
        # Admin bypasses role checks.
        if credential.is_admin:
            return credential
        if credential.role not in required_set:
            raise ApiError(HTTP_403_FORBIDDEN, "Insufficient role")
        return credential

    return _dep
