"""
tests.test_auth_deps

Role gate: matching role passes, admin bypasses, other roles get 403.
"""

from __future__ import annotations

import httpx
import pytest
from fastapi import Depends, FastAPI

from campus_gateway.api.errors import register_error_handlers
from campus_gateway.auth.deps import require_roles
from campus_gateway.auth.models import Credential, Role
from campus_gateway.auth.tokens import JwtConfig, TokenService

SECRET = "rbac-test-signing-secret-0123456789abcdef"


@pytest.fixture()
def tokens() -> TokenService:
    return TokenService(
        cfg=JwtConfig(alg="HS256", issuer="campus-gateway", audience="campus-api", secret=SECRET)
    )


@pytest.fixture()
def gated_app(tokens: TokenService) -> FastAPI:
    app = FastAPI()
    app.state.tokens = tokens
    register_error_handlers(app)

    @app.get("/grades")
    async def grades(credential: Credential = Depends(require_roles(Role.teacher))) -> dict[str, str]:
        return {"role": credential.role.value}

    return app


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("role", "ids", "expected"),
    [
        (Role.teacher, {"teacher_id": "t-1"}, 200),
        (Role.admin, {}, 200),
        (Role.student, {"student_id": "s-1"}, 403),
    ],
)
async def test_role_gate(gated_app: FastAPI, tokens: TokenService, role, ids, expected) -> None:
    token = tokens.issue(subject="u-1", email="u@university.edu.tr", role=role, **ids)

    transport = httpx.ASGITransport(app=gated_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.get("/grades", headers={"Authorization": f"Bearer {token}"})

    assert r.status_code == expected
    if expected == 403:
        assert r.json() == {"status": "error", "message": "Insufficient role"}


@pytest.mark.asyncio
async def test_role_gate_requires_credential(gated_app: FastAPI) -> None:
    transport = httpx.ASGITransport(app=gated_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.get("/grades")

    assert r.status_code == 401
