"""
tests.conftest

Shared fixtures.

Responsibilities:
- Test settings backed by a throwaway SQLite file.
- A fake upstream chat service on `httpx.MockTransport` whose body can be gated
  chunk by chunk, fail mid-stream, or refuse the request.
- App + HTTP client with lifespan managed explicitly.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from campus_gateway.api.app import create_app
from campus_gateway.auth.models import Role
from campus_gateway.auth.password import hash_password
from campus_gateway.db.repositories.users import UserRepo
from campus_gateway.relay.upstream import ChatUpstream
from campus_gateway.settings import Settings

SECRET = "test-signing-secret-0123456789abcdef"
CHAT_URL = "http://chat.test/chat"
PASSWORD = "password123"

CHAT_BODY = {
    "message": "7 kasımda hangi sınavlar var ?",
    "thread_id": "test-4",
    "url": "https://eem.bakircay.edu.tr",
    "school": "Izmir Bakircay Universitesi",
    "department": "Elektrik Elektronik Mühendisliği",
}


class UpstreamBody(httpx.AsyncByteStream):
    """Chunked upstream body that records how far the relay has read."""

    def __init__(
        self,
        chunks: list[bytes],
        *,
        gates: dict[int, asyncio.Event],
        fail_at: int | None,
    ) -> None:
        self._chunks = chunks
        self._gates = gates
        self._fail_at = fail_at
        self.pulls = 0
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for index, chunk in enumerate(self._chunks):
            self.pulls += 1
            gate = self._gates.get(index)
            if gate is not None:
                await gate.wait()
            if index == self._fail_at:
                raise httpx.ReadError("connection reset by upstream")
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


class FakeChatService:
    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.chunks: list[bytes] = [b"a", b"bc", b"d"]
        self.gates: dict[int, asyncio.Event] = {}
        self.fail_at: int | None = None
        self.connect_error: Exception | None = None
        self.delay = 0.0
        self.body: UpstreamBody | None = None

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.connect_error is not None:
            raise self.connect_error

        self.body = UpstreamBody(self.chunks, gates=self.gates, fail_at=self.fail_at)
        content_type = (
            "text/event-stream; charset=utf-8"
            if self.status_code < 400
            else "text/plain; charset=utf-8"
        )
        return httpx.Response(
            self.status_code, headers={"content-type": content_type}, stream=self.body
        )


@pytest.fixture()
def fake_chat() -> FakeChatService:
    return FakeChatService()


@pytest_asyncio.fixture()
async def chat_http(fake_chat: FakeChatService) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_chat.handle)) as client:
        yield client


@pytest.fixture()
def upstream(chat_http: httpx.AsyncClient) -> ChatUpstream:
    return ChatUpstream(http=chat_http, url=CHAT_URL, connect_timeout=1.0)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        env="test",
        jwt_secret=SECRET,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'campus.db'}",
        chat_service_url=CHAT_URL,
    )


@pytest_asyncio.fixture()
async def app(settings: Settings, chat_http: httpx.AsyncClient) -> AsyncIterator[FastAPI]:
    app = create_app(settings=settings, chat_http=chat_http)
    # httpx ASGITransport does not run lifespan; do it explicitly.
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture()
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture()
async def seeded(app: FastAPI) -> dict[str, object]:
    hashed = hash_password(PASSWORD)
    async with app.state.sessionmaker() as session:
        users = UserRepo(session)
        admin = await users.create_user(
            email="admin@university.edu.tr",
            password_hash=hashed,
            name="System Administrator",
            tc_no="12345678901",
            role=Role.admin,
        )
        teacher = await users.create_user(
            email="ahmet.yilmaz@university.edu.tr",
            password_hash=hashed,
            name="Prof. Dr. Ahmet Yılmaz",
            tc_no="11111111111",
            role=Role.teacher,
        )
        teacher_record = await users.create_teacher(
            user_id=teacher.id, title="Prof. Dr.", office_number="B-301"
        )
        student = await users.create_user(
            email="student@university.edu.tr",
            password_hash=hashed,
            name="Ali Veli",
            tc_no="44444444444",
            role=Role.student,
        )
        student_record = await users.create_student(
            user_id=student.id, student_number="20240001", enrollment_year=2024
        )
        await session.commit()
    return {
        "admin": admin,
        "teacher": teacher,
        "teacher_record": teacher_record,
        "student": student,
        "student_record": student_record,
    }


@pytest.fixture()
def chat_body() -> dict[str, str]:
    return dict(CHAT_BODY)


@pytest.fixture()
def auth_headers(app: FastAPI) -> dict[str, str]:
    token = app.state.tokens.issue(
        subject="00000000-0000-0000-0000-000000000001",
        email="ahmet.yilmaz@university.edu.tr",
        role=Role.teacher,
        teacher_id="00000000-0000-0000-0000-00000000000a",
    )
    return {"Authorization": f"Bearer {token}"}
