"""
tests.test_chat_api

`POST /api/chat` end to end through the app: validation and auth at the
boundary, pass-through of upstream rejections, and the streamed reply.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest
from fastapi import FastAPI

from campus_gateway.api.app import create_app
from campus_gateway.settings import Settings


@pytest.mark.asyncio
async def test_streams_upstream_reply(client: httpx.AsyncClient, fake_chat, chat_body, auth_headers) -> None:
    r = await client.post("/api/chat", json=chat_body, headers=auth_headers)

    assert r.status_code == 200
    assert r.text == "abcd"
    assert r.headers["content-type"].startswith("text/event-stream")
    assert r.headers["cache-control"] == "no-cache"
    assert r.headers["connection"] == "keep-alive"
    assert r.headers["x-request-id"]

    (request,) = fake_chat.requests
    # Forwarded verbatim, including the URL as typed by the client.
    assert json.loads(request.content) == chat_body
    assert request.headers["accept"] == "application/json"


@pytest.mark.asyncio
async def test_upstream_status_and_body_pass_through(
    client: httpx.AsyncClient, fake_chat, chat_body, auth_headers
) -> None:
    fake_chat.status_code = 503
    fake_chat.chunks = [b"model overloaded"]

    r = await client.post("/api/chat", json=chat_body, headers=auth_headers)

    assert r.status_code == 503
    assert r.headers["content-type"] == "application/json"
    assert r.json() == {
        "status": "error",
        "message": "Chat service returned status 503",
        "details": "model overloaded",
    }


@pytest.mark.asyncio
async def test_unreachable_upstream_is_500(
    client: httpx.AsyncClient, fake_chat, chat_body, auth_headers
) -> None:
    fake_chat.connect_error = httpx.ConnectError("connection refused")

    r = await client.post("/api/chat", json=chat_body, headers=auth_headers)

    assert r.status_code == 500
    body = r.json()
    assert body["status"] == "error"
    assert body["message"] == "Failed to communicate with chat service"
    assert "connection refused" in body["details"]


@pytest.mark.asyncio
async def test_mid_stream_failure_ends_response(
    client: httpx.AsyncClient, fake_chat, chat_body, auth_headers
) -> None:
    fake_chat.fail_at = 2

    r = await client.post("/api/chat", json=chat_body, headers=auth_headers)

    # Headers were already sent: the client only sees a shorter stream.
    assert r.status_code == 200
    assert r.text == "abc"
    assert fake_chat.body.closed


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("field", "value", "message"),
    [
        ("message", "", "Message is required"),
        ("thread_id", "", "Thread ID is required"),
        ("url", "not a url", "Valid URL is required"),
        ("url", "ftp://files.example.edu", "Valid URL is required"),
        ("school", "", "School name is required"),
        ("department", "", "Department name is required"),
        ("department", None, "Field required"),
    ],
)
async def test_invalid_request_never_reaches_upstream(
    client: httpx.AsyncClient, fake_chat, chat_body, auth_headers, field, value, message
) -> None:
    if value is None:
        del chat_body[field]
    else:
        chat_body[field] = value

    r = await client.post("/api/chat", json=chat_body, headers=auth_headers)

    assert r.status_code == 400
    body = r.json()
    assert body["status"] == "error"
    assert body["message"] == "Validation failed"
    assert body["errors"] == [{"field": field, "message": message}]
    assert fake_chat.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer forged.token.value"}])
async def test_requires_credential(client: httpx.AsyncClient, fake_chat, chat_body, headers) -> None:
    r = await client.post("/api/chat", json=chat_body, headers=headers)

    assert r.status_code == 401
    assert r.json() == {"status": "error", "message": "Invalid or expired token"}
    assert fake_chat.requests == []


@pytest.mark.asyncio
async def test_open_relay_when_auth_disabled(
    settings: Settings, chat_http: httpx.AsyncClient, fake_chat, chat_body
) -> None:
    app = create_app(
        settings=settings.model_copy(update={"chat_requires_auth": False}), chat_http=chat_http
    )
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            r = await c.post("/api/chat", json=chat_body)

    assert r.status_code == 200
    assert r.text == "abcd"


@pytest.mark.asyncio
async def test_client_leaving_before_first_chunk_releases_upstream(
    app: FastAPI, fake_chat, chat_body, auth_headers
) -> None:
    fake_chat.gates = {0: asyncio.Event()}
    payload = json.dumps(chat_body).encode()
    headers = [(b"content-type", b"application/json"), (b"content-length", str(len(payload)).encode())]
    headers += [(k.lower().encode(), v.encode()) for k, v in auth_headers.items()]
    scope = {
        "type": "http",
        "asgi": {"version": "3.0", "spec_version": "2.3"},
        "http_version": "1.1",
        "method": "POST",
        "scheme": "http",
        "path": "/api/chat",
        "raw_path": b"/api/chat",
        "query_string": b"",
        "root_path": "",
        "headers": headers,
        "server": ("test", 80),
        "client": ("127.0.0.1", 50000),
    }
    sent: list[dict[str, Any]] = []
    body_sent = False

    async def receive() -> dict[str, Any]:
        nonlocal body_sent
        if not body_sent:
            body_sent = True
            return {"type": "http.request", "body": payload, "more_body": False}
        # Hang up once the relay is waiting on the first upstream chunk.
        while fake_chat.body is None or fake_chat.body.pulls == 0:
            await asyncio.sleep(0.001)
        return {"type": "http.disconnect"}

    async def send(message: dict[str, Any]) -> None:
        sent.append(message)

    await asyncio.wait_for(app(scope, receive, send), timeout=1.0)

    assert fake_chat.body.closed
    assert fake_chat.body.pulls == 1
    assert sent[0]["status"] == 499
