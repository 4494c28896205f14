"""
campus_gateway.api.routers.chat

Chat relay endpoint.

Forwards one validated question to the upstream chat service and streams the
reply back as `text/event-stream`. Upstream rejections are passed through
(status code + body text) as a JSON error, and so are local failures that
happen before the first byte is sent.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import (
    AnyHttpUrl,
    BaseModel,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic_core import PydanticCustomError

from campus_gateway.api.deps import chat_upstream, settings_from_app
from campus_gateway.api.errors import error_body
from campus_gateway.auth.deps import bearer_scheme, token_service
from campus_gateway.auth.models import Credential
from campus_gateway.auth.tokens import TokenService
from campus_gateway.relay.response import RelayStreamingResponse
from campus_gateway.relay.session import RelaySession
from campus_gateway.relay.upstream import ChatUpstream
from campus_gateway.settings import Settings

router = APIRouter(prefix="/api/chat", tags=["chat"])

_http_url = TypeAdapter(AnyHttpUrl)

_REQUIRED_MESSAGES = {
    "message": "Message is required",
    "thread_id": "Thread ID is required",
    "school": "School name is required",
    "department": "Department name is required",
}


class ChatRequest(BaseModel):
    message: str
    thread_id: str
    url: str
    school: str
    department: str

    @field_validator("message", "thread_id", "school", "department")
    @classmethod
    def _not_empty(cls, value: str, info: ValidationInfo) -> str:
        if not value:
            raise PydanticCustomError("string_too_short", _REQUIRED_MESSAGES[info.field_name])
        return value

    @field_validator("url")
    @classmethod
    def _http_url_only(cls, value: str) -> str:
        # Validate, but keep the caller's spelling; the upstream receives it verbatim.
        try:
            _http_url.validate_python(value)
        except ValidationError as e:
            raise PydanticCustomError("url_parsing", "Valid URL is required") from e
        return value


def chat_credential(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(settings_from_app),
    tokens: TokenService = Depends(token_service),
) -> Credential | None:
    if not settings.chat_requires_auth:
        return None
    return tokens.verify(creds.credentials if creds is not None else None)


async def wait_for_disconnect(request: Request) -> None:
    # The body is already consumed, so the next message is the client hanging up.
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


@router.post("", response_model=None)
async def send_message(
    request: Request,
    body: ChatRequest,
    _: Credential | None = Depends(chat_credential),
    upstream: ChatUpstream = Depends(chat_upstream),
) -> Response:
    relay = RelaySession(upstream=upstream, payload=body.model_dump())
    error = await relay.start(disconnected=lambda: wait_for_disconnect(request))
    if error is not None:
        return JSONResponse(
            status_code=error.status_code,
            content=error_body(error.message, details=error.details),
        )
    return RelayStreamingResponse(relay)
