"""
campus_gateway.api.errors

Uniform error envelope and exception handlers.

Every error body has the shape `{"status": "error", "message": ..., ...}`:
- `ApiError`: domain errors raised by routers (status + message [+ details]).
- `Unauthenticated`: always 401 with one message, whatever the root cause.
- `RequestValidationError`: 400 with per-field messages.
- `HTTPException`: framework errors (404/405, ...) re-wrapped.
- anything else: logged, 500.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from campus_gateway.auth.tokens import UNAUTHENTICATED_MESSAGE, Unauthenticated
from campus_gateway.observability.logging import get_logger

log = get_logger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details


def error_body(message: str, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"status": "error", "message": message}
    body.update({k: v for k, v in extra.items() if v is not None})
    return body


def _field_path(loc: tuple[Any, ...] | list[Any]) -> str:
    # Drop the "body"/"query" prefix FastAPI puts in front of field locations.
    parts = [str(p) for p in loc]
    if parts and parts[0] in ("body", "query", "path", "header"):
        parts = parts[1:]
    return ".".join(parts)


async def _api_error(_: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, details=exc.details),
    )


async def _unauthenticated(_: Request, exc: Unauthenticated) -> JSONResponse:
    log.info("auth.unauthenticated", reason=exc.reason)
    return JSONResponse(
        status_code=HTTP_401_UNAUTHORIZED,
        content=error_body(UNAUTHENTICATED_MESSAGE),
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": _field_path(err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=HTTP_400_BAD_REQUEST,
        content=error_body("Validation failed", errors=errors),
    )


async def _http_exception(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _unhandled(_: Request, exc: Exception) -> JSONResponse:
    log.exception("api.unhandled_error", error_type=type(exc).__name__)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error"),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error)  # type: ignore[arg-type]
    app.add_exception_handler(Unauthenticated, _unauthenticated)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled)
