"""
campus_gateway.relay.upstream

HTTP client boundary for the upstream chat service.

`ChatUpstream.open` returns an explicit outcome instead of raising for
transport problems:
- `UpstreamOpened`: 2xx received, body not yet read (caller owns the response).
- `UpstreamRejected`: non-2xx received; body read in full and connection released.
- `UpstreamUnavailable`: connect failure, timeout or protocol error before any status.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx

from campus_gateway.observability.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class UpstreamOpened:
    response: httpx.Response


@dataclass(frozen=True, slots=True)
class UpstreamRejected:
    status_code: int
    body: str


@dataclass(frozen=True, slots=True)
class UpstreamUnavailable:
    detail: str


UpstreamResult = UpstreamOpened | UpstreamRejected | UpstreamUnavailable


class ChatUpstream:
    def __init__(
        self,
        *,
        http: httpx.AsyncClient,
        url: str,
        connect_timeout: float,
    ) -> None:
        self._http = http
        self._url = url
        self._connect_timeout = connect_timeout

    @property
    def connect_timeout(self) -> float:
        return self._connect_timeout

    async def open(self, payload: dict[str, Any]) -> UpstreamResult:
        request = self._http.build_request(
            "POST",
            self._url,
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            json=payload,
        )
        try:
            # Bounds status + headers; the session applies the same bound to the first chunk.
            async with asyncio.timeout(self._connect_timeout):
                response = await self._http.send(request, stream=True)
        except TimeoutError:
            return UpstreamUnavailable(
                f"Chat service did not respond within {self._connect_timeout:g}s"
            )
        except httpx.HTTPError as e:
            return UpstreamUnavailable(str(e) or type(e).__name__)

        if response.is_success:
            return UpstreamOpened(response)

        try:
            body = (await response.aread()).decode(response.encoding or "utf-8", errors="replace")
        except httpx.HTTPError as e:
            log.warning("relay.rejection_body_unreadable", error=str(e))
            body = ""
        finally:
            await response.aclose()
        return UpstreamRejected(status_code=response.status_code, body=body)


# --- Module Notes -----------------------------------------------------------
# No retries: one client request is exactly one upstream conversational turn.
