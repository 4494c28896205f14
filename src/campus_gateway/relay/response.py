"""
campus_gateway.relay.response

ASGI response that writes a started `RelaySession` to the client as a live event stream.
"""

from __future__ import annotations

from starlette.requests import ClientDisconnect
from starlette.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from campus_gateway.relay.session import RelaySession

EVENT_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    # Keep reverse proxies (nginx) from buffering the stream.
    "X-Accel-Buffering": "no",
}


class RelayStreamingResponse(StreamingResponse):
    """
    Each chunk is sent as its own `http.response.body` message, so the server
    flushes it immediately. A slow client blocks `send`, which blocks the next
    upstream read.
    """

    def __init__(self, relay: RelaySession) -> None:
        super().__init__(
            relay.stream(),
            status_code=200,
            media_type="text/event-stream",
            headers=EVENT_STREAM_HEADERS,
        )
        self._relay = relay

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        except ClientDisconnect:
            # Hang-up during a write; closing the session records it.
            pass
        finally:
            # Covers disconnects and write errors, where the body iterator is abandoned.
            await self._relay.aclose()
