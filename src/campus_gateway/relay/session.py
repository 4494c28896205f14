"""
campus_gateway.relay.session

One proxied conversation turn.

State machine::

    pending -> upstream_connecting -> streaming -> closed
         \\____________\\_______________\\_______-> failed

`start()` dispatches the upstream call and reads the first chunk, bounded by
the connect timeout and abandoned if the client disconnects. Anything that
goes wrong up to that point is returned as a `RelayError` so the caller can
answer with a structured JSON error; no downstream byte has been written yet.
After `start()` succeeds, `stream()` alternates strictly between reading one
upstream chunk and handing it to the consumer. Errors from then on can only
end the stream: the event-stream wire contract has no mid-stream error frame.

Whatever ends the exchange (upstream end, upstream error, consumer closing the
iterator, `cancel()`), the upstream response is released before the next read.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from campus_gateway.observability.logging import get_logger
from campus_gateway.relay.upstream import (
    ChatUpstream,
    UpstreamRejected,
    UpstreamUnavailable,
)

log = get_logger(__name__)

LOCAL_FAILURE_MESSAGE = "Failed to communicate with chat service"
# Non-standard status for a client that left before the response started.
CLIENT_CLOSED_REQUEST = 499


class RelayState(enum.StrEnum):
    pending = "pending"
    upstream_connecting = "upstream_connecting"
    streaming = "streaming"
    closed = "closed"
    failed = "failed"


_TERMINAL = frozenset({RelayState.closed, RelayState.failed})


@dataclass(frozen=True, slots=True)
class Chunk:
    text: str


@dataclass(frozen=True, slots=True)
class EndOfStream:
    pass


@dataclass(frozen=True, slots=True)
class ReadFailed:
    error: Exception


ChunkRead = Chunk | EndOfStream | ReadFailed


@dataclass(frozen=True, slots=True)
class RelayError:
    status_code: int
    message: str
    details: str


class RelaySession:
    def __init__(self, *, upstream: ChatUpstream, payload: dict[str, Any]) -> None:
        self._upstream = upstream
        self._payload = payload
        self._state = RelayState.pending
        self._response: httpx.Response | None = None
        self._chunks: AsyncGenerator[str, None] | None = None
        self._first: ChunkRead = EndOfStream()
        self._iterator: AsyncGenerator[str, None] | None = None
        self._cancelled = False
        self.chunks_sent = 0

    @property
    def state(self) -> RelayState:
        return self._state

    def cancel(self) -> None:
        # Checked before every upstream read.
        self._cancelled = True

    async def start(
        self, *, disconnected: Callable[[], Awaitable[object]] | None = None
    ) -> RelayError | None:
        """Open the upstream turn and wait for its first chunk.

        `disconnected` resolves when the downstream client goes away; the wait
        for the first chunk is abandoned and the upstream released when it does.
        """
        if self._state is not RelayState.pending:
            raise RuntimeError(f"relay already started (state={self._state})")
        self._state = RelayState.upstream_connecting

        result = await self._upstream.open(self._payload)
        if isinstance(result, UpstreamRejected):
            self._state = RelayState.failed
            log.warning("relay.upstream_rejected", upstream_status=result.status_code)
            return RelayError(
                status_code=result.status_code,
                message=f"Chat service returned status {result.status_code}",
                details=result.body,
            )
        if isinstance(result, UpstreamUnavailable):
            self._state = RelayState.failed
            log.error("relay.upstream_unavailable", error=result.detail)
            return RelayError(status_code=500, message=LOCAL_FAILURE_MESSAGE, details=result.detail)

        self._response = result.response
        # aiter_text decodes incrementally, so multi-byte characters split across chunks survive.
        self._chunks = result.response.aiter_text()

        try:
            first = await self._first_read(disconnected)
        except BaseException:
            # Cancelled while waiting for the first chunk.
            self._state = RelayState.failed
            await self._release()
            raise

        if first is None:
            self._state = RelayState.failed
            await self._release()
            log.info("relay.client_disconnected", chunks_sent=0)
            return RelayError(
                status_code=CLIENT_CLOSED_REQUEST,
                message="Client closed request",
                details="client disconnected before the first chunk",
            )
        if isinstance(first, ReadFailed):
            self._state = RelayState.failed
            await self._release()
            log.error("relay.upstream_unavailable", error=str(first.error))
            return RelayError(
                status_code=500, message=LOCAL_FAILURE_MESSAGE, details=str(first.error)
            )

        self._first = first
        self._state = RelayState.streaming
        log.info("relay.streaming")
        return None

    def stream(self) -> AsyncIterator[str]:
        if self._state is not RelayState.streaming or self._iterator is not None:
            raise RuntimeError(f"relay is not ready to stream (state={self._state})")
        self._iterator = self._relay()
        return self._iterator

    async def aclose(self) -> None:
        """Stop relaying and release the upstream connection. Safe to call repeatedly."""
        self._cancelled = True
        if self._iterator is not None:
            await self._iterator.aclose()
        if self._state not in _TERMINAL:
            self._state = RelayState.failed
        await self._release()

    async def _relay(self) -> AsyncGenerator[str, None]:
        item = self._first
        self._first = EndOfStream()
        try:
            while True:
                if self._cancelled:
                    self._state = RelayState.failed
                    log.info("relay.cancelled", chunks_sent=self.chunks_sent)
                    return
                if isinstance(item, EndOfStream):
                    self._state = RelayState.closed
                    log.info("relay.closed", chunks_sent=self.chunks_sent)
                    return
                if isinstance(item, ReadFailed):
                    self._state = RelayState.failed
                    log.error(
                        "relay.stream_failed",
                        chunks_sent=self.chunks_sent,
                        error=str(item.error),
                    )
                    return
                yield item.text
                self.chunks_sent += 1
                if self._cancelled:
                    continue
                item = await self._read()
        finally:
            if self._state not in _TERMINAL:
                # Consumer went away mid-stream (closed iterator, cancellation, write error).
                self._state = RelayState.failed
                log.info("relay.client_disconnected", chunks_sent=self.chunks_sent)
            await self._release()

    async def _first_read(
        self, disconnected: Callable[[], Awaitable[object]] | None
    ) -> ChunkRead | None:
        # None means the client left first; a stalled upstream reads as ReadFailed.
        read = asyncio.ensure_future(self._read())
        waiters: set[asyncio.Future[Any]] = {read}
        gone: asyncio.Future[object] | None = None
        if disconnected is not None:
            gone = asyncio.ensure_future(disconnected())
            waiters.add(gone)
        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=self._upstream.connect_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for waiter in waiters:
                waiter.cancel()
            await asyncio.gather(*waiters, return_exceptions=True)

        if gone is not None and gone in done:
            return None
        if read in done:
            return read.result()
        return ReadFailed(
            TimeoutError(
                f"Chat service sent no data within {self._upstream.connect_timeout:g}s"
            )
        )

    async def _read(self) -> ChunkRead:
        if self._chunks is None:
            return EndOfStream()
        try:
            text = await anext(self._chunks)
        except StopAsyncIteration:
            return EndOfStream()
        except Exception as e:  # noqa: BLE001
            return ReadFailed(e)
        return Chunk(text)

    async def _release(self) -> None:
        chunks, self._chunks = self._chunks, None
        response, self._response = self._response, None
        if chunks is not None:
            await chunks.aclose()
        if response is not None:
            await response.aclose()
