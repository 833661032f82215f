"""Pytest configuration and shared fixtures.

Provides in-memory stand-ins for the transport layer:
- ScriptedStream: a ByteStream fed by the test, closable from another task
- FakeTransport: hands out prepared ScriptedStreams and records writes
- QueueBody: an httpx.AsyncByteStream for streaming bodies through httpx.MockTransport
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from nestapi.errors import StreamClosedError
from nestapi.transport.base import HTTPResult


def sse_frame(event: str, data: str) -> bytes:
    """Encode one wire frame."""
    return f"event: {event}\ndata: {data}\n\n".encode()


class ScriptedStream:
    """ByteStream whose chunks are supplied by the test."""

    def __init__(self, url: str = "https://example.test/.json"):
        self.url = url
        self.closed = False
        self.close_calls = 0
        self._chunks: asyncio.Queue[bytes | BaseException] = asyncio.Queue()
        self._closed_event = asyncio.Event()

    def feed(self, data: bytes | str) -> None:
        self._chunks.put_nowait(data.encode() if isinstance(data, str) else data)

    def feed_eof(self) -> None:
        self._chunks.put_nowait(b"")

    def fail(self, exc: BaseException) -> None:
        self._chunks.put_nowait(exc)

    async def read(self) -> bytes:
        if self.closed:
            raise StreamClosedError("read on closed stream")

        get = asyncio.ensure_future(self._chunks.get())
        closed = asyncio.ensure_future(self._closed_event.wait())
        try:
            done, _ = await asyncio.wait({get, closed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            get.cancel()
            closed.cancel()

        if get not in done:
            raise StreamClosedError("stream closed during read")

        item = get.result()
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        self.close_calls += 1
        self.closed = True
        self._closed_event.set()


class FakeTransport:
    """Transport that serves ScriptedStreams and records requests."""

    def __init__(self) -> None:
        self.opened_urls: list[str] = []
        self.requests: list[tuple[str, str, bytes | None]] = []
        self.open_error: BaseException | None = None
        self.request_error: BaseException | None = None
        self.redirect_to: str | None = None
        # When set, open_stream waits for it before returning
        self.gate: asyncio.Event | None = None
        self.closed = False
        self._prepared: list[ScriptedStream] = []

    def prepare_stream(self) -> ScriptedStream:
        """Create the stream handed out by the next open_stream()."""
        stream = ScriptedStream()
        self._prepared.append(stream)
        return stream

    async def open_stream(self, url: str) -> ScriptedStream:
        self.opened_urls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        if self.open_error is not None:
            raise self.open_error

        stream = self._prepared.pop(0) if self._prepared else ScriptedStream()
        stream.url = self.redirect_to or url
        return stream

    async def request(self, method: str, url: str, content: bytes | None = None) -> HTTPResult:
        self.requests.append((method, url, content))
        if self.request_error is not None:
            raise self.request_error
        return HTTPResult(status_code=200, body=content or b"null", url=self.redirect_to or url)

    async def aclose(self) -> None:
        self.closed = True


class QueueBody(httpx.AsyncByteStream):
    """Streaming response body driven by the test."""

    def __init__(self) -> None:
        self.closed = False
        self._queue: asyncio.Queue[bytes | BaseException | None] = asyncio.Queue()

    def feed(self, data: bytes) -> None:
        self._queue.put_nowait(data)

    def feed_eof(self) -> None:
        self._queue.put_nowait(None)

    def fail(self, exc: BaseException) -> None:
        self._queue.put_nowait(exc)

    async def __aiter__(self):
        while True:
            item = await self._queue.get()
            if item is None:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def frame():
    """The sse_frame() encoder."""
    return sse_frame


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def scripted_stream():
    """Factory for standalone ScriptedStreams."""
    return ScriptedStream


@pytest.fixture
def queue_body():
    """Factory for QueueBody streams."""
    return QueueBody
