"""HTTP transport built on httpx.

Handles:
- Redirect following with the original request headers preserved
- Classifying dial and response-header timeouts as TransportTimeout
- Mapping non-2xx responses to APIError
- Streaming bodies with no read timeout (the watch stream is long-lived)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

import httpx

from ..config import ClientConfig
from ..errors import (
    APIError,
    RedirectLimitError,
    StreamClosedError,
    StreamIOError,
    TransportError,
    TransportTimeout,
)
from .base import HTTPResult

logger = logging.getLogger(__name__)

EVENT_STREAM = "text/event-stream"
JSON_CONTENT = "application/json"

# Method-preserving redirects
REDIRECT_STATUSES = frozenset({307, 308})

# Recomputed for every hop
_HOP_HEADERS = frozenset({"host", "content-length"})

# httpcore trace event (http11 or http2 prefix) fired once the request is sent
REQUEST_WRITTEN = "send_request_body.complete"


class HTTPByteStream:
    """Body of a streaming response.

    ``aclose()`` may be called from another task while ``read()`` is pending;
    the pending read then fails with StreamClosedError right away instead of
    waiting for the next chunk.
    """

    def __init__(self, response: httpx.Response):
        self._response = response
        self._chunks = response.aiter_bytes()
        self._pending: asyncio.Task[bytes] | None = None
        self._closed = False

    @property
    def url(self) -> str:
        return str(self._response.url)

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self) -> bytes:
        if self._closed:
            raise StreamClosedError("read on closed stream")

        self._pending = asyncio.ensure_future(self._next_chunk())
        try:
            return await self._pending
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if self._closed and not (task is not None and task.cancelling()):
                raise StreamClosedError("stream closed during read") from None
            raise
        finally:
            self._pending = None

    async def _next_chunk(self) -> bytes:
        try:
            return await anext(self._chunks, b"")
        except httpx.StreamClosed as e:
            raise StreamClosedError("stream closed during read") from e
        except httpx.HTTPError as e:
            raise StreamIOError(f"Stream read failed: {e}") from e

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True

        pending = self._pending
        if pending is not None and not pending.done():
            pending.cancel()
            await asyncio.wait({pending})

        with contextlib.suppress(httpx.HTTPError):
            await self._chunks.aclose()
            await self._response.aclose()


class HTTPTransport:
    """Transport over HTTP using an httpx.AsyncClient.

    The client is created from config unless one is injected (e.g. with an
    ``httpx.MockTransport`` in tests); injected clients are not closed by
    ``aclose()``.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.config = config or ClientConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.dial_timeout, read=None),  # No read timeout for SSE
            limits=httpx.Limits(keepalive_expiry=self.config.keep_alive_timeout),
        )

    async def open_stream(self, url: str) -> HTTPByteStream:
        """Open the event stream at ``url``."""
        request = self._client.build_request("GET", url, headers={"Accept": EVENT_STREAM})
        response = await self._send(request)

        if not response.is_success:
            raise await self._api_error(response)

        logger.debug(f"Event stream open at {response.url}")
        return HTTPByteStream(response)

    async def request(self, method: str, url: str, content: bytes | None = None) -> HTTPResult:
        """Issue a plain request and read the whole response."""
        headers = {"Content-Type": JSON_CONTENT} if content is not None else {}
        request = self._client.build_request(method, url, headers=headers, content=content)
        response = await self._send(request)

        if not response.is_success:
            raise await self._api_error(response)

        try:
            body = await response.aread()
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to read response from {response.url}: {e}") from e
        finally:
            await response.aclose()

        return HTTPResult(status_code=response.status_code, body=body, url=str(response.url))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _send(self, request: httpx.Request) -> httpx.Response:
        """Send ``request``, following redirects with its headers preserved.

        Returns the first non-redirect response, with the body not yet read.
        """
        headers = {k: v for k, v in request.headers.items() if k.lower() not in _HOP_HEADERS}
        content = request.content if request.method not in ("GET", "HEAD") else None
        hops = 0

        while True:
            response = await self._send_once(request)
            if response.status_code not in REDIRECT_STATUSES:
                return response

            location = response.headers.get("location")
            await response.aclose()
            if not location:
                raise TransportError(f"Redirect {response.status_code} without a Location header")

            hops += 1
            if hops > self.config.max_redirects:
                raise RedirectLimitError(hops)

            target = request.url.join(location)
            logger.debug(f"Following {response.status_code} redirect to {target}")
            request = self._client.build_request(
                request.method, target, headers=headers, content=content
            )

    async def _send_once(self, request: httpx.Request) -> httpx.Response:
        """Send one request and wait for its response headers.

        httpx has no response-header deadline of its own. The send starts under
        the dial deadline; once the connection reports the request as written
        (httpcore trace events), the deadline moves to
        ``response_header_timeout`` from that moment.
        """
        loop = asyncio.get_running_loop()
        header_timeout = self.config.response_header_timeout
        phase = "connecting to"

        try:
            async with asyncio.timeout(self.config.dial_timeout) as deadline:

                async def trace(event_name: str, info: dict) -> None:
                    nonlocal phase
                    if event_name.endswith(REQUEST_WRITTEN):
                        phase = "waiting for response headers from"
                        deadline.reschedule(loop.time() + header_timeout)

                request.extensions["trace"] = trace
                return await self._client.send(request, stream=True, follow_redirects=False)
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout contacting {request.url}: {e}")
            raise TransportTimeout() from e
        except TimeoutError as e:
            logger.warning(f"Timed out {phase} {request.url}")
            raise TransportTimeout() from e
        except httpx.TransportError as e:
            raise TransportError(f"Request to {request.url} failed: {e}") from e

    async def _api_error(self, response: httpx.Response) -> APIError:
        try:
            body = await response.aread()
        except httpx.HTTPError:
            body = b""
        finally:
            await response.aclose()
        return APIError.from_body(body, status_code=response.status_code)
