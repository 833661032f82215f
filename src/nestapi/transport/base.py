"""Transport abstraction.

The watcher and the client handle only depend on these protocols, so the HTTP
implementation can be replaced (e.g. by an in-memory transport in tests)
without changing client code.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class ByteStream(Protocol):
    """Readable body of an open event stream.

    Implementations:
    - HTTPByteStream: response body of a streaming httpx request
    """

    @property
    def url(self) -> str:
        """Final URL of the stream, after redirects."""
        ...

    async def read(self) -> bytes:
        """Read the next chunk of the body.

        Returns:
            A non-empty chunk, or b"" at EOF

        Raises:
            StreamIOError: If the connection broke
            StreamClosedError: If the stream was closed, including while the read was pending
        """
        ...

    async def aclose(self) -> None:
        """Release the connection. Idempotent."""
        ...


@dataclass
class HTTPResult:
    """Successful (2xx) response to a plain request."""

    status_code: int
    body: bytes
    url: str


@runtime_checkable
class Transport(Protocol):
    """Protocol for issuing requests to the service.

    The transport handles:
    - Redirects (preserving the original request headers)
    - Timeout classification (TransportTimeout)
    - Mapping non-2xx responses to APIError
    """

    async def open_stream(self, url: str) -> ByteStream:
        """Open an event stream at ``url``.

        Raises:
            TransportTimeout: If connecting or waiting for headers timed out
            APIError: If the service answered with a non-2xx status
            TransportError: On other I/O failures or too many redirects
        """
        ...

    async def request(self, method: str, url: str, content: bytes | None = None) -> HTTPResult:
        """Issue a plain request with a JSON body."""
        ...

    async def aclose(self) -> None:
        """Close pooled connections."""
        ...
