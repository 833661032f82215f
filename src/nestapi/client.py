"""Nest API client handle.

A ``NestAPI`` represents one location in the realtime data tree. It writes
values with ``set()`` and watches the location for changes with ``watch()``.

Usage:
    async with NestAPI("https://someapp.firebaseio.com/devices") as ref:
        ref.auth("my-token")
        await ref.child("thermostats/abc").set({"target_temperature_c": 21})

        channel: EventChannel[Event] = EventChannel()
        await ref.watch(channel)
        async for event in channel:
            print(event.type, event.path, event.data)
"""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import urlencode, urlsplit, urlunsplit

import httpx

from .channel import EventChannel
from .config import ClientConfig
from .protocol.events import Event
from .transport.base import ByteStream, Transport
from .transport.http import HTTPTransport
from .watcher import SessionState, WatchController

logger = logging.getLogger(__name__)

AUTH_PARAM = "auth"
JSON_SUFFIX = "/.json"


def sanitize_url(url: str) -> str:
    """Default to https and drop a trailing slash."""
    if not url.startswith(("https://", "http://")):
        url = "https://" + url
    return url.removesuffix("/")


def base_url_from(location: str) -> str:
    """Strip the ``/.json`` suffix, query and fragment from a resource URL."""
    scheme, netloc, path, _, _ = urlsplit(location)
    path = path.split(JSON_SUFFIX, 1)[0]
    return sanitize_url(urlunsplit((scheme, netloc, path, "", "")))


class NestAPI:
    """Reference to a location in the realtime data tree."""

    def __init__(
        self,
        url: str,
        transport: Transport | None = None,
        config: ClientConfig | None = None,
    ):
        self.config = config or ClientConfig()
        self._url = sanitize_url(url)
        self._params: dict[str, str] = {}
        self._owns_transport = transport is None
        self._transport: Transport = transport or HTTPTransport(self.config)
        self._watcher = WatchController(self._open_stream, buffer_size=self.config.line_buffer_size)

    @property
    def url(self) -> str:
        """Base URL of this location (without the ``/.json`` suffix)."""
        return self._url

    @property
    def params(self) -> dict[str, str]:
        return dict(self._params)

    @property
    def watch_state(self) -> SessionState:
        return self._watcher.state

    def __str__(self) -> str:
        path = self._url + JSON_SUFFIX
        if self._params:
            path += "?" + urlencode(sorted(self._params.items()))
        return path

    def __repr__(self) -> str:
        return f"NestAPI({self._url!r})"

    # =========================================================================
    # Auth
    # =========================================================================

    def auth(self, token: str) -> None:
        """Set the token used to authenticate requests."""
        self._params[AUTH_PARAM] = token

    def unauth(self) -> None:
        """Remove the authentication token."""
        self._params.pop(AUTH_PARAM, None)

    # =========================================================================
    # Navigation
    # =========================================================================

    def child(self, path: str) -> NestAPI:
        """Create a reference to ``path`` below this location.

        The child shares the transport and copies the query params; it has its
        own watch session.
        """
        c = NestAPI(f"{self._url}/{path.strip('/')}", transport=self._transport, config=self.config)
        c._params = dict(self._params)
        return c

    # =========================================================================
    # Writes
    # =========================================================================

    async def set(self, value: Any) -> None:
        """Replace the value at this location.

        Raises:
            TypeError: If ``value`` is not JSON serializable
            TransportTimeout: If the request timed out
            APIError: If the service rejected the write
        """
        body = json.dumps(value).encode("utf-8")
        result = await self._transport.request("PUT", str(self), body)
        self._retarget(result.url)

    # =========================================================================
    # Watching
    # =========================================================================

    async def watch(self, channel: EventChannel[Event]) -> None:
        """Watch this location, sending events to ``channel``.

        Only one watch can run at a time; calling this while watching closes
        ``channel`` and returns immediately. See WatchController.watch.
        """
        await self._watcher.watch(channel)

    def stop_watching(self) -> None:
        """Stop the active watch, if any."""
        self._watcher.stop_watching()

    async def _open_stream(self) -> ByteStream:
        stream = await self._transport.open_stream(str(self))
        self._retarget(stream.url)
        return stream

    def _retarget(self, final_url: str) -> None:
        """Follow a redirect permanently by moving the base URL."""
        new_url = base_url_from(final_url)
        # The transport reports normalized URLs (lowercase host, escaped path)
        if httpx.URL(new_url) == httpx.URL(self._url):
            return
        logger.info(f"Redirected from {self._url} to {new_url}")
        self._url = new_url

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def aclose(self) -> None:
        """Stop watching and close the transport if this handle created it."""
        await self._watcher.aclose()
        if self._owns_transport:
            await self._transport.aclose()

    async def __aenter__(self) -> NestAPI:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
