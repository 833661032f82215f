"""nestapi - client for a Firebase-style realtime data API.

Writes values over plain HTTP and watches locations over a long-lived
event stream.
"""

from .channel import EventChannel
from .client import NestAPI
from .config import ClientConfig
from .errors import (
    APIError,
    ChannelClosedError,
    NestAPIError,
    RedirectLimitError,
    StreamClosedError,
    StreamDecodeError,
    StreamError,
    StreamIOError,
    TransportError,
    TransportTimeout,
)
from .protocol.events import Event, EventType
from .watcher import SessionState

__all__ = [
    "APIError",
    "ChannelClosedError",
    "ClientConfig",
    "Event",
    "EventChannel",
    "EventType",
    "NestAPI",
    "NestAPIError",
    "RedirectLimitError",
    "SessionState",
    "StreamClosedError",
    "StreamDecodeError",
    "StreamError",
    "StreamIOError",
    "TransportError",
    "TransportTimeout",
]
