"""Event definitions for the watch stream.

Events are notifications received while watching a location. The wire carries
``put``, ``patch``, ``keep-alive``, ``cancel``, ``auth_revoked`` and
``rules_debug`` frames. Heartbeats and rules-debug frames are never delivered
to consumers; ``event_error`` is manufactured by the client when a session
ends unexpectedly.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, TypeAdapter

T = TypeVar("T")


class EventType(str, Enum):
    """All event types known to the client."""

    # Data changes
    PUT = "put"  # New data inserted at path
    PATCH = "patch"  # Data at path updated

    # Server-initiated closure
    CANCEL = "cancel"  # Rules no longer allow reading the location
    AUTH_REVOKED = "auth_revoked"  # The auth credential expired

    # Never delivered
    KEEP_ALIVE = "keep-alive"
    RULES_DEBUG = "rules_debug"

    # Client-side, synthesized when the stream faults
    STREAM_ERROR = "event_error"


TERMINAL_EVENTS = frozenset({EventType.CANCEL, EventType.AUTH_REVOKED, EventType.STREAM_ERROR})


class Event(BaseModel):
    """A notification received while watching a location.

    Example (put):
        {
            "type": "put",
            "path": "/devices/thermostats",
            "data": {"target_temperature_c": 21.5},
            "raw_data": "{\\"path\\": \\"/devices/thermostats\\", ...}"
        }

    Example (synthetic stream error):
        {
            "type": "event_error",
            "error": "stream ended",
            "error_kind": "StreamIOError"
        }
    """

    type: EventType
    path: str | None = None
    data: Any = None
    raw_data: str = ""

    # Only set on event_error
    error: str | None = None
    error_kind: str | None = None

    def is_terminal(self) -> bool:
        """Check if the session ends after this event."""
        return self.type in TERMINAL_EVENTS

    def is_error(self) -> bool:
        return self.type is EventType.STREAM_ERROR

    def value(self, type_: type[T]) -> T:
        """Validate the event payload into ``type_``.

        For put/patch the ``data`` member is re-read from the raw payload so
        the target type sees the exact JSON the server sent.

        Raises:
            pydantic.ValidationError: If the payload does not fit ``type_``
        """
        adapter = TypeAdapter(type_)
        if self.type in (EventType.PUT, EventType.PATCH) and self.raw_data:
            return adapter.validate_python(json.loads(self.raw_data).get("data"))
        return adapter.validate_python(self.data)

    # =========================================================================
    # Factory methods
    # =========================================================================

    @classmethod
    def put(cls, path: str, data: Any, raw_data: str = "") -> Event:
        return cls(type=EventType.PUT, path=path, data=data, raw_data=raw_data)

    @classmethod
    def patch(cls, path: str, data: Any, raw_data: str = "") -> Event:
        return cls(type=EventType.PATCH, path=path, data=data, raw_data=raw_data)

    @classmethod
    def cancel(cls, raw_data: str = "null") -> Event:
        """Create a cancel event (the payload is always null)."""
        return cls(type=EventType.CANCEL, data=None, raw_data=raw_data)

    @classmethod
    def auth_revoked(cls, raw_data: str) -> Event:
        """Create an auth_revoked event carrying the raw payload string."""
        return cls(type=EventType.AUTH_REVOKED, data=raw_data, raw_data=raw_data)

    @classmethod
    def stream_error(cls, exc: BaseException) -> Event:
        """Create the synthetic error event for a session that faulted."""
        return cls(
            type=EventType.STREAM_ERROR,
            error=str(exc) or exc.__class__.__name__,
            error_kind=exc.__class__.__name__,
        )
