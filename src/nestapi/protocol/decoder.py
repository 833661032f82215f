"""Decodes raw frames into typed events."""

from __future__ import annotations

import json
import logging

from ..errors import StreamDecodeError
from .events import Event, EventType
from .frames import Frame

logger = logging.getLogger(__name__)

EVENT_PREFIX = "event: "
DATA_PREFIX = "data: "


class EventDecoder:
    """Turns frames into events.

    ``decode()`` returns None for frames that are consumed silently
    (heartbeats and rules-debug output) and raises StreamDecodeError for
    frames the protocol does not define.
    """

    def decode(self, frame: Frame) -> Event | None:
        try:
            event_line = frame.event_line.decode("utf-8")
            data = frame.data_line.decode("utf-8")
        except UnicodeDecodeError as e:
            raise StreamDecodeError(f"Frame is not valid UTF-8: {e}") from e

        type_name = event_line.removeprefix(EVENT_PREFIX).strip()
        data = data.removeprefix(DATA_PREFIX)

        try:
            event_type = EventType(type_name)
        except ValueError:
            raise StreamDecodeError(f"Unrecognized event type: {type_name!r}") from None

        match event_type:
            case EventType.PUT | EventType.PATCH:
                return self._decode_change(event_type, data)
            case EventType.KEEP_ALIVE:
                logger.debug("Received keep-alive")
                return None
            case EventType.CANCEL:
                return Event.cancel(data)
            case EventType.AUTH_REVOKED:
                return Event.auth_revoked(data)
            case EventType.RULES_DEBUG:
                logger.info(f"Rules-Debug: {data}")
                return None
            case EventType.STREAM_ERROR:
                # Client-side only; never valid on the wire
                raise StreamDecodeError(f"Unrecognized event type: {type_name!r}")

    def _decode_change(self, event_type: EventType, data: str) -> Event:
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            raise StreamDecodeError(f"Invalid {event_type.value} payload: {e}") from e

        if not isinstance(payload, dict):
            raise StreamDecodeError(f"Invalid {event_type.value} payload: expected an object")

        path = payload.get("path")
        if not isinstance(path, str):
            raise StreamDecodeError(f"Invalid {event_type.value} payload: missing path")

        return Event(type=event_type, path=path, data=payload.get("data"), raw_data=data)
