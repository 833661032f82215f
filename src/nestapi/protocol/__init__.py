"""Watch stream protocol: frames in, typed events out."""

from .decoder import EventDecoder
from .events import TERMINAL_EVENTS, Event, EventType
from .frames import Frame, FrameReader, LineReader

__all__ = [
    "Event",
    "EventDecoder",
    "EventType",
    "Frame",
    "FrameReader",
    "LineReader",
    "TERMINAL_EVENTS",
]
