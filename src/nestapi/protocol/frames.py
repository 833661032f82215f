"""Frame reader for the event stream.

Wire format (one frame):
    event: put
    data: {"path": "/", "data": {"foo": "bar"}}
    <blank line>

A single data line carries a whole change notification and has no size limit,
so lines are read through a bounded buffer in continuation fragments and
concatenated.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import StreamIOError
from ..transport.base import ByteStream

DEFAULT_BUFFER_SIZE = 4096


@dataclass(frozen=True)
class Frame:
    """One event/data pair, with line terminators removed."""

    event_line: bytes
    data_line: bytes


class LineReader:
    """Buffered line reader that may return partial lines.

    ``read_line()`` returns at most ``buffer_size`` bytes. When the logical line
    is longer, the fragment is returned with ``more=True`` and the rest follows
    on subsequent calls.
    """

    def __init__(self, stream: ByteStream, buffer_size: int = DEFAULT_BUFFER_SIZE):
        if buffer_size < 16:
            raise ValueError("buffer_size must be at least 16 bytes")
        self._stream = stream
        self._buffer_size = buffer_size
        self._buf = bytearray()

    async def read_line(self) -> tuple[bytes, bool]:
        """Read one line or line fragment.

        Returns:
            (fragment, more) where ``more`` is True if the line continues

        Raises:
            StreamIOError: On EOF or a broken stream. Buffered partial data is discarded.
        """
        while True:
            newline = self._buf.find(b"\n", 0, self._buffer_size)
            if newline >= 0:
                line = bytes(self._buf[:newline])
                del self._buf[: newline + 1]
                if line.endswith(b"\r"):
                    line = line[:-1]
                return line, False

            if len(self._buf) >= self._buffer_size:
                cut = self._buffer_size
                # Keep a trailing \r with its \n
                if self._buf[cut - 1] == 0x0D:
                    cut -= 1
                fragment = bytes(self._buf[:cut])
                del self._buf[:cut]
                return fragment, True

            chunk = await self._stream.read()
            if not chunk:
                self._buf.clear()
                raise StreamIOError("stream ended")
            self._buf.extend(chunk)


class FrameReader:
    """Groups stream lines into 3-line frames."""

    def __init__(self, stream: ByteStream, buffer_size: int = DEFAULT_BUFFER_SIZE):
        self._lines = LineReader(stream, buffer_size)

    async def read_frame(self) -> Frame:
        """Read the next frame.

        One event-line read, data-line reads concatenated until a complete
        line, then one blank-line read that is discarded. Any read error
        propagates and the partial frame is dropped.
        """
        event_line = await self._read_logical_line()

        parts: list[bytes] = []
        more = True
        while more:
            fragment, more = await self._lines.read_line()
            parts.append(fragment)
        data_line = b"".join(parts)

        await self._read_logical_line()

        return Frame(event_line=event_line, data_line=data_line)

    async def _read_logical_line(self) -> bytes:
        line, more = await self._lines.read_line()
        if not more:
            return line
        parts = [line]
        while more:
            line, more = await self._lines.read_line()
            parts.append(line)
        return b"".join(parts)
