"""Closable event channel handed to ``watch()``.

The watcher sends decoded events into the channel and closes it exactly once
when the session ends. Consumers either ``await channel.receive()`` or iterate
with ``async for``.

With the default ``maxsize=0`` the channel is unbuffered: ``send()`` only
returns once a receiver has taken the event, so a slow consumer stalls the
watch loop. A consumer that stops reading before the session ends leaves the
session's cleanup (and the final close) pending indefinitely.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

from .errors import ChannelClosedError

T = TypeVar("T")

_CLOSED = object()


class EventChannel(Generic[T]):
    """Async channel with close semantics.

    Usage:
        channel: EventChannel[Event] = EventChannel()
        await client.watch(channel)
        async for event in channel:
            ...
    """

    def __init__(self, maxsize: int = 0):
        if maxsize < 0:
            raise ValueError("maxsize must be non-negative")
        self.maxsize = maxsize
        # Unbounded internally so close() never blocks; capacity enforced below
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._slots = asyncio.Semaphore(maxsize) if maxsize > 0 else None
        self._closed = False

    @property
    def closed(self) -> bool:
        """True once close() was called (events may still be pending)."""
        return self._closed

    async def send(self, item: T) -> None:
        """Send an item, waiting for a receiver (or a free buffer slot).

        Raises:
            ChannelClosedError: If the channel is closed
        """
        if self._closed:
            raise ChannelClosedError("send on closed channel")

        if self._slots is None:
            self._queue.put_nowait(item)
            # Rendezvous: wait until a receiver has taken it
            await self._queue.join()
        else:
            await self._slots.acquire()
            if self._closed:
                self._slots.release()
                raise ChannelClosedError("send on closed channel")
            self._queue.put_nowait(item)

    def close(self) -> None:
        """Close the channel. Pending items remain receivable.

        Raises:
            ChannelClosedError: If the channel was already closed
        """
        if self._closed:
            raise ChannelClosedError("close of closed channel")
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def receive(self) -> T:
        """Receive the next item.

        Raises:
            ChannelClosedError: Once the channel is closed and drained
        """
        item = await self._queue.get()
        self._queue.task_done()

        if item is _CLOSED:
            # Leave the marker in place for other receivers; it stays counted
            # as one unfinished item
            self._queue.put_nowait(_CLOSED)
            raise ChannelClosedError("channel closed")

        if self._slots is not None:
            self._slots.release()
        return item  # type: ignore[return-value]

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            try:
                item = await self.receive()
            except ChannelClosedError:
                return
            yield item
