"""Watch controller - one event-stream session per client handle.

Each successful ``watch()`` starts a session with two tasks:
- the forward loop: reads frames, decodes them and sends events to the
  caller's channel
- the stop listener: waits for the session's cancellation token, then closes
  the stream, which makes a pending read fail immediately

A session ends in one of three ways:
- fault (decode or I/O error): one synthetic ``event_error`` is sent, then
  the channel is closed
- server closure (``cancel`` / ``auth_revoked``): that event is sent, then the
  channel is closed
- caller stop (``stop_watching()``): the read error caused by closing the
  stream is swallowed and the channel is closed

The close reason is carried by the token itself (first writer wins), so the
loop and the listener always agree on which of these happened.

State transitions happen in synchronous code on the event loop, with no await
between a check and the matching update. Controllers are not thread-safe.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .channel import EventChannel
from .errors import ChannelClosedError, StreamError
from .protocol.decoder import EventDecoder
from .protocol.events import Event
from .protocol.frames import DEFAULT_BUFFER_SIZE, FrameReader
from .transport.base import ByteStream

logger = logging.getLogger(__name__)

StreamOpener = Callable[[], Awaitable[ByteStream]]


class SessionState(str, Enum):
    """Watch session state machine: idle -> watching -> closing -> idle."""

    IDLE = "idle"
    WATCHING = "watching"
    CLOSING = "closing"


class CloseReason(str, Enum):
    """Why a session ended."""

    CALLER = "caller"  # stop_watching() or teardown
    SERVER = "server"  # cancel / auth_revoked delivered
    FAULT = "fault"  # decode or I/O error


class CancellationToken:
    """One-shot cancellation signal carrying the close reason.

    Only the first ``cancel()`` takes effect; later calls return False and
    leave the reason unchanged.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: CloseReason | None = None

    @property
    def reason(self) -> CloseReason | None:
        return self._reason

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    def cancel(self, reason: CloseReason) -> bool:
        """Signal the token. Returns True if this call set the reason."""
        if self._reason is not None:
            return False
        self._reason = reason
        self._event.set()
        return True

    async def wait(self) -> CloseReason:
        await self._event.wait()
        assert self._reason is not None
        return self._reason


@dataclass(eq=False)
class WatchSession:
    """State of one watch, from stream open to channel close."""

    channel: EventChannel[Event]
    id: str = field(default_factory=lambda: f"watch_{uuid.uuid4().hex[:8]}")
    state: SessionState = SessionState.WATCHING
    token: CancellationToken = field(default_factory=CancellationToken)
    stream: ByteStream | None = None
    reader_task: asyncio.Task[None] | None = None
    listener_task: asyncio.Task[None] | None = None


class WatchController:
    """Manages at most one watch session at a time."""

    def __init__(
        self,
        open_stream: StreamOpener,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        decoder: EventDecoder | None = None,
    ):
        self._open_stream = open_stream
        self._buffer_size = buffer_size
        self._decoder = decoder or EventDecoder()
        self._session: WatchSession | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._sessions: set[WatchSession] = set()

    @property
    def state(self) -> SessionState:
        """State of the attached session, or idle."""
        return self._session.state if self._session is not None else SessionState.IDLE

    @property
    def is_watching(self) -> bool:
        return self.state is SessionState.WATCHING

    async def watch(self, channel: EventChannel[Event]) -> None:
        """Start watching and forward events to ``channel``.

        Returns once the stream is open. Errors after that are delivered on
        the channel as ``event_error`` events, never raised here.

        If a session is already attached, ``channel`` is closed right away and
        the running session is left untouched.

        Raises:
            TransportTimeout, APIError, TransportError: If the stream could not
                be opened. No session is started and ``channel`` is left open.
        """
        if self._session is not None:
            logger.debug("Already watching; closing the new channel")
            channel.close()
            return

        # Attach before the first await so a concurrent watch() sees it
        session = WatchSession(channel=channel)
        self._session = session

        try:
            stream = await self._open_stream()
        except BaseException:
            if self._session is session:
                self._session = None
            session.state = SessionState.IDLE
            raise

        session.stream = stream
        self._sessions.add(session)
        session.listener_task = self._spawn(self._listen_for_stop(session))
        session.reader_task = self._spawn(self._forward(session))
        logger.info(f"Watch {session.id} started on {stream.url}")

    def stop_watching(self) -> None:
        """Stop the active session. No-op when not watching; never blocks.

        The channel is closed once the forward loop exits, which requires the
        consumer to keep receiving until then.
        """
        session = self._session
        if session is None or session.state is not SessionState.WATCHING:
            return

        session.token.cancel(CloseReason.CALLER)
        session.state = SessionState.CLOSING
        self._session = None
        logger.info(f"Watch {session.id} stopped by caller")

    async def wait_closed(self) -> None:
        """Wait until every session's tasks have finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Stop watching and tear down all session tasks.

        Forward loops are cancelled even if blocked on a consumer that stopped
        receiving. Stop listeners finish on their own and close the streams.
        """
        self.stop_watching()
        for session in list(self._sessions):
            if session.reader_task is not None:
                session.reader_task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)

        # Forward loops cancelled before their first step never ran their cleanup
        for session in list(self._sessions):
            self._finish(session)

    # -------------------------------------------------------------------------
    # Session tasks
    # -------------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _listen_for_stop(self, session: WatchSession) -> None:
        """Close the stream once the token fires, for any reason."""
        assert session.stream is not None
        try:
            reason = await session.token.wait()
            logger.debug(f"Watch {session.id}: closing stream ({reason.value})")
        finally:
            await session.stream.aclose()

    async def _forward(self, session: WatchSession) -> None:
        try:
            failure = await self._pump(session)
            if failure is not None:
                if session.token.cancel(CloseReason.FAULT):
                    session.state = SessionState.CLOSING
                    logger.warning(f"Watch {session.id} failed: {failure}")
                    await session.channel.send(Event.stream_error(failure))
                else:
                    logger.debug(f"Watch {session.id}: ignoring {failure!r} after stop")
        finally:
            self._finish(session)

    def _finish(self, session: WatchSession) -> None:
        """Close the channel and detach ``session``."""
        if session not in self._sessions:
            return
        session.token.cancel(CloseReason.CALLER)
        session.state = SessionState.CLOSING
        if not session.channel.closed:
            session.channel.close()
        if self._session is session:
            self._session = None
        self._sessions.discard(session)
        session.state = SessionState.IDLE
        logger.debug(f"Watch {session.id} closed ({session.token.reason})")

    async def _pump(self, session: WatchSession) -> Exception | None:
        """Forward events until the stream ends.

        Returns:
            The error that ended the stream, or None for a server closure
        """
        assert session.stream is not None
        frames = FrameReader(session.stream, self._buffer_size)

        try:
            while True:
                frame = await frames.read_frame()
                event = self._decoder.decode(frame)
                if event is None:
                    continue

                await session.channel.send(event)

                if event.is_terminal():
                    if session.token.cancel(CloseReason.SERVER):
                        session.state = SessionState.CLOSING
                        logger.info(f"Watch {session.id} closed by server ({event.type.value})")
                    return None

        except StreamError as e:
            return e
        except ChannelClosedError:
            logger.warning(f"Watch {session.id}: consumer closed the channel")
            session.token.cancel(CloseReason.CALLER)
            return None
        except Exception as e:
            logger.exception(f"Unexpected error in watch {session.id}")
            return e
