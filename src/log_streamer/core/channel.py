"""Cancellation context and the message channel shared by producer and handler.

A requestor produces messages in its own task and feeds them into a
:class:`MessageChannel`; the handler consumes them. Closing the channel is the
producer's way of saying "no more messages"; cancelling the
:class:`QueryContext` is the consumer's way of saying "stop producing".
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from ..config import resolve_channel_size
from .models import LogMessage

_CLOSED = object()


class QueryContext:
    """Cancellable execution context bound to one log request."""

    def __init__(self) -> None:
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Ask the producer to stop. Safe to call more than once."""
        self._cancelled.set()

    async def wait(self) -> None:
        """Block until the context is cancelled."""
        await self._cancelled.wait()


class MessageChannel:
    """Closable, bounded FIFO of log messages.

    Parameters
    ----------
    ctx:
        Context of the request the channel serves. Once it is cancelled,
        ``send`` drops messages instead of waiting for room.
    maxsize:
        Capacity before ``send`` waits. Defaults to ``LOG_STREAMER_CHANNEL_SIZE``
        (or 64).
    """

    def __init__(self, ctx: QueryContext, maxsize: int | None = None) -> None:
        self._ctx = ctx
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=resolve_channel_size(maxsize))
        self._closed = False
        # Set when close() found the queue full; the end marker is queued as
        # soon as a receive makes room.
        self._close_pending = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, message: LogMessage) -> bool:
        """Enqueue a message. Return False if it was dropped (closed or cancelled)."""
        if self._closed or self._ctx.cancelled:
            return False
        if not self._queue.full():
            self._queue.put_nowait(message)
            return True

        put = asyncio.ensure_future(self._queue.put(message))
        cancelled = asyncio.ensure_future(self._ctx.wait())
        try:
            await asyncio.wait({put, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (put, cancelled):
                if not task.done():
                    task.cancel()
        return put.done() and not put.cancelled()

    def close(self) -> None:
        """Mark the end of the stream. Already queued messages are still delivered."""
        if self._closed:
            return
        self._closed = True
        if self._queue.full():
            self._close_pending = True
        else:
            self._queue.put_nowait(_CLOSED)

    async def receive(self) -> LogMessage | None:
        """Return the next message, or None once the channel is closed and drained."""
        item = await self._queue.get()
        if self._close_pending and not self._queue.full():
            self._close_pending = False
            self._queue.put_nowait(_CLOSED)
        if item is _CLOSED:
            # Keep the marker so later receives also see the end.
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    async def __aiter__(self) -> AsyncIterator[LogMessage]:
        while True:
            message = await self.receive()
            if message is None:
                return
            yield message
