"""
Wire - Event streaming channel for one run.

A Wire is used in two places:

- as a run's outward Event Sink (StreamEvents read by the transport layer)
- as a graph feed (GraphEvents read by the AgentRunEngine that owns the run)

Design:
- One Wire per run, never shared as a global bus
- Passed explicitly to the components that write to it
- A nested run writes to its own Wire; the Subagent Executor relays copies
  of its events to the parent, wrapped in subagent_data envelopes

Usage:
    wire = Wire()
    task = asyncio.create_task(engine.run(query, history, tools, prompt))

    async for event in wire.read(heartbeat=30.0):
        yield event.to_ndjson()
"""

import asyncio
from typing import Any, AsyncIterator

from sleuth.domain.events import create_ping_event


class Wire:
    """
    Event streaming channel.

    Wire is a simple wrapper around asyncio.Queue that provides:
    - write(): Put an event into the channel
    - read(): Async iterate over events until closed
    - close(): Signal that no more events will be written

    Supports multiple concurrent writers on one event loop.
    """

    # Sentinel value to signal end of stream
    _SENTINEL = object()

    def __init__(self, maxsize: int = 0):
        """
        Initialize Wire.

        Args:
            maxsize: Maximum queue size (0 = unlimited)
        """
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    async def write(self, event: Any) -> None:
        """
        Write an event to the wire.

        Writes after close are ignored.
        """
        if self._closed:
            return
        await self._queue.put(event)

    def write_nowait(self, event: Any) -> None:
        """Write an event without waiting (non-blocking)."""
        if self._closed:
            return
        self._queue.put_nowait(event)

    async def close(self) -> None:
        """
        Close the wire, signaling no more events will be written.

        This puts a sentinel value in the queue to stop readers.
        """
        if self._closed:
            return
        self._closed = True
        await self._queue.put(self._SENTINEL)

    async def read(self, heartbeat: float | None = None) -> AsyncIterator[Any]:
        """
        Read events from the wire until closed.

        Args:
            heartbeat: When set, yield a ping event after every ``heartbeat``
                seconds without traffic. Pings stop as soon as the wire closes.

        Yields:
            Events written to the wire, in write order
        """
        while True:
            if heartbeat is None:
                item = await self._queue.get()
            else:
                try:
                    item = await asyncio.wait_for(self._queue.get(), timeout=heartbeat)
                except asyncio.TimeoutError:
                    if self._closed and self._queue.empty():
                        break
                    yield create_ping_event()
                    continue

            if item is self._SENTINEL:
                # Re-put sentinel for other readers (if any)
                self._queue.put_nowait(self._SENTINEL)
                break
            yield item

    @property
    def closed(self) -> bool:
        """Check if wire is closed."""
        return self._closed

    def __repr__(self) -> str:
        return f"Wire(closed={self._closed}, qsize={self._queue.qsize()})"


__all__ = ["Wire"]
