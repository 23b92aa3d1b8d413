"""In-process message channels between a caller and a runtime."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Protocol

_CLOSED = object()


class Connection(Protocol):
    """One end of a bidirectional message channel."""

    async def send(self, msg: Mapping[str, Any]) -> None: ...

    async def receive(self) -> dict[str, Any] | None:
        """Next message, or None once the channel is closed."""
        ...

    async def close(self) -> None: ...


class ChannelClosed(ConnectionError):
    """Raised when sending on a closed channel."""
    pass


class QueueConnection:
    """Queue-backed connection end. Create pairs with memory_pipe()."""

    def __init__(self, inbox: asyncio.Queue, outbox: asyncio.Queue):
        self._inbox = inbox
        self._outbox = outbox
        self._closed = False
        self.peer: QueueConnection | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, msg: Mapping[str, Any]) -> None:
        if self._closed or (self.peer is not None and self.peer.closed):
            raise ChannelClosed("Channel is closed")
        await self._outbox.put(dict(msg))

    async def receive(self) -> dict[str, Any] | None:
        if self._closed:
            return None
        item = await self._inbox.get()
        if item is _CLOSED:
            self._closed = True
            return None
        return item

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Wake our own pending receive() and tell the peer.
        self._inbox.put_nowait(_CLOSED)
        self._outbox.put_nowait(_CLOSED)


def memory_pipe() -> tuple[QueueConnection, QueueConnection]:
    """Two linked connection ends: whatever one sends, the other receives."""
    a_to_b: asyncio.Queue = asyncio.Queue()
    b_to_a: asyncio.Queue = asyncio.Queue()
    a = QueueConnection(inbox=b_to_a, outbox=a_to_b)
    b = QueueConnection(inbox=a_to_b, outbox=b_to_a)
    a.peer = b
    b.peer = a
    return a, b
