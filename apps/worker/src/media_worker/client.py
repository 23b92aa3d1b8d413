"""
Caller side of the protocol.

RuntimeClient sends request envelopes and resolves one future per request id
when the matching response arrives. Arrival order doesn't matter.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

from media_shared import protocol
from media_shared.tcp import DEFAULT_MAX_PAYLOAD_BYTES, TCPError, open_connection
from media_transcoder import TranscodePipeline

from .channel import Connection, memory_pipe
from .runtime import WorkerRuntime
from .transport import serve_connection

logger = logging.getLogger(__name__)


class ConnectionClosed(ConnectionError):
    """Raised on pending requests when the runtime connection goes away."""
    pass


class RuntimeClient:
    """Correlates responses to requests by id over one connection."""

    def __init__(self, conn: Connection, runtime_task: asyncio.Task | None = None):
        self._conn = conn
        self._runtime_task = runtime_task
        self._pending: dict[str, asyncio.Future] = {}
        self._reader: asyncio.Task | None = None
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._pending)

    def start(self) -> None:
        if self._reader is None:
            self._reader = asyncio.create_task(self._read_responses())

    async def send(self, request: protocol.Request | Mapping[str, Any]) -> asyncio.Future:
        """
        Send a request; the returned future resolves exactly once with its Response.

        Raises ValueError if the message has no id or action, or if the id is
        already outstanding.
        """
        if self._closed:
            raise ConnectionClosed("Client is closed")
        self.start()

        msg = request.to_message() if isinstance(request, protocol.Request) else dict(request)
        request_id = protocol.get_request_id(msg)
        if request_id is None:
            raise ValueError("Request has no id")
        if not protocol.is_request(msg):
            raise ValueError(f"Message {request_id!r} has no action")
        if request_id in self._pending:
            raise ValueError(f"Request id {request_id!r} is already in flight")

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._conn.send(msg)
        except Exception:
            self._pending.pop(request_id, None)
            raise
        return future

    async def request(
        self,
        request: protocol.Request | Mapping[str, Any],
        timeout: float | None = None,
    ) -> protocol.Response:
        """
        Send and wait for the response.

        On timeout the id is forgotten, so a late response is discarded.
        """
        future = await self.send(request)
        try:
            return await asyncio.wait_for(asyncio.shield(future), timeout)
        except asyncio.TimeoutError:
            request_id = protocol.get_request_id(
                request.to_message() if isinstance(request, protocol.Request) else request
            )
            self._forget(request_id, future)
            raise

    def _forget(self, request_id: str | None, future: asyncio.Future) -> None:
        if request_id is not None and self._pending.get(request_id) is future:
            del self._pending[request_id]
        future.cancel()

    async def _read_responses(self) -> None:
        error: BaseException | None = None
        try:
            while True:
                msg = await self._conn.receive()
                if msg is None:
                    break
                self._resolve(msg)
        except (TCPError, protocol.ProtocolError) as e:
            logger.warning("Response stream failed: %s", e)
            error = e
        finally:
            self._fail_pending(error)

    def _resolve(self, msg: dict[str, Any]) -> None:
        if not protocol.is_response(msg):
            logger.debug("Ignoring non-response message")
            return

        request_id = protocol.get_request_id(msg)
        future = self._pending.pop(request_id, None) if request_id else None
        if future is None:
            logger.debug("Discarding response for unknown id %r", request_id)
            return

        try:
            response = protocol.Response.from_message(msg)
        except protocol.ProtocolError as e:
            response = protocol.Response.failure(request_id, f"ProtocolError: {e}")
        if not future.done():
            future.set_result(response)

    def _fail_pending(self, error: BaseException | None) -> None:
        self._closed = True
        pending, self._pending = self._pending, {}
        for request_id, future in pending.items():
            if not future.done():
                exc = ConnectionClosed(f"Connection closed before response to {request_id}")
                if error is not None:
                    exc.__cause__ = error
                future.set_exception(exc)

    async def close(self) -> None:
        """Close the connection and wait for a local runtime to drain."""
        await self._conn.close()
        if self._reader is not None:
            await self._reader
        if self._runtime_task is not None:
            await self._runtime_task

    async def __aenter__(self) -> "RuntimeClient":
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


async def connect(
    host: str,
    port: int,
    max_payload: int = DEFAULT_MAX_PAYLOAD_BYTES,
) -> RuntimeClient:
    """Client for a WorkerServer over TCP."""
    conn = await open_connection(host, port, max_payload)
    client = RuntimeClient(conn)
    client.start()
    return client


def spawn_local(
    pipeline: TranscodePipeline | None = None,
    name: str | None = None,
) -> RuntimeClient:
    """Start an in-process runtime on the running loop and return its client."""
    client_end, runtime_end = memory_pipe()
    runtime = WorkerRuntime(pipeline, name=name)
    task = asyncio.create_task(serve_connection(runtime, runtime_end))
    client = RuntimeClient(client_end, runtime_task=task)
    client.start()
    return client
