"""Pump envelopes from a connection into a runtime and responses back out."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from media_shared import protocol
from media_shared.tcp import TCPError

from .channel import ChannelClosed, Connection
from .runtime import WorkerRuntime

logger = logging.getLogger(__name__)


async def _serve_one(runtime: WorkerRuntime, conn: Connection, msg: dict[str, Any]) -> None:
    response = await runtime.handle(msg)
    if response is None:
        return
    try:
        await conn.send(response)
    except (ChannelClosed, TCPError) as e:
        logger.warning("%s: could not deliver response %s: %s", runtime.name, response["id"], e)


async def serve_connection(runtime: WorkerRuntime, conn: Connection) -> None:
    """
    Serve requests from conn until it closes.

    Each request gets its own task, so requests interleave wherever the
    pipeline awaits. In-flight requests are drained before the connection
    is closed.
    """
    in_flight: set[asyncio.Task] = set()
    try:
        while True:
            try:
                msg = await conn.receive()
            except (TCPError, protocol.ProtocolError) as e:
                logger.warning("%s: receive failed, closing: %s", runtime.name, e)
                break
            if msg is None:
                break
            if not protocol.is_request(msg):
                logger.debug("%s: ignoring non-request message", runtime.name)
                continue

            task = asyncio.create_task(_serve_one(runtime, conn, msg))
            in_flight.add(task)
            task.add_done_callback(in_flight.discard)
    finally:
        if in_flight:
            logger.debug("%s: draining %d in-flight requests", runtime.name, len(in_flight))
            await asyncio.gather(*in_flight, return_exceptions=True)
        await conn.close()
