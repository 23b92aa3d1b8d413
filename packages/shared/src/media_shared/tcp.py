"""
TCP framing for runtime envelopes.

Format:
    [4 bytes: header length big-endian]
    [N bytes: JSON header]
    [M bytes: binary payload (sum of every byteLength in header)]

A BinaryObject inside an envelope is replaced in the header by
{"contentType": ..., "byteLength": ...} and its bytes follow the header,
in header key order.
"""

from __future__ import annotations

import asyncio
import json
import logging
import struct
from typing import Any, Mapping

from .protocol import BinaryObject, ProtocolError

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10.0
SEND_TIMEOUT = 30.0

MAX_HEADER_BYTES = 10_000_000
DEFAULT_MAX_PAYLOAD_BYTES = 64 * 1024 * 1024


class TCPError(Exception):
    """Base Exception for TCP Operations."""
    pass


class ConnectionFailed(TCPError):
    """Raised when connection can't be established."""
    pass

class SendFailed(TCPError):
    """Raised when sending data fails."""
    pass

class RecvFailed(TCPError):
    """Raised when receiving data fails."""
    pass


def encode_frame(msg: Mapping[str, Any]) -> bytes:
    header: dict[str, Any] = {}
    chunks: list[bytes] = []
    for key, value in msg.items():
        if isinstance(value, BinaryObject):
            header[key] = {"contentType": value.content_type, "byteLength": len(value)}
            chunks.append(value.data)
        else:
            header[key] = value
    header_bytes = json.dumps(header).encode("utf-8")
    prefix = struct.pack(">I", len(header_bytes))
    return prefix + header_bytes + b"".join(chunks)


def _binary_fields(header: Mapping[str, Any]) -> list[tuple[str, str, int]]:
    fields = []
    for key, value in header.items():
        if isinstance(value, dict) and "byteLength" in value:
            length = value["byteLength"]
            if not isinstance(length, int) or length < 0:
                raise ProtocolError(f"Invalid byteLength for {key!r}: {length!r}")
            fields.append((key, value.get("contentType") or "application/octet-stream", length))
    return fields


async def read_frame(
    reader: asyncio.StreamReader,
    max_payload: int = DEFAULT_MAX_PAYLOAD_BYTES,
) -> dict[str, Any] | None:
    """Read one envelope. Returns None on a clean EOF between frames."""
    try:
        prefix = await reader.readexactly(4)
    except asyncio.IncompleteReadError as e:
        if not e.partial:
            return None
        raise RecvFailed(f"Connection closed after {len(e.partial)}/4 bytes") from e

    header_len = struct.unpack(">I", prefix)[0]
    if header_len > MAX_HEADER_BYTES:
        raise RecvFailed(f"Header too large: {header_len} bytes")

    try:
        header_bytes = await reader.readexactly(header_len)
        header = json.loads(header_bytes.decode("utf-8"))
        if not isinstance(header, dict):
            raise ProtocolError("Frame header must be a JSON object.")

        fields = _binary_fields(header)
        total = sum(length for _, _, length in fields)
        if total > max_payload:
            raise RecvFailed(f"Payload too large: {total} bytes")

        for key, content_type, length in fields:
            data = await reader.readexactly(length)
            header[key] = BinaryObject(data=data, content_type=content_type)
    except asyncio.IncompleteReadError as e:
        raise RecvFailed(f"Connection closed after {len(e.partial)}/{e.expected} bytes") from e
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise RecvFailed(f"Invalid frame header: {e}") from e

    return header


class StreamConnection:
    """Framed envelopes over an asyncio stream pair."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        max_payload: int = DEFAULT_MAX_PAYLOAD_BYTES,
    ):
        self._reader = reader
        self._writer = writer
        self._max_payload = max_payload
        self._write_lock = asyncio.Lock()
        self.peer = writer.get_extra_info("peername")

    async def send(self, msg: Mapping[str, Any]) -> None:
        frame = encode_frame(msg)
        async with self._write_lock:
            try:
                self._writer.write(frame)
                await asyncio.wait_for(self._writer.drain(), SEND_TIMEOUT)
            except asyncio.TimeoutError as e:
                raise SendFailed(f"Timeout sending to {self.peer}") from e
            except (ConnectionError, OSError) as e:
                raise SendFailed(f"Failed to send to {self.peer}: {e}") from e

    async def receive(self) -> dict[str, Any] | None:
        try:
            return await read_frame(self._reader, self._max_payload)
        except (ConnectionError, OSError) as e:
            raise RecvFailed(f"Failed to receive from {self.peer}: {e}") from e

    async def close(self) -> None:
        if self._writer.is_closing():
            return
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug("Error closing connection to %s: %s", self.peer, e)


async def open_connection(
    host: str,
    port: int,
    max_payload: int = DEFAULT_MAX_PAYLOAD_BYTES,
) -> StreamConnection:
    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port), CONNECT_TIMEOUT
        )
    except asyncio.TimeoutError as e:
        raise ConnectionFailed(f"Timeout connecting to {host}:{port}") from e
    except OSError as e:
        raise ConnectionFailed(f"Failed to connect to {host}:{port}: {e}") from e
    return StreamConnection(reader, writer, max_payload)
