"""
Tests for envelope framing over streams.
"""

import asyncio
import json
import struct

import pytest

from media_shared.protocol import BinaryObject
from media_shared.tcp import RecvFailed, encode_frame, read_frame


def _reader_with(data, eof=True):
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    if eof:
        reader.feed_eof()
    return reader


class TestEncodeFrame:
    """Binary objects move out of the JSON header into the payload."""

    def test_header_describes_binary(self):
        frame = encode_frame({"id": "a", "binary": BinaryObject(b"\xff\xd8\xff", "image/jpeg")})
        header_len = struct.unpack(">I", frame[:4])[0]
        header = json.loads(frame[4:4 + header_len])
        assert header == {"id": "a", "binary": {"contentType": "image/jpeg", "byteLength": 3}}
        assert frame[4 + header_len:] == b"\xff\xd8\xff"

    def test_plain_message_has_no_payload(self):
        frame = encode_frame({"id": "a", "error": "nope"})
        header_len = struct.unpack(">I", frame[:4])[0]
        assert len(frame) == 4 + header_len


class TestReadFrame:
    """read_frame restores binary objects and rejects broken frames."""

    @pytest.mark.asyncio
    async def test_reads_consecutive_frames(self):
        first = encode_frame({"id": "a", "data": BinaryObject(b"12345", "image/png"), "action": "x"})
        second = encode_frame({"id": "b", "error": "nope"})
        reader = _reader_with(first + second)

        msg = await read_frame(reader)
        assert msg == {"id": "a", "data": BinaryObject(b"12345", "image/png"), "action": "x"}
        assert await read_frame(reader) == {"id": "b", "error": "nope"}
        assert await read_frame(reader) is None

    @pytest.mark.asyncio
    async def test_truncated_payload(self):
        frame = encode_frame({"id": "a", "binary": BinaryObject(b"123456")})
        with pytest.raises(RecvFailed):
            await read_frame(_reader_with(frame[:-2]))

    @pytest.mark.asyncio
    async def test_truncated_prefix(self):
        with pytest.raises(RecvFailed):
            await read_frame(_reader_with(b"\x00\x00"))

    @pytest.mark.asyncio
    async def test_payload_over_limit(self):
        frame = encode_frame({"id": "a", "binary": BinaryObject(b"x" * 100)})
        with pytest.raises(RecvFailed):
            await read_frame(_reader_with(frame), max_payload=10)

    @pytest.mark.asyncio
    async def test_invalid_json_header(self):
        body = b"{not json"
        with pytest.raises(RecvFailed):
            await read_frame(_reader_with(struct.pack(">I", len(body)) + body))
