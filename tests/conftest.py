"""
Shared fixtures for the media transcode test suite.

Images are generated with Pillow on the fly so the suite carries no binary
fixtures.
"""

import asyncio
import base64
import io

import pytest
from PIL import Image

from media_shared.protocol import BinaryObject, DecodeBinaryPayload
from media_transcoder import TranscodePipeline


def make_image_bytes(width, height, fmt="PNG", mode="RGB", color=(200, 40, 40)):
    """Encode a solid-colour image of the given size."""
    if mode == "RGBA" and len(color) == 3:
        color = (*color, 128)
    img = Image.new(mode, (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def open_image(data):
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


class GatedPipeline(TranscodePipeline):
    """Holds each decodeBinary request until its gate (keyed by data) is opened."""

    def __init__(self):
        super().__init__()
        self.gates = {}
        self.started = []

    def gate(self, data):
        return self.gates.setdefault(data, asyncio.Event())

    async def decode_binary(self, payload: DecodeBinaryPayload):
        self.started.append(payload.data)
        await self.gate(payload.data).wait()
        return await super().decode_binary(payload)


@pytest.fixture
def image_factory():
    return make_image_bytes


@pytest.fixture
def png_bytes():
    return make_image_bytes(64, 32)


@pytest.fixture
def png_binary(png_bytes):
    return BinaryObject(data=png_bytes, content_type="image/png")


@pytest.fixture
def png_base64(png_bytes):
    return base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture
def gated_pipeline():
    return GatedPipeline()
