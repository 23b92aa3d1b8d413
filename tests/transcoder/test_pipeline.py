"""
Tests for the transcode pipeline.
"""

import base64

import pytest

from conftest import make_image_bytes, open_image
from media_shared.protocol import (
    BinaryObject,
    DecodeBinaryPayload,
    TranscodeImagePayload,
)
from media_transcoder import TranscodePipeline
from media_transcoder.errors import DecodeError, FetchError, SurfaceError


@pytest.fixture
def pipeline():
    return TranscodePipeline()


class TestDecodeBinary:
    """decodeBinary turns base64 text into a tagged binary object."""

    @pytest.mark.asyncio
    async def test_round_trip(self, pipeline, png_bytes, png_base64):
        result = await pipeline.decode_binary(DecodeBinaryPayload(data=png_base64))
        assert result.binary == BinaryObject(png_bytes, "image/png")
        assert base64.b64encode(result.binary.data).decode() == png_base64

    @pytest.mark.asyncio
    async def test_data_uri_and_content_type(self, pipeline):
        payload = DecodeBinaryPayload(data="data:image/jpeg;base64,AAEC", content_type="image/jpeg")
        result = await pipeline.decode_binary(payload)
        assert result.binary == BinaryObject(b"\x00\x01\x02", "image/jpeg")

    @pytest.mark.asyncio
    async def test_invalid(self, pipeline):
        with pytest.raises(DecodeError):
            await pipeline.decode_binary(DecodeBinaryPayload(data="not*base64"))


class TestTranscodeImage:
    """transcodeImage decodes, scales, re-encodes and base64s the result."""

    @pytest.mark.asyncio
    async def test_wide_image(self, pipeline):
        source = BinaryObject(make_image_bytes(2000, 1000), "image/png")
        result = await pipeline.transcode_image(
            TranscodeImagePayload(source=source, max_width=1200, max_height=1200)
        )
        img = open_image(result.binary.data)
        assert img.size == (1200, 600)
        assert img.format == "JPEG"
        assert result.binary.content_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_tall_image(self, pipeline):
        source = BinaryObject(make_image_bytes(1000, 2000), "image/png")
        result = await pipeline.transcode_image(
            TranscodeImagePayload(source=source, max_width=1200, max_height=900, output_format="png")
        )
        assert open_image(result.binary.data).size == (450, 900)
        assert result.binary.content_type == "image/png"

    @pytest.mark.asyncio
    async def test_text_is_base64_of_binary(self, pipeline, png_binary):
        result = await pipeline.transcode_image(
            TranscodeImagePayload(source=png_binary, max_width=16, max_height=16, output_format="webp")
        )
        assert base64.b64decode(result.text) == result.binary.data

    @pytest.mark.asyncio
    async def test_data_uri_locator(self, pipeline, png_binary):
        result = await pipeline.transcode_image(
            TranscodeImagePayload(source=png_binary.to_data_uri(), max_width=32, max_height=32)
        )
        assert open_image(result.binary.data).size == (32, 16)

    @pytest.mark.asyncio
    async def test_file_locator(self, tmp_path, png_bytes):
        path = tmp_path / "in.png"
        path.write_bytes(png_bytes)
        pipeline = TranscodePipeline(allowed_root=tmp_path)
        result = await pipeline.transcode_image(
            TranscodeImagePayload(source=str(path), max_width=100, max_height=100, output_format="png")
        )
        assert open_image(result.binary.data).size == (64, 32)

    @pytest.mark.asyncio
    async def test_missing_locator(self, pipeline, tmp_path):
        with pytest.raises(FetchError):
            await pipeline.transcode_image(
                TranscodeImagePayload(source=str(tmp_path / "gone.png"), max_width=10, max_height=10)
            )

    @pytest.mark.asyncio
    async def test_malformed_image(self, pipeline):
        with pytest.raises(DecodeError):
            await pipeline.transcode_image(
                TranscodeImagePayload(source=BinaryObject(b"garbage"), max_width=10, max_height=10)
            )

    @pytest.mark.asyncio
    async def test_scaled_to_nothing(self, pipeline):
        source = BinaryObject(make_image_bytes(1, 400), "image/png")
        with pytest.raises(SurfaceError):
            await pipeline.transcode_image(
                TranscodeImagePayload(source=source, max_width=100, max_height=100)
            )
