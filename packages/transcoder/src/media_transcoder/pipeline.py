"""
Transcode orchestration.

This module composes the codec primitives into the two supported actions:
1. decodeBinary: base64 text -> tagged binary object
2. transcodeImage: image source -> fetch (locators only) -> decode -> scale
   -> encode -> base64 text of the encoded bytes

Each codec step runs in a thread, so every step is a suspension point for
the event loop hosting the pipeline.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path

from media_shared.protocol import (
    BinaryObject,
    DecodeBinaryPayload,
    DecodeResult,
    TranscodeImagePayload,
    TranscodeResult,
)

from . import codec
from .fetch import DEFAULT_FETCH_TIMEOUT, DEFAULT_MAX_FETCH_BYTES, fetch_locator

logger = logging.getLogger(__name__)


class TranscodePipeline:
    """
    Runs decode and transcode requests.

    Instances hold configuration only; no state is carried from one request
    to the next, so one instance can serve interleaved requests.
    """

    def __init__(
        self,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        max_fetch_bytes: int = DEFAULT_MAX_FETCH_BYTES,
        allowed_root: Path | None = None,
        allow_local_files: bool = True,
    ):
        self.fetch_timeout = fetch_timeout
        self.max_fetch_bytes = max_fetch_bytes
        self.allowed_root = allowed_root
        self.allow_local_files = allow_local_files

    async def decode_binary(self, payload: DecodeBinaryPayload) -> DecodeResult:
        data = await asyncio.to_thread(codec.decode_base64, payload.data)
        binary = codec.to_binary_object(data, payload.content_type)
        logger.debug("Decoded %d bytes of %s", len(binary), binary.content_type)
        return DecodeResult(binary=binary)

    async def transcode_image(self, payload: TranscodeImagePayload) -> TranscodeResult:
        started = time.perf_counter()

        source = await self._load_source(payload.source)
        bitmap = await asyncio.to_thread(codec.decode_bitmap, source)
        src_width, src_height = bitmap.size
        try:
            width, height = codec.scale_dimensions(
                src_width, src_height, payload.max_width, payload.max_height
            )
            binary = await asyncio.to_thread(
                codec.encode_bitmap,
                bitmap,
                width,
                height,
                payload.output_format,
                payload.quality,
            )
        finally:
            bitmap.close()

        text = await asyncio.to_thread(binary.to_base64)

        logger.info(
            "Transcoded %s %dx%d -> %s %dx%d (%d bytes) in %.3fs",
            source.content_type, src_width, src_height,
            binary.content_type, width, height, len(binary),
            time.perf_counter() - started,
        )
        return TranscodeResult(binary=binary, text=text)

    async def _load_source(self, source: BinaryObject | str) -> BinaryObject:
        if isinstance(source, BinaryObject):
            return source
        return await fetch_locator(
            source,
            timeout=self.fetch_timeout,
            max_bytes=self.max_fetch_bytes,
            allowed_root=self.allowed_root,
            allow_local_files=self.allow_local_files,
        )
