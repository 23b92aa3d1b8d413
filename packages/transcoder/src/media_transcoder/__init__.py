"""
Media Transcode Engine.

This package is the core decode/resize/re-encode logic.
It is used only by worker runtimes.

Deployment:
    pip install media-transcode

Apart from fetching http(s) locators with aiohttp, this package has no
networking. It's pure image processing on top of Pillow.

"""

from .codec import (
    decode_base64,
    decode_bitmap,
    encode_bitmap,
    scale_dimensions,
    to_binary_object,
)
from .errors import DecodeError, EncodeError, FetchError, SurfaceError, TranscodeError
from .fetch import fetch_locator
from .pipeline import TranscodePipeline

__all__ = [
    "decode_base64",
    "to_binary_object",
    "decode_bitmap",
    "scale_dimensions",
    "encode_bitmap",
    "fetch_locator",
    "TranscodeError",
    "DecodeError",
    "FetchError",
    "SurfaceError",
    "EncodeError",
    "TranscodePipeline",
]
