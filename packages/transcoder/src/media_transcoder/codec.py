"""
Codec primitives for the transcode pipeline.

Every function here is pure and synchronous:
1. Base64 text -> bytes
2. Bytes -> tagged BinaryObject
3. BinaryObject -> decoded bitmap
4. Source size + bounds -> scaled size (width clamp, then height clamp)
5. Bitmap -> offscreen surface -> encoded BinaryObject

The pipeline runs the heavy ones off the event loop.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import math
import struct

from PIL import Image, ImageOps, UnidentifiedImageError

from media_shared.protocol import DEFAULT_CONTENT_TYPE, MIME_TYPES, BinaryObject

from .errors import DecodeError, EncodeError, SurfaceError

logger = logging.getLogger(__name__)

PIL_FORMATS: dict[str, str] = {
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
}

MAX_SURFACE_DIMENSION = 16_384
MAX_SURFACE_PIXELS = 268_435_456

JPEG_BACKGROUND = (255, 255, 255)


def strip_data_uri(text: str) -> str:
    """Drop everything up to and including the first comma, if any."""
    if "," in text:
        return text.split(",", 1)[1]
    return text


def decode_base64(text: str) -> bytes:
    """
    Decode base64 text, optionally prefixed by a data-URI header.

    Whitespace is ignored and missing padding is tolerated, as in the
    browser's forgiving decoder. Anything else that is not standard base64
    raises DecodeError.
    """
    if not isinstance(text, str):
        raise DecodeError(f"Expected base64 text, got {type(text).__name__}")

    body = "".join(strip_data_uri(text).split())
    if "=" in body:
        # Padding that is present must be complete and trailing.
        unpadded = body.rstrip("=")
        if "=" in unpadded or len(body) - len(unpadded) > 2 or len(body) % 4:
            raise DecodeError("Invalid base64: bad padding")
    else:
        remainder = len(body) % 4
        if remainder == 1:
            raise DecodeError("Invalid base64: truncated input")
        if remainder:
            body += "=" * (4 - remainder)

    try:
        return base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid base64: {e}") from e


def to_binary_object(data: bytes, content_type: str | None = None) -> BinaryObject:
    return BinaryObject(data=data, content_type=content_type or DEFAULT_CONTENT_TYPE)


def decode_bitmap(binary: BinaryObject) -> Image.Image:
    """
    Decode image bytes into an in-memory bitmap.

    Only the first frame of animated images is kept. EXIF orientation is
    applied so width/height are the displayed size.

    Raises DecodeError on empty, malformed or oversized image data.
    """
    if not binary.data:
        raise DecodeError("Empty image data")

    try:
        with Image.open(io.BytesIO(binary.data)) as img:
            img.load()
            bitmap = ImageOps.exif_transpose(img)
    except Image.DecompressionBombError as e:
        raise DecodeError(f"Image too large: {e}") from e
    except UnidentifiedImageError as e:
        raise DecodeError(f"Unrecognized image data ({binary.content_type})") from e
    except (OSError, ValueError, SyntaxError, struct.error) as e:
        raise DecodeError(f"Malformed image data: {e}") from e

    has_alpha = bitmap.mode in ("RGBA", "LA", "PA") or (
        bitmap.mode == "P" and "transparency" in bitmap.info
    )
    bitmap = bitmap.convert("RGBA" if has_alpha else "RGB")

    logger.debug("Decoded %s bitmap %dx%d", binary.content_type, bitmap.width, bitmap.height)
    return bitmap


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def scale_dimensions(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """
    Clamp width first, then clamp height using the already adjusted height.

    This is not an optimal fit inside the box: a source over both bounds can
    end up further under one bound than a joint scale factor would give.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Source size must be positive, got {width}x{height}")
    if max_width <= 0 or max_height <= 0:
        raise ValueError(f"Bounds must be positive, got {max_width}x{max_height}")

    if width > max_width:
        height = _round_half_up(height * (max_width / width))
        width = max_width
    if height > max_height:
        width = _round_half_up(width * (max_height / height))
        height = max_height

    return width, height


def _pillow_quality(quality: float) -> int:
    return max(1, min(100, _round_half_up(quality * 100)))


def new_surface(width: int, height: int, output_format: str) -> Image.Image:
    """Allocate an offscreen raster surface. JPEG surfaces are opaque."""
    if width < 1 or height < 1:
        raise SurfaceError(f"Cannot allocate a {width}x{height} surface")
    if max(width, height) > MAX_SURFACE_DIMENSION or width * height > MAX_SURFACE_PIXELS:
        raise SurfaceError(f"Surface {width}x{height} exceeds the raster limits")

    try:
        if output_format == "jpeg":
            return Image.new("RGB", (width, height), JPEG_BACKGROUND)
        return Image.new("RGBA", (width, height), (0, 0, 0, 0))
    except (ValueError, MemoryError) as e:
        raise SurfaceError(f"Cannot allocate a {width}x{height} surface: {e}") from e


def encode_bitmap(
    bitmap: Image.Image,
    width: int,
    height: int,
    output_format: str = "jpeg",
    quality: float = 0.8,
) -> BinaryObject:
    """
    Draw bitmap scaled to width x height onto a fresh surface and encode it.

    Raises:
        SurfaceError: If the surface can't be allocated or drawn
        EncodeError: If the codec rejects the format, quality or content
    """
    if output_format not in PIL_FORMATS:
        raise EncodeError(f"Unsupported output format: {output_format!r}")
    if not 0.0 < quality <= 1.0:
        raise EncodeError(f"Quality must be within (0, 1], got {quality!r}")

    surface = new_surface(width, height, output_format)

    try:
        drawn = bitmap
        if drawn.size != (width, height):
            drawn = drawn.resize((width, height), Image.Resampling.LANCZOS)

        if output_format == "jpeg":
            if drawn.mode == "RGBA":
                surface.paste(drawn, (0, 0), drawn)
            else:
                surface.paste(drawn.convert("RGB"), (0, 0))
        else:
            surface.alpha_composite(drawn.convert("RGBA"))
    except (ValueError, MemoryError) as e:
        raise SurfaceError(f"Failed to draw onto {width}x{height} surface: {e}") from e

    options: dict[str, object] = {}
    if output_format in ("jpeg", "webp"):
        options["quality"] = _pillow_quality(quality)

    buf = io.BytesIO()
    try:
        surface.save(buf, format=PIL_FORMATS[output_format], **options)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"{output_format} encoder rejected the image: {e}") from e

    data = buf.getvalue()
    if not data:
        raise EncodeError(f"{output_format} encoder produced no output")

    logger.debug(
        "Encoded %dx%d %s at quality %.2f: %d bytes",
        width, height, output_format, quality, len(data),
    )
    return BinaryObject(data=data, content_type=MIME_TYPES[output_format])
