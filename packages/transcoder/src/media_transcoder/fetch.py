"""
Locator fetching for transcode sources.

A locator is a string naming image content that isn't sent inline:
    data:image/png;base64,...   decoded in place
    http(s)://...               fetched with aiohttp
    file:///... or a path       read from disk off the event loop
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from urllib.parse import unquote, unquote_to_bytes, urlparse

import aiohttp

from media_shared.files import guess_content_type, is_in_dir
from media_shared.protocol import BinaryObject

from .codec import decode_base64
from .errors import DecodeError, FetchError

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 30.0
DEFAULT_MAX_FETCH_BYTES = 50 * 1024 * 1024
DATA_URI_DEFAULT_TYPE = "text/plain"


def parse_data_uri(locator: str) -> BinaryObject:
    """Decode a data: URI into a BinaryObject."""
    header, sep, body = locator[len("data:"):].partition(",")
    if not sep:
        raise DecodeError("Malformed data URI: missing ','")

    params = [p.strip() for p in header.split(";")]
    is_base64 = bool(params) and params[-1].lower() == "base64"
    if is_base64:
        params = params[:-1]
    content_type = params[0] if params and params[0] else DATA_URI_DEFAULT_TYPE

    if is_base64:
        data = decode_base64(body)
    else:
        data = unquote_to_bytes(body)
    return BinaryObject(data=data, content_type=content_type)


async def _fetch_http(locator: str, timeout: float, max_bytes: int) -> BinaryObject:
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    try:
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.get(locator) as resp:
                if not 200 <= resp.status < 300:
                    raise FetchError(locator, f"HTTP {resp.status}", status=resp.status)
                if resp.content_length is not None and resp.content_length > max_bytes:
                    raise FetchError(locator, f"Body too large: {resp.content_length} bytes")

                chunks: list[bytes] = []
                received = 0
                async for chunk in resp.content.iter_chunked(64 * 1024):
                    received += len(chunk)
                    if received > max_bytes:
                        raise FetchError(locator, f"Body larger than {max_bytes} bytes")
                    chunks.append(chunk)

                content_type = resp.content_type or "application/octet-stream"
                return BinaryObject(data=b"".join(chunks), content_type=content_type)
    except asyncio.TimeoutError as e:
        raise FetchError(locator, f"Timed out after {timeout}s") from e
    except aiohttp.ClientError as e:
        raise FetchError(locator, f"{type(e).__name__}: {e}") from e


def _read_file(locator: str, path: Path, max_bytes: int, allowed_root: Path | None) -> bytes:
    if allowed_root is not None and not is_in_dir(allowed_root, path):
        raise FetchError(locator, "Path is outside the allowed root")
    if not path.is_file():
        raise FetchError(locator, "No such file")
    try:
        size = path.stat().st_size
        if size > max_bytes:
            raise FetchError(locator, f"File too large: {size} bytes")
        return path.read_bytes()
    except OSError as e:
        raise FetchError(locator, f"Unreadable file: {e}") from e


async def _fetch_file(
    locator: str,
    path: Path,
    max_bytes: int,
    allowed_root: Path | None,
) -> BinaryObject:
    data = await asyncio.to_thread(_read_file, locator, path, max_bytes, allowed_root)
    return BinaryObject(data=data, content_type=guess_content_type(path))


async def fetch_locator(
    locator: str,
    *,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
    max_bytes: int = DEFAULT_MAX_FETCH_BYTES,
    allowed_root: Path | None = None,
    allow_local_files: bool = True,
) -> BinaryObject:
    """
    Resolve a locator to its binary content.

    File locators are refused when allow_local_files is false, and confined
    to allowed_root when one is given.

    Raises:
        FetchError: If the locator is unreachable, unsupported or too large
        DecodeError: If a data: URI body is malformed
    """
    if locator[:5].lower() == "data:":
        return parse_data_uri(locator)

    parsed = urlparse(locator)
    scheme = parsed.scheme.lower()

    if scheme in ("http", "https"):
        logger.debug("Fetching %s", locator)
        return await _fetch_http(locator, timeout, max_bytes)

    # Bare paths, including Windows drive letters which parse as a scheme.
    if scheme == "file" or not scheme or len(scheme) == 1:
        if not allow_local_files:
            raise FetchError(locator, "Local file locators are disabled")
        if scheme == "file":
            path = Path(unquote(parsed.path))
        else:
            path = Path(locator).expanduser()
        return await _fetch_file(locator, path, max_bytes, allowed_root)

    raise FetchError(locator, f"Unsupported locator scheme: {scheme}")
