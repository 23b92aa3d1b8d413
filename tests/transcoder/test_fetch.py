"""
Tests for locator fetching.
"""

import base64

import pytest
from aiohttp import web
from aiohttp import test_utils

from media_shared.protocol import BinaryObject
from media_transcoder.errors import DecodeError, FetchError
from media_transcoder.fetch import fetch_locator, parse_data_uri


async def _start_image_server(png_bytes):
    async def image(request):
        return web.Response(body=png_bytes, content_type="image/png")

    async def missing(request):
        raise web.HTTPNotFound()

    async def big(request):
        return web.Response(body=b"x" * 4096, content_type="application/octet-stream")

    app = web.Application()
    app.router.add_get("/image.png", image)
    app.router.add_get("/missing.png", missing)
    app.router.add_get("/big.bin", big)
    server = test_utils.TestServer(app)
    await server.start_server()
    return server


class TestDataUri:
    """data: URIs decode in place."""

    def test_base64(self):
        uri = "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode()
        assert parse_data_uri(uri) == BinaryObject(b"\x89PNG", "image/png")

    def test_percent_encoded(self):
        assert parse_data_uri("data:,hello%20world") == BinaryObject(b"hello world", "text/plain")

    def test_missing_comma(self):
        with pytest.raises(DecodeError):
            parse_data_uri("data:image/png;base64")

    @pytest.mark.asyncio
    async def test_fetch_locator_handles_data_uri(self, png_bytes):
        uri = "data:image/png;base64," + base64.b64encode(png_bytes).decode()
        result = await fetch_locator(uri)
        assert result.data == png_bytes

    @pytest.mark.asyncio
    async def test_scheme_is_case_insensitive(self, png_bytes):
        uri = "DATA:image/png;base64," + base64.b64encode(png_bytes).decode()
        result = await fetch_locator(uri)
        assert result == BinaryObject(png_bytes, "image/png")


class TestHttpLocator:
    """http(s) locators are fetched with aiohttp."""

    @pytest.mark.asyncio
    async def test_fetches_body_and_type(self, png_bytes):
        server = await _start_image_server(png_bytes)
        try:
            result = await fetch_locator(str(server.make_url("/image.png")))
        finally:
            await server.close()
        assert result == BinaryObject(png_bytes, "image/png")

    @pytest.mark.asyncio
    async def test_non_success_status(self, png_bytes):
        server = await _start_image_server(png_bytes)
        try:
            with pytest.raises(FetchError) as exc_info:
                await fetch_locator(str(server.make_url("/missing.png")))
        finally:
            await server.close()
        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_body_over_limit(self, png_bytes):
        server = await _start_image_server(png_bytes)
        try:
            with pytest.raises(FetchError):
                await fetch_locator(str(server.make_url("/big.bin")), max_bytes=1024)
        finally:
            await server.close()

    @pytest.mark.asyncio
    async def test_unreachable_host(self):
        with pytest.raises(FetchError):
            await fetch_locator("http://127.0.0.1:1/nothing.png", timeout=2.0)


class TestFileLocator:
    """Local paths and file:// URIs are read from disk."""

    @pytest.mark.asyncio
    async def test_plain_path(self, tmp_path, png_bytes):
        path = tmp_path / "a.png"
        path.write_bytes(png_bytes)
        result = await fetch_locator(str(path))
        assert result == BinaryObject(png_bytes, "image/png")

    @pytest.mark.asyncio
    async def test_file_uri(self, tmp_path, png_bytes):
        path = tmp_path / "b.webp"
        path.write_bytes(png_bytes)
        result = await fetch_locator(path.as_uri())
        assert result.content_type == "image/webp"

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(FetchError):
            await fetch_locator(str(tmp_path / "nope.png"))

    @pytest.mark.asyncio
    async def test_outside_allowed_root(self, tmp_path, png_bytes):
        root = tmp_path / "root"
        root.mkdir()
        outside = tmp_path / "secret.png"
        outside.write_bytes(png_bytes)
        with pytest.raises(FetchError):
            await fetch_locator(str(outside), allowed_root=root)

    @pytest.mark.asyncio
    async def test_inside_allowed_root(self, tmp_path, png_bytes):
        path = tmp_path / "ok.png"
        path.write_bytes(png_bytes)
        result = await fetch_locator(str(path), allowed_root=tmp_path)
        assert result.data == png_bytes

    @pytest.mark.asyncio
    @pytest.mark.parametrize("as_uri", [False, True])
    async def test_local_files_disabled(self, tmp_path, png_bytes, as_uri):
        path = tmp_path / "ok.png"
        path.write_bytes(png_bytes)
        locator = path.as_uri() if as_uri else str(path)
        with pytest.raises(FetchError, match="disabled"):
            await fetch_locator(locator, allow_local_files=False)


class TestUnsupported:

    @pytest.mark.asyncio
    async def test_blob_scheme(self):
        with pytest.raises(FetchError):
            await fetch_locator("blob:https://example.com/1234")

    def test_fetch_error_is_decode_error(self):
        assert issubclass(FetchError, DecodeError)
