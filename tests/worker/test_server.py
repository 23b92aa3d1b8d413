"""
End-to-end tests over the TCP transport.
"""

import asyncio
import base64

import pytest

from conftest import make_image_bytes, open_image
from media_shared.protocol import BinaryObject, Request
from media_shared.tcp import ConnectionFailed
from media_worker import WorkerConfig, WorkerServer, connect


async def _start_server():
    server = WorkerServer(WorkerConfig(host="127.0.0.1", port=0))
    await server.start()
    return server


class TestWorkerServer:

    @pytest.mark.asyncio
    async def test_transcode_binary_source_over_tcp(self):
        server = await _start_server()
        try:
            client = await connect("127.0.0.1", server.port)
            source = BinaryObject(make_image_bytes(2000, 1000), "image/png")
            response = await client.request(
                Request.transcode_image(source, 1200, 1200, output_format="webp"), timeout=30
            )
            await client.close()
        finally:
            await server.stop()

        assert response.ok
        assert response.binary.content_type == "image/webp"
        assert open_image(response.binary.data).size == (1200, 600)
        assert base64.b64decode(response.text) == response.binary.data

    @pytest.mark.asyncio
    async def test_concurrent_requests_each_answered_once(self, png_base64):
        server = await _start_server()
        try:
            client = await connect("127.0.0.1", server.port)
            requests = [
                Request.decode_binary(png_base64, id="ok"),
                Request.decode_binary("@@@", id="bad"),
                Request.transcode_image(BinaryObject(b"junk"), 10, 10, id="junk"),
            ]
            futures = [await client.send(r) for r in requests]
            responses = await asyncio.wait_for(asyncio.gather(*futures), 30)
            await client.close()
        finally:
            await server.stop()

        by_id = {r.id: r for r in responses}
        assert set(by_id) == {"ok", "bad", "junk"}
        assert by_id["ok"].ok
        assert by_id["bad"].error.startswith("DecodeError")
        assert by_id["junk"].error.startswith("DecodeError")

    @pytest.mark.asyncio
    async def test_unknown_action_over_tcp(self):
        server = await _start_server()
        try:
            client = await connect("127.0.0.1", server.port)
            response = await client.request({"id": "u1", "action": "unknownThing"}, timeout=10)
            await client.close()
        finally:
            await server.stop()

        assert response.id == "u1"
        assert "unknownThing" in response.error

    @pytest.mark.asyncio
    async def test_connect_refused(self):
        server = await _start_server()
        port = server.port
        await server.stop()
        with pytest.raises(ConnectionFailed):
            await connect("127.0.0.1", port)

    @pytest.mark.asyncio
    async def test_request_stop_ends_serve(self):
        server = WorkerServer(WorkerConfig(host="127.0.0.1", port=0))
        serving = asyncio.create_task(server.serve())
        while server.port == 0:
            await asyncio.sleep(0.01)

        task = server.request_stop()
        assert server.request_stop() is task
        await asyncio.wait_for(serving, 10)
        assert task.done()


class TestLocalFileLocators:
    """File locators reach the disk only when an allowed root is configured."""

    @pytest.mark.asyncio
    async def test_refused_without_root(self, tmp_path):
        path = tmp_path / "photo.png"
        path.write_bytes(make_image_bytes(40, 20))
        server = await _start_server()
        try:
            client = await connect("127.0.0.1", server.port)
            response = await client.request(
                Request.transcode_image(str(path), 100, 100), timeout=10
            )
            await client.close()
        finally:
            await server.stop()

        assert response.error.startswith("FetchError")
        assert "disabled" in response.error

    @pytest.mark.asyncio
    async def test_served_inside_root(self, tmp_path):
        path = tmp_path / "photo.png"
        path.write_bytes(make_image_bytes(40, 20))
        server = WorkerServer(WorkerConfig(host="127.0.0.1", port=0, allowed_root=tmp_path))
        await server.start()
        try:
            client = await connect("127.0.0.1", server.port)
            response = await client.request(
                Request.transcode_image(str(path), 100, 100, output_format="png"), timeout=10
            )
            await client.close()
        finally:
            await server.stop()

        assert open_image(response.binary.data).size == (40, 20)
