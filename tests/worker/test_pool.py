"""
Tests for the in-process runtime pool.
"""

import asyncio
import base64

import pytest

from media_shared.protocol import Request
from media_transcoder import TranscodePipeline
from media_worker import ConnectionClosed, WorkerPool


class TestWorkerPool:

    def test_size_must_be_positive(self):
        with pytest.raises(ValueError):
            WorkerPool(0)

    @pytest.mark.asyncio
    async def test_requests_spread_over_instances(self):
        created = []

        def factory():
            pipeline = TranscodePipeline()
            created.append(pipeline)
            return pipeline

        pool = WorkerPool(3, factory)
        pool.start()
        try:
            requests = [
                Request.decode_binary(base64.b64encode(str(i).encode()).decode(), id=f"r{i}")
                for i in range(9)
            ]
            responses = await asyncio.gather(*(pool.request(r, timeout=5) for r in requests))
        finally:
            await pool.close()

        assert len(created) == 3
        assert [r.id for r in responses] == [f"r{i}" for i in range(9)]
        assert [r.binary.data for r in responses] == [str(i).encode() for i in range(9)]

    @pytest.mark.asyncio
    async def test_not_running(self):
        pool = WorkerPool(1)
        with pytest.raises(ConnectionClosed):
            await pool.request(Request.decode_binary("AAEC"))
