"""A fixed set of independent in-process runtimes."""

from __future__ import annotations

import itertools
import logging
from typing import Any, Callable, Mapping

from media_shared import protocol
from media_transcoder import TranscodePipeline

from .client import ConnectionClosed, RuntimeClient, spawn_local

logger = logging.getLogger(__name__)

PipelineFactory = Callable[[], TranscodePipeline]


class WorkerPool:
    """
    Round-robin over `size` runtimes, each with its own pipeline.

    Must be started and used on one event loop.
    """

    def __init__(self, size: int = 2, pipeline_factory: PipelineFactory | None = None):
        if size < 1:
            raise ValueError(f"Pool size must be at least 1, got {size}")
        self.size = size
        self._pipeline_factory = pipeline_factory or TranscodePipeline
        self._clients: list[RuntimeClient] = []
        self._next: itertools.cycle | None = None

    @property
    def running(self) -> bool:
        return bool(self._clients)

    def start(self) -> None:
        if self._clients:
            return
        self._clients = [
            spawn_local(self._pipeline_factory(), name=f"runtime-{i}")
            for i in range(self.size)
        ]
        self._next = itertools.cycle(self._clients)
        logger.info("Started pool of %d runtimes", self.size)

    async def request(
        self,
        request: protocol.Request | Mapping[str, Any],
        timeout: float | None = None,
    ) -> protocol.Response:
        if self._next is None:
            raise ConnectionClosed("Pool is not running")
        client = next(self._next)
        return await client.request(request, timeout=timeout)

    async def close(self) -> None:
        clients, self._clients = self._clients, []
        self._next = None
        for client in clients:
            await client.close()
        logger.info("Pool stopped")
