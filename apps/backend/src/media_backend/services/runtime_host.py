"""
Runtime hosting for the media backend.

Flask handlers are synchronous; the runtimes live on an asyncio loop in a
background thread and requests are handed over with run_coroutine_threadsafe.
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Mapping

from media_shared import protocol
from media_transcoder import TranscodePipeline
from media_worker import ConnectionClosed, WorkerPool

from ..config import Config

logger = logging.getLogger(__name__)

# Extra time for the hand-over itself on top of the request timeout.
HANDOFF_GRACE = 5.0


class RuntimeHost:
    """Owns a WorkerPool and the event loop thread it runs on."""

    def __init__(self, config: Config):
        self._config = config
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._pool = WorkerPool(config.pool_size, self._make_pipeline)

    def _make_pipeline(self) -> TranscodePipeline:
        return TranscodePipeline(
            fetch_timeout=self._config.fetch_timeout,
            max_fetch_bytes=self._config.max_fetch_bytes,
            allowed_root=self._config.allowed_root,
            allow_local_files=self._config.allowed_root is not None,
        )

    @property
    def running(self) -> bool:
        return self._loop is not None and self._pool.running

    def start(self) -> None:
        with self._lock:
            if self._loop is not None:
                return
            loop = asyncio.new_event_loop()
            thread = threading.Thread(
                target=loop.run_forever,
                name="runtime-host",
                daemon=True,
            )
            thread.start()
            self._loop = loop
            self._thread = thread

        asyncio.run_coroutine_threadsafe(self._start_pool(), loop).result()
        logger.info("RuntimeHost started with %d runtimes", self._config.pool_size)

    async def _start_pool(self) -> None:
        self._pool.start()

    def submit(self, msg: Mapping[str, Any], timeout: float | None = None) -> protocol.Response:
        """
        Run one envelope through the pool and wait for its response.

        Raises:
            asyncio.TimeoutError: If no response arrives in time
            ConnectionClosed: If the host isn't running
        """
        loop = self._loop
        if loop is None:
            raise ConnectionClosed("RuntimeHost is not running")

        timeout = self._config.request_timeout if timeout is None else timeout
        future = asyncio.run_coroutine_threadsafe(
            self._pool.request(msg, timeout=timeout), loop
        )
        try:
            return future.result(timeout + HANDOFF_GRACE)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise asyncio.TimeoutError(f"No response within {timeout}s") from None

    def shutdown(self) -> None:
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None
        if loop is None:
            return

        try:
            asyncio.run_coroutine_threadsafe(self._pool.close(), loop).result(HANDOFF_GRACE)
        except Exception:
            logger.exception("Error closing runtime pool")
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout=HANDOFF_GRACE)
        loop.close()
        logger.info("RuntimeHost stopped")
