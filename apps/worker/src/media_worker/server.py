"""Worker server implementation."""

from __future__ import annotations

import asyncio
import logging
import signal

from media_shared.tcp import StreamConnection
from media_transcoder import TranscodePipeline

from .config import WorkerConfig
from .runtime import WorkerRuntime
from .transport import serve_connection

logger = logging.getLogger(__name__)


class WorkerServer:
    """TCP host for one WorkerRuntime; every connection shares it."""

    def __init__(self, config: WorkerConfig):
        self._config = config
        self._host = config.host
        self._port = config.port

        pipeline = TranscodePipeline(
            fetch_timeout=config.fetch_timeout,
            max_fetch_bytes=config.max_fetch_bytes,
            allowed_root=config.allowed_root,
            allow_local_files=config.allowed_root is not None,
        )
        self.runtime = WorkerRuntime(pipeline, name=f"worker-{config.port}")

        self._server: asyncio.AbstractServer | None = None
        self._connections: set[asyncio.Task] = set()
        self._shutdown: asyncio.Event | None = None
        self._stop_task: asyncio.Task | None = None

    @property
    def port(self) -> int:
        """Bound port; differs from the configured one when that was 0."""
        if self._server is not None and self._server.sockets:
            return self._server.sockets[0].getsockname()[1]
        return self._port

    async def start(self) -> None:
        self._shutdown = asyncio.Event()
        self._server = await asyncio.start_server(self._on_connect, self._host, self._port)
        logger.info("Worker listening on %s:%d", self._host, self.port)

    async def _on_connect(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        conn = StreamConnection(reader, writer, self._config.max_frame_bytes)
        logger.info("Connection from %s", conn.peer)
        task = asyncio.current_task()
        if task is not None:
            self._connections.add(task)
        try:
            await serve_connection(self.runtime, conn)
        except Exception:
            logger.exception("Unexpected error serving %s", conn.peer)
        finally:
            if task is not None:
                self._connections.discard(task)
            logger.info("Connection from %s closed", conn.peer)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        for task in list(self._connections):
            task.cancel()
        if self._connections:
            await asyncio.gather(*self._connections, return_exceptions=True)
        await self._server.wait_closed()
        self._server = None
        if self._shutdown is not None:
            self._shutdown.set()
        logger.info("Worker stopped")

    def request_stop(self) -> asyncio.Task:
        """Schedule stop() from a synchronous callback, such as a signal handler."""
        if self._stop_task is None or self._stop_task.done():
            self._stop_task = asyncio.get_running_loop().create_task(self.stop())
        return self._stop_task

    async def serve(self) -> None:
        """Serve until stop() is called or SIGINT/SIGTERM arrives."""
        await self.start()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
            except (NotImplementedError, RuntimeError):
                pass
        assert self._shutdown is not None
        await self._shutdown.wait()

    def run(self) -> None:
        """Run the worker until shutdown."""
        asyncio.run(self.serve())
