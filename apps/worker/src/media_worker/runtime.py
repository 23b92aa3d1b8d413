"""Worker runtime: one pipeline behind the request/response boundary."""

from __future__ import annotations

import itertools
import logging
import time
from typing import Any, Awaitable, Callable, Mapping

from media_shared import protocol
from media_transcoder import TranscodePipeline

logger = logging.getLogger(__name__)

_instance_ids = itertools.count(1)

Handler = Callable[[Any], Awaitable[Any]]


class WorkerRuntime:
    """
    Serves envelopes with a TranscodePipeline.

    handle() never raises for a request it can answer: every failure becomes
    an error response carrying the same id. Envelopes without a usable id
    can't be answered and are dropped.
    """

    def __init__(self, pipeline: TranscodePipeline | None = None, name: str | None = None):
        self.pipeline = pipeline or TranscodePipeline()
        self.name = name or f"runtime-{next(_instance_ids)}"
        self._handlers: dict[str, Handler] = {
            "decodeBinary": self.pipeline.decode_binary,
            "transcodeImage": self.pipeline.transcode_image,
        }

    async def handle(self, msg: Mapping[str, Any]) -> dict[str, Any] | None:
        """Process one request envelope and return its response envelope."""
        request_id = protocol.get_request_id(msg)
        if request_id is None:
            logger.warning("%s: dropping message without id (keys=%s)", self.name, sorted(msg))
            return None

        started = time.perf_counter()
        action = msg.get("action")
        logger.debug("%s: received %s %s", self.name, action, request_id)

        try:
            request = protocol.parse_request(msg)
            result = await self._dispatch(request)
            response = protocol.Response.success(request.id, result)
        except Exception as e:
            error_msg = f"{type(e).__name__}: {e}"
            logger.error("%s: request %s (%s) failed: %s", self.name, request_id, action, error_msg)
            logger.debug("Traceback for %s", request_id, exc_info=True)
            response = protocol.Response.failure(request_id, error_msg)
        else:
            logger.info(
                "%s: request %s (%s) done in %.3fs",
                self.name, request_id, action, time.perf_counter() - started,
            )

        return response.to_message()

    async def _dispatch(self, request: protocol.Request) -> Any:
        handler = self._handlers.get(request.action)
        if handler is None:
            raise protocol.UnknownActionError(request.action)
        return await handler(request.payload)
