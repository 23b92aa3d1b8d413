"""Configuration for the media worker."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from media_shared.tcp import DEFAULT_MAX_PAYLOAD_BYTES
from media_transcoder.fetch import DEFAULT_FETCH_TIMEOUT, DEFAULT_MAX_FETCH_BYTES


@dataclass(frozen=True)
class WorkerConfig:
    """Worker configuration."""

    host: str = "127.0.0.1"
    port: int = 5057
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    max_fetch_bytes: int = DEFAULT_MAX_FETCH_BYTES
    max_frame_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES
    allowed_root: Path | None = None

    @classmethod
    def load(cls) -> WorkerConfig:
        """Load from environment variables."""
        allowed_root = os.getenv("MEDIA_ALLOWED_ROOT")
        return cls(
            host=os.getenv("MEDIA_WORKER_HOST", "127.0.0.1"),
            port=int(os.getenv("MEDIA_WORKER_PORT", "5057")),
            fetch_timeout=float(os.getenv("MEDIA_FETCH_TIMEOUT", str(DEFAULT_FETCH_TIMEOUT))),
            max_fetch_bytes=int(os.getenv("MEDIA_MAX_FETCH_BYTES", str(DEFAULT_MAX_FETCH_BYTES))),
            max_frame_bytes=int(os.getenv("MEDIA_MAX_FRAME_BYTES", str(DEFAULT_MAX_PAYLOAD_BYTES))),
            allowed_root=Path(allowed_root) if allowed_root else None,
        )
