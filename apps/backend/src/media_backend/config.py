"""Configuration management for the media backend."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from media_transcoder.fetch import DEFAULT_FETCH_TIMEOUT, DEFAULT_MAX_FETCH_BYTES


@dataclass(frozen=True)
class Config:
    """Backend configuration loaded from environment variables."""

    pool_size: int = 2
    request_timeout: float = 60.0
    max_upload_bytes: int = 32 * 1024 * 1024
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    max_fetch_bytes: int = DEFAULT_MAX_FETCH_BYTES
    allowed_root: Path | None = None

    @classmethod
    def load(cls) -> Config:
        """Load configuration from environment variables."""
        allowed_root = os.getenv("MEDIA_ALLOWED_ROOT")
        return cls(
            pool_size=int(os.getenv("MEDIA_POOL_SIZE", "2")),
            request_timeout=float(os.getenv("MEDIA_REQUEST_TIMEOUT", "60.0")),
            max_upload_bytes=int(os.getenv("MEDIA_MAX_UPLOAD_BYTES", str(32 * 1024 * 1024))),
            fetch_timeout=float(os.getenv("MEDIA_FETCH_TIMEOUT", str(DEFAULT_FETCH_TIMEOUT))),
            max_fetch_bytes=int(os.getenv("MEDIA_MAX_FETCH_BYTES", str(DEFAULT_MAX_FETCH_BYTES))),
            allowed_root=Path(allowed_root) if allowed_root else None,
        )
