"""Transcode failures, one class per pipeline stage."""

from __future__ import annotations


class TranscodeError(RuntimeError):
    """Base class for failures inside the transcode pipeline."""
    pass


class DecodeError(TranscodeError):
    """Raised when input text or image data cannot be decoded."""
    pass


class FetchError(DecodeError):
    """Raised when a locator is unreachable or answers with a non-success status."""

    def __init__(self, locator: str, reason: str, status: int | None = None):
        self.locator = locator
        self.reason = reason
        self.status = status
        super().__init__(f"Failed to fetch {_shorten(locator)}: {reason}")


class SurfaceError(TranscodeError):
    """Raised when no drawing surface can be acquired for the target size."""
    pass


class EncodeError(TranscodeError):
    """Raised when the target codec rejects the content or parameters."""
    pass


def _shorten(locator: str, limit: int = 80) -> str:
    if len(locator) <= limit:
        return locator
    return locator[: limit - 3] + "..."
