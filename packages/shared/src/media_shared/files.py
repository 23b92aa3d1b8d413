"""
File and port helpers for the runtime and its hosts
"""

from __future__ import annotations

import errno
import logging
import mimetypes
import socket
from pathlib import Path

logger = logging.getLogger(__name__)

ALLOWED_IMG_EXTS: frozenset[str] = frozenset({".png", ".jpg", ".jpeg", ".webp", ".gif", ".bmp"})

_EXTRA_TYPES = {".webp": "image/webp"}


def is_in_dir(base: Path, target: Path) -> bool:
    """Check if target path is in base dir."""
    try:
        target.resolve().relative_to(base.resolve())
        return True
    except ValueError:
        return False


def guess_content_type(path: Path, default: str = "application/octet-stream") -> str:
    suffix = path.suffix.lower()
    if suffix in _EXTRA_TYPES:
        return _EXTRA_TYPES[suffix]
    content_type, _ = mimetypes.guess_type(path.name)
    return content_type or default


def find_free_tcp_port(host: str, start_port: int, max_tries: int = 100) -> int:
    """Find an available TCP port starting from start_port."""
    if not (0 <= start_port <= 65535):
        raise ValueError(f"Port must be 0..65535, got {start_port}")

    for port in range(start_port, min(65536, start_port + max_tries)):
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            logger.debug("Found free port: %d", port)
            return port
        except OSError as e:
            if e.errno in (errno.EADDRINUSE, errno.EACCES):
                continue
            raise
        finally:
            sock.close()

    raise RuntimeError(f"No free TCP port found in range {start_port}-{start_port + max_tries}")
