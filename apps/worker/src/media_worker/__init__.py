"""
This app hosts transcode runtimes. It:
1. Wraps a TranscodePipeline in a WorkerRuntime (request in, response out)
2. Pumps envelopes between a connection and the runtime (in-process or TCP)
3. Gives callers a client that correlates responses by request id

Deployment:
    pip install media-transcode
    media-worker serve --port 5057
"""

from .channel import Connection, memory_pipe
from .client import ConnectionClosed, RuntimeClient, connect, spawn_local
from .config import WorkerConfig
from .pool import WorkerPool
from .runtime import WorkerRuntime
from .server import WorkerServer
from .transport import serve_connection

__all__ = [
    "Connection",
    "memory_pipe",
    "ConnectionClosed",
    "RuntimeClient",
    "connect",
    "spawn_local",
    "WorkerConfig",
    "WorkerPool",
    "WorkerRuntime",
    "WorkerServer",
    "serve_connection",
]
