"""
Host transport: sockets, per-connection response writers and the worker
pool that runs pipelines.
"""

from .connection import Connection, ConnectionResponseWriter, ConnectionState
from .socket_server import SocketServer
from .thread_pool import WorkerPool, WorkerState

__all__ = [
    "Connection",
    "ConnectionResponseWriter",
    "ConnectionState",
    "SocketServer",
    "WorkerPool",
    "WorkerState",
]
