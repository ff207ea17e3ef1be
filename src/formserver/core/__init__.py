"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing underneath the HTTP layer.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  SOCKET SERVER                                                       │
    │  Binds 0.0.0.0:8080, runs accept() on the main thread.              │
    └───────────────────────────────┬─────────────────────────────────────┘
                                    │ one Connection per client
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  THREAD POOL                                                         │
    │  Serves each connection on a worker thread.                          │
    └───────────────────────────────┬─────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  CONNECTION                                                          │
    │  Buffered reads, request framing, keep-alive, close.                 │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer, ServerBindError
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "ServerBindError",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
