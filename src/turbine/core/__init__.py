"""
=============================================================================
CORE MODULE - Networking and Concurrency
=============================================================================

    socket_server.py  - listening socket and the accept loop
    connection.py     - one accepted client socket: read, send, close
    thread_pool.py    - fixed set of workers with blocking submission

How they fit together:

    SocketServer.accept() ──► Connection ──► ThreadPool.submit()
                                                   │
                                                   ▼
                                         worker runs the handler

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",     # Accepts connections
    "Connection",       # Client socket wrapper
    "ConnectionState",  # Connection lifecycle states
    "ThreadPool",       # Fixed-size worker pool
]
