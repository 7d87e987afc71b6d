"""
=============================================================================
NETWORK CORE
=============================================================================

    SocketServer   listening socket and accept loop
    Connection     one client socket, one request, Content-Length framing
    ThreadPool     workers that run each connection's request to completion

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, RequestTooLarge
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "RequestTooLarge",
    "ThreadPool",
]
