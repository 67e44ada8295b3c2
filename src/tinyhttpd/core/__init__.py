"""
=============================================================================
CORE NETWORKING
=============================================================================

The TCP side of the server, below HTTP:

    SocketServer   binds, listens, accepts; one thread per connection
    Connection     one client socket: buffering, read timeout, keep-alive
                   flag, state machine, orderly close

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState


__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
]
