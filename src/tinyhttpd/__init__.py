"""
=============================================================================
TINYHTTPD
=============================================================================

A small HTTP/1.1 server on raw sockets.

    python -m tinyhttpd --directory /tmp/data

    GET  /                 200
    GET  /echo/<s>         <s>, gzip-compressed when the client accepts it
    GET  /user-agent       the client's User-Agent
    GET  /files/<name>     file contents from --directory
    POST /files/<name>     store the request body as <name>

Connections are kept alive until the client sends "Connection: close" or
stays silent for the read timeout.

=============================================================================
PACKAGE LAYOUT
=============================================================================

    tinyhttpd/
    ├── config.py        ServerConfig
    ├── server.py        HTTPServer, build_router, connection loop
    ├── __main__.py      command line
    ├── core/            listener, connection
    ├── http/            parser, responses, errors, gzip, router
    ├── handlers/        route handlers
    └── middleware/      access logging

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer, build_router, create_app
from .config import ServerConfig

__all__ = ["HTTPServer", "ServerConfig", "build_router", "create_app", "__version__"]
