"""
=============================================================================
ROUTE HANDLERS
=============================================================================

    root        GET /               200, empty body
    echo        GET /echo/<s>       <s> as text/plain, gzip when accepted
    user_agent  GET /user-agent     the User-Agent header value
    FileHandler GET|POST /files/<n> read or write a file in one directory

    from tinyhttpd.handlers import FileHandler, echo

    router.add_route("/echo", echo)
    files = FileHandler("/tmp/data")
    router.add_route("/files", files.get, method="GET")
    router.add_route("/files", files.post, method="POST")

=============================================================================
"""

from .basic import echo, root, user_agent
from .files import FileHandler, resolve_within


__all__ = [
    "root",
    "echo",
    "user_agent",
    "FileHandler",
    "resolve_within",
]
