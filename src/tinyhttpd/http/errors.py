"""
=============================================================================
HTTP ERRORS
=============================================================================

Exceptions that carry the HTTP status they should be answered with.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ERROR TAXONOMY                                │
    ├──────────────────────────┬────────┬─────────────────────────────────┤
    │ HTTPParseError           │ 400/431│ malformed request line/headers  │
    │ BadRequestError          │ 400    │ request is well-formed but bad  │
    │ MissingHeaderError       │ 400    │ required header is absent       │
    │ ForbiddenError           │ 403    │ file name escapes the directory │
    │ NotFoundError            │ 404    │ unknown path or missing file    │
    │ MethodNotAllowedError    │ 405    │ route exists, method doesn't    │
    │ OSError (builtin)        │ 500    │ filesystem / compression        │
    │ socket.timeout (builtin) │   -    │ idle connection, silent close   │
    └──────────────────────────┴────────┴─────────────────────────────────┘

Handlers raise these; the router turns them into a response inside the same
exchange, so one failed request never tears down the connection. Only
transport failures (recv/sendall) end a connection.

=============================================================================
"""

from typing import Iterable, Optional

from .status_codes import HTTPStatus


class HTTPError(Exception):
    """
    Base class for errors that map onto an HTTP status.

    The message becomes the plain-text body of the error response, so keep
    it short and free of internal detail.
    """

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class HTTPParseError(HTTPError):
    """
    Raised when the request bytes cannot be parsed.

    Usually 400 Bad Request; 431 when the header budget is exceeded.
    """

    status_code = HTTPStatus.BAD_REQUEST


class BadRequestError(HTTPError):
    status_code = HTTPStatus.BAD_REQUEST


class MissingHeaderError(BadRequestError):
    """A header the handler cannot work without was not sent."""

    def __init__(self, header: str):
        super().__init__(f"{header} header not found")
        self.header = header


class ForbiddenError(HTTPError):
    status_code = HTTPStatus.FORBIDDEN


class NotFoundError(HTTPError):
    status_code = HTTPStatus.NOT_FOUND


class MethodNotAllowedError(HTTPError):
    """
    The path matched a route that does not accept this method.

    Carries the allowed methods so the response can include an Allow header
    (RFC 7231 requires it for 405).
    """

    status_code = HTTPStatus.METHOD_NOT_ALLOWED

    def __init__(self, method: str, allowed: Iterable[str]):
        self.allowed = sorted(allowed)
        super().__init__(f"Method {method} not allowed")
        self.method = method
