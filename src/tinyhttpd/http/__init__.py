"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything that knows about HTTP bytes, with no sockets involved:

    request       bytes → HTTPRequest (complete / incomplete / malformed)
    response      HTTPResponse → bytes, ResponseBuilder, status helpers
    errors        exceptions that carry an HTTP status
    encoding      gzip negotiation and compression
    router        path → handler, 404/405
    status_codes  HTTPStatus and reason phrases

=============================================================================
"""

from .errors import (
    HTTPError,
    HTTPParseError,
    BadRequestError,
    MissingHeaderError,
    ForbiddenError,
    NotFoundError,
    MethodNotAllowedError,
)
from .request import HTTPRequest, ParseResult, RequestParser, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    TEXT_PLAIN,
    OCTET_STREAM,
    ok,
    created,
    bad_request,
    forbidden,
    not_found,
    method_not_allowed,
    internal_error,
    error_response,
)
from .encoding import accepts_gzip, gzip_encode
from .router import ANY, Router, Route
from .status_codes import HTTPStatus, reason_phrase


__all__ = [
    # Errors
    "HTTPError",
    "HTTPParseError",
    "BadRequestError",
    "MissingHeaderError",
    "ForbiddenError",
    "NotFoundError",
    "MethodNotAllowedError",
    # Request parsing
    "HTTPRequest",
    "ParseResult",
    "RequestParser",
    "parse_request",
    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "TEXT_PLAIN",
    "OCTET_STREAM",
    "ok",
    "created",
    "bad_request",
    "forbidden",
    "not_found",
    "method_not_allowed",
    "internal_error",
    "error_response",
    # Content encoding
    "accepts_gzip",
    "gzip_encode",
    # Routing
    "ANY",
    "Router",
    "Route",
    # Status codes
    "HTTPStatus",
    "reason_phrase",
]
