"""
Root, echo and user-agent handlers.

Each handler is a plain function: request in, response out. Client-visible
failures are raised as HTTPError subclasses and turned into responses by the
router.
"""

from ..http.encoding import DEFAULT_LEVEL, GZIP, accepts_gzip, gzip_encode
from ..http.errors import MissingHeaderError
from ..http.request import HTTPRequest
from ..http.response import TEXT_PLAIN, HTTPResponse, ResponseBuilder, ok


ECHO_PREFIX = "/echo/"


def root(request: HTTPRequest) -> HTTPResponse:
    """GET / → 200 with an empty body."""
    return ok()


def echo(request: HTTPRequest, gzip_level: int = DEFAULT_LEVEL) -> HTTPResponse:
    """
    GET /echo/<value> → <value> as text/plain.

    The value is the raw path suffix: no percent-decoding, query string
    included. A path under the /echo route that lacks the trailing slash
    ("/echo", "/echoes") echoes an empty body.

    When the client accepts gzip the body is compressed and
    Content-Encoding: gzip is added; Content-Length then counts the
    compressed bytes.
    """
    path = request.path
    payload = path[len(ECHO_PREFIX):] if path.startswith(ECHO_PREFIX) else ""
    body = payload.encode("utf-8")

    builder = ResponseBuilder().content_type(TEXT_PLAIN)
    if accepts_gzip(request):
        builder.content_encoding(GZIP)
        body = gzip_encode(body, level=gzip_level)

    return builder.body(body).build()


def user_agent(request: HTTPRequest) -> HTTPResponse:
    """
    GET /user-agent → the User-Agent header value as text/plain.

    Raises:
        MissingHeaderError: The request has no User-Agent header (400).
    """
    agent = request.user_agent
    if agent is None:
        raise MissingHeaderError("User-Agent")
    return ok(agent, content_type=TEXT_PLAIN)
