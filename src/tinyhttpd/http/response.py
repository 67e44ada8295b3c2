"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses and serializes them to wire format.

=============================================================================
HTTP RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    HTTP/1.1 200 OK\r\n                  ← status line               │
    │    Content-Type: text/plain\r\n         ┐                           │
    │    Content-Encoding: gzip\r\n           │ headers, in the order     │
    │    Content-Length: 23\r\n               │ they were added           │
    │    Connection: close\r\n                ┘                           │
    │    \r\n                                 ← blank line                │
    │    <23 bytes of body>                   ← body                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Headers are kept as an ordered sequence of (name, value) pairs rather than a
dict: the wire order is the insertion order, and a name may repeat.

=============================================================================
TWO WAYS TO BUILD
=============================================================================

1. Value-returning steps on the immutable HTTPResponse. Every step returns
   a NEW response, the original is untouched:

       base = ok()
       closing = base.connection_close()     # base has no Connection header

2. The fluent ResponseBuilder, which accumulates and then build()s:

       response = (ResponseBuilder()
           .status(HTTPStatus.OK)
           .content_type("text/plain")
           .body("hello")
           .build())

Both guarantee the invariant the client relies on to find the end of the
message: Content-Length is present and equals len(body) of the FINAL body,
so compressing a body after the fact can never leave a stale length behind.

=============================================================================
"""

from dataclasses import dataclass, replace
from typing import Iterable, Optional, Tuple, Union

from .errors import HTTPError, MethodNotAllowedError
from .status_codes import HTTPStatus, reason_phrase


Header = Tuple[str, str]

TEXT_PLAIN = "text/plain"
OCTET_STREAM = "application/octet-stream"


def _to_bytes(body: Union[str, bytes]) -> bytes:
    if isinstance(body, str):
        return body.encode("utf-8")
    return bytes(body)


def _drop(headers: Iterable[Header], name: str) -> Tuple[Header, ...]:
    lowered = name.lower()
    return tuple((n, v) for n, v in headers if n.lower() != lowered)


@dataclass(frozen=True)
class HTTPResponse:
    """
    An HTTP response, immutable once created.

    =========================================================================
    RESPONSE LIFECYCLE
    =========================================================================

        Handler returns          to_bytes()              Connection sends
        HTTPResponse    ─────►   serializes    ─────►    raw bytes
                                                          (sendall)

    Attributes:
        status:  Integer status code (HTTPStatus members work too).
        reason:  Reason phrase; derived from the status when left empty.
        headers: Ordered (name, value) pairs, reproduced verbatim.
        body:    Raw body bytes.
    """

    status: int = HTTPStatus.OK
    reason: str = ""
    headers: Tuple[Header, ...] = ()
    body: bytes = b""
    version: str = "HTTP/1.1"

    def __post_init__(self):
        # Frozen dataclass: normalise through object.__setattr__
        if not self.reason:
            object.__setattr__(self, "reason", reason_phrase(self.status))
        object.__setattr__(self, "headers", tuple(tuple(h) for h in self.headers))
        object.__setattr__(self, "body", _to_bytes(self.body))

    @property
    def status_line(self) -> str:
        """
        Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE
        Example: "HTTP/1.1 200 OK"
        """
        return f"{self.version} {int(self.status)} {self.reason}"

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a header, matched case-insensitively."""
        lowered = name.lower()
        for header_name, value in self.headers:
            if header_name.lower() == lowered:
                return value
        return default

    def has_header(self, name: str) -> bool:
        return self.get_header(name) is not None

    # =========================================================================
    # VALUE-RETURNING STEPS
    # =========================================================================

    def with_header(self, name: str, value: str) -> "HTTPResponse":
        """Return a copy with (name, value) appended after existing headers."""
        return replace(self, headers=self.headers + ((name, value),))

    def with_content_type(self, content_type: str) -> "HTTPResponse":
        return self.with_header("Content-Type", content_type)

    def with_content_encoding(self, encoding: str) -> "HTTPResponse":
        return self.with_header("Content-Encoding", encoding)

    def with_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """
        Return a copy carrying `body` and a matching Content-Length.

        Any earlier Content-Length is dropped and the new one is appended,
        so the header always describes the body it travels with.
        """
        data = _to_bytes(body)
        headers = _drop(self.headers, "Content-Length") + (("Content-Length", str(len(data))),)
        return replace(self, headers=headers, body=data)

    def connection_close(self) -> "HTTPResponse":
        """Return a copy announcing that the server will close the socket."""
        if (self.get_header("Connection") or "").lower() == "close":
            return self
        return replace(self, headers=_drop(self.headers, "Connection") + (("Connection", "close"),))

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_bytes(self) -> bytes:
        """
        Serialize to wire format.

        =====================================================================
        SERIALIZATION FORMAT
        =====================================================================

            HTTP/1.1 200 OK\\r\\n            ← status line
            Name: value\\r\\n                ← every header, in order
            Content-Length: N\\r\\n          ← corrected or appended
            \\r\\n                           ← blank line
            <N body bytes>

        =====================================================================

        A Content-Length header already in the list keeps its position but
        is rewritten with the real body length; if there is none, one is
        appended after the other headers.
        """
        length = str(len(self.body))
        lines = [self.status_line]
        has_length = False

        for name, value in self.headers:
            if name.lower() == "content-length":
                has_length = True
                value = length
            lines.append(f"{name}: {value}")

        if not has_length:
            lines.append(f"Content-Length: {length}")

        # Empty line separates headers from body
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

    Each method returns `self` so calls can be chained; build() produces the
    immutable HTTPResponse.

        builder.status(201).content_type("text/plain").body("done").build()
        ────────┬───────────────────┬────────────────────┬─────────┬──────
                └───────────────────┴────────────────────┘         │
                         all return 'self'                   returns HTTPResponse
    """

    def __init__(self):
        self._status: int = HTTPStatus.OK
        self._reason: str = ""
        self._headers: list[Header] = []
        self._body: bytes = b""

    # =========================================================================
    # STATUS
    # =========================================================================

    def status(self, status: int, reason: str = "") -> "ResponseBuilder":
        """
        Set the status code.

        Args:
            status: HTTPStatus member or plain integer.
            reason: Custom reason phrase; the standard one is used if empty.
        """
        self._status = status
        self._reason = reason
        return self

    # =========================================================================
    # HEADERS
    # =========================================================================

    def header(self, name: str, value: str) -> "ResponseBuilder":
        """Append a header. Repeating a name adds another line."""
        self._headers.append((name, value))
        return self

    def set_header(self, name: str, value: str) -> "ResponseBuilder":
        """Replace every header called `name` with a single new one."""
        self._headers = list(_drop(self._headers, name))
        self._headers.append((name, value))
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.set_header("Content-Type", content_type)

    def content_encoding(self, encoding: str) -> "ResponseBuilder":
        return self.set_header("Content-Encoding", encoding)

    def close_connection(self) -> "ResponseBuilder":
        """Set Connection: close."""
        return self.set_header("Connection", "close")

    # =========================================================================
    # BODY
    # =========================================================================

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """
        Set the body (strings are UTF-8 encoded) and its Content-Length.

        Call content_type()/content_encoding() first if the wire order of
        headers matters to you: Content-Length lands where body() is called.
        """
        self._body = _to_bytes(body)
        return self.set_header("Content-Length", str(len(self._body)))

    def text(self, text: str, content_type: str = TEXT_PLAIN) -> "ResponseBuilder":
        """Plain-text body with its Content-Type."""
        return self.content_type(content_type).body(text)

    # =========================================================================
    # BUILD
    # =========================================================================

    def build(self) -> HTTPResponse:
        """
        Build the HTTPResponse.

        A response whose body was never set still gets Content-Length: 0,
        which lets keep-alive clients find the end of an empty message.
        """
        headers = list(self._headers)
        if not any(name.lower() == "content-length" for name, _ in headers):
            headers.append(("Content-Length", str(len(self._body))))
        return HTTPResponse(
            status=self._status,
            reason=self._reason,
            headers=tuple(headers),
            body=self._body,
        )

    def to_bytes(self) -> bytes:
        """Build and serialize in one step."""
        return self.build().to_bytes()


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# Quick one-liners for the responses the route handlers produce:
#
#     return ok()
#     return created("File created")
#     return not_found("File not found")
#
# =============================================================================

def ok(body: Union[str, bytes] = b"", content_type: Optional[str] = None) -> HTTPResponse:
    """
    200 OK. With no body and no content type this is the bare root response.
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)
    if content_type:
        builder.content_type(content_type)
    return builder.body(body).build()


def created(message: str = "") -> HTTPResponse:
    """201 Created, optionally with a short plain-text confirmation."""
    builder = ResponseBuilder().status(HTTPStatus.CREATED)
    if message:
        builder.text(message)
    return builder.build()


def _text_error(status: int, message: str) -> ResponseBuilder:
    builder = ResponseBuilder().status(status)
    if message:
        builder.text(message)
    return builder


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    return _text_error(HTTPStatus.BAD_REQUEST, message).build()


def forbidden(message: str = "Forbidden") -> HTTPResponse:
    return _text_error(HTTPStatus.FORBIDDEN, message).build()


def not_found(message: str = "Not Found") -> HTTPResponse:
    """404 Not Found with a plain-text explanation."""
    return _text_error(HTTPStatus.NOT_FOUND, message).build()


def method_not_allowed(allowed_methods: Iterable[str], message: str = "Method Not Allowed") -> HTTPResponse:
    """
    405 Method Not Allowed.

    Includes the Allow header listing valid methods (RFC 7231 requirement).
    """
    return (_text_error(HTTPStatus.METHOD_NOT_ALLOWED, message)
        .header("Allow", ", ".join(allowed_methods))
        .build())


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """
    500 Internal Server Error.

    Keep the message generic: it goes to the client.
    """
    return _text_error(HTTPStatus.INTERNAL_SERVER_ERROR, message).build()


def error_response(error: HTTPError) -> HTTPResponse:
    """Translate an HTTPError into the response it stands for."""
    if isinstance(error, MethodNotAllowedError):
        return method_not_allowed(error.allowed, error.message or "Method Not Allowed")
    status = int(error.status_code)
    return _text_error(status, error.message or reason_phrase(status)).build()
