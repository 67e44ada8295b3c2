"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns a byte buffer, possibly only a prefix of a request, into a structured
HTTPRequest. No HTTP library is involved: the parser works directly on the
bytes the connection has buffered so far.

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    POST /files/notes.txt HTTP/1.1\r\n      ← request line           │
    │    ─┬── ────────┬─────── ────┬───                                    │
    │   Method     Target       Version                                    │
    │                                                                      │
    │    Host: localhost:4221\r\n                ┐                         │
    │    Content-Length: 5\r\n                   │ headers (ordered,       │
    │    Accept-Encoding: gzip\r\n               ┘ names case-insensitive) │
    │    \r\n                                    ← terminator              │
    │    hello                                   ← body (what's buffered)  │
    │                                                                      │
    │    └─────────── consumed span ────────────┘                          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THREE OUTCOMES
=============================================================================

TCP is a byte stream, so the connection may hand us half a request. Every
call to RequestParser.parse() ends in exactly one of:

    COMPLETE    ParseResult(request, consumed)
                The terminator was found; `consumed` is the length of the
                request line + headers + \\r\\n\\r\\n.

    INCOMPLETE  ParseResult.incomplete()
                No terminator yet. Keep the buffer, read more, try again.

    MALFORMED   raises HTTPParseError
                The bytes can never become a valid request (400), or the
                header budget was exceeded (431).

=============================================================================
THE BODY SIMPLIFICATION
=============================================================================

By default the body is simply whatever follows the terminator in the buffer
at parse time. If a client's body arrives in a later TCP segment than its
headers, the handler sees a short body. The parser does NOT wait for
Content-Length bytes unless it is created with complete_body=True, in which
case it reports INCOMPLETE until the whole body is buffered and trims the
body to exactly Content-Length bytes.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import re

from .errors import HTTPParseError
from .status_codes import HTTPStatus


Header = Tuple[str, str]

HEADER_TERMINATOR = b"\r\n\r\n"
CRLF = b"\r\n"


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:         Request method token ("GET", "POST", ...).
        path:           Request target exactly as sent. Not percent-decoded,
                        query string included.
        version:        Version string from the request line ("HTTP/1.1").
        headers:        (name, value) pairs in wire order. Names keep their
                        original casing; duplicates are preserved.
        body:           Body bytes that were buffered at parse time.
        client_address: (ip, port) of the peer, for logging.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: List[Header] = field(default_factory=list)
    body: bytes = b""
    client_address: Tuple[str, int] = ("", 0)

    # =========================================================================
    # HEADER LOOKUP
    # =========================================================================
    #
    # Header names are case-insensitive (RFC 7230 §3.2). Lookups happen here,
    # once, instead of every handler lowercasing names on its own.
    #

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get the first value of a header (case-insensitive lookup).

        Example:
            request.get_header("user-agent")   # matches "User-Agent: curl"
        """
        lowered = name.lower()
        for header_name, value in self.headers:
            if header_name.lower() == lowered:
                return value
        return default

    def get_headers(self, name: str) -> List[str]:
        """All values of a header, in the order they were sent."""
        lowered = name.lower()
        return [value for header_name, value in self.headers if header_name.lower() == lowered]

    def has_header(self, name: str) -> bool:
        return self.get_header(name) is not None

    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================

    @property
    def content_length(self) -> int:
        """
        Content-Length as an integer.

        Returns 0 if the header is missing or not a valid number.
        """
        try:
            return max(int(self.get_header("Content-Length", "0")), 0)
        except ValueError:
            return 0

    @property
    def user_agent(self) -> Optional[str]:
        return self.get_header("User-Agent")

    @property
    def accept_encoding(self) -> str:
        return self.get_header("Accept-Encoding", "")

    @property
    def wants_close(self) -> bool:
        """
        True when the client sent "Connection: close" (any casing).

        Once a request on a connection asks for close, the server closes
        after answering it.
        """
        return (self.get_header("Connection") or "").strip().lower() == "close"


@dataclass(frozen=True)
class ParseResult:
    """
    Outcome of one parse attempt.

    `request is None` means INCOMPLETE. Malformed input never produces a
    ParseResult, it raises HTTPParseError.
    """

    request: Optional[HTTPRequest] = None
    consumed: int = 0

    @property
    def is_complete(self) -> bool:
        return self.request is not None

    @classmethod
    def incomplete(cls) -> "ParseResult":
        return cls()


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    ==========================================================================
    PARSER ARCHITECTURE
    ==========================================================================

        Buffered bytes
              │
              ▼
        ┌───────────────────────────────────────────────────────────────────┐
        │  1. Skip stray CRLFs left over from a previous exchange           │
        │  2. Find \\r\\n\\r\\n                                                 │
        │     │  Not found? → validate the request line if it is complete,  │
        │     │               then INCOMPLETE                               │
        │     ▼                                                             │
        │  3. Parse request line  METHOD SP TARGET SP VERSION               │
        │  4. Parse headers       "Name: value", at most max_headers        │
        │  5. Slice the body      everything after the terminator           │
        │                         (or exactly Content-Length bytes)         │
        └───────────────────────────────────────────────────────────────────┘
              │
              ▼
        ParseResult(request, consumed)

    ==========================================================================
    REGEX PATTERNS
    ==========================================================================

    REQUEST_LINE_PATTERN: ^(TOKEN) ([^ ]+) ([^ ]+)$
        Method must be an RFC 7230 token. The version only has to be present;
        it is recorded but not checked.

    HEADER_PATTERN: ^(TOKEN):[ \\t]*(.*?)[ \\t]*$
        A header name is a token immediately followed by a colon. Leading and
        trailing optional whitespace is stripped from the value. A line
        starting with whitespace (obsolete folding) does not match and is
        rejected.

    ==========================================================================
    """

    KNOWN_METHODS = {
        "GET",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "HEAD",
        "OPTIONS",
        "TRACE",
        "CONNECT",
    }

    _TOKEN = r"[!#$%&'*+.^_`|~0-9A-Za-z-]+"

    REQUEST_LINE_PATTERN = re.compile(rf"^({_TOKEN}) ([^ ]+) ([^ ]+)$")
    HEADER_PATTERN = re.compile(rf"^({_TOKEN}):[ \t]*(.*?)[ \t]*$")

    def __init__(self, max_headers: int = 64, complete_body: bool = False):
        """
        Args:
            max_headers:   Header budget. A request with more header lines
                           fails with 431 instead of growing without bound.
            complete_body: Wait for Content-Length body bytes instead of
                           taking whatever is buffered.
        """
        self.max_headers = max_headers
        self.complete_body = complete_body

    def parse(
        self,
        data: bytes,
        client_address: Tuple[str, int] = ("", 0),
    ) -> ParseResult:
        """
        Attempt to parse one request from the front of `data`.

        Args:
            data: Bytes buffered so far on the connection.
            client_address: Peer (ip, port), copied onto the request.

        Returns:
            A complete or incomplete ParseResult.

        Raises:
            HTTPParseError: If the bytes are not a valid request.
        """
        data = bytes(data)

        # Clients may send a bare CRLF after a body; RFC 7230 §3.5 says to
        # ignore empty lines before the request line.
        start = 0
        while data.startswith(CRLF, start):
            start += len(CRLF)

        header_end = data.find(HEADER_TERMINATOR, start)
        if header_end == -1:
            line_end = data.find(CRLF, start)
            if line_end != -1:
                self._parse_request_line(self._decode(data[start:line_end]))
                self._check_header_budget(data.count(CRLF, line_end + len(CRLF)))
            return ParseResult.incomplete()

        lines = self._decode(data[start:header_end]).split("\r\n")
        method, path, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        consumed = header_end + len(HEADER_TERMINATOR)
        body = data[consumed:]

        if self.complete_body:
            expected = self._content_length(headers)
            if len(body) < expected:
                return ParseResult.incomplete()
            body = body[:expected]

        request = HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            body=body,
            client_address=client_address,
        )
        return ParseResult(request=request, consumed=consumed)

    @staticmethod
    def _decode(raw: bytes) -> str:
        # Header bytes outside ASCII are rare; replace rather than fail.
        return raw.decode("utf-8", errors="replace")

    def _parse_request_line(self, line: str) -> Tuple[str, str, str]:
        """
        Parse "METHOD SP TARGET SP VERSION".

        Raises:
            HTTPParseError: If the line does not have that shape.
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line[:80]!r}")
        method, target, version = match.groups()
        return method, target, version

    def _parse_headers(self, lines: List[str]) -> List[Header]:
        """
        Parse header lines into an ordered list of (name, value).

        Raises:
            HTTPParseError: 400 on a malformed line, 431 once the header
                            budget is exceeded.
        """
        self._check_header_budget(len(lines))
        headers: List[Header] = []

        for line in lines:
            match = self.HEADER_PATTERN.match(line)
            if not match:
                raise HTTPParseError(f"Malformed header line: {line[:80]!r}")

            name, value = match.groups()
            headers.append((name, value))

        return headers

    def _check_header_budget(self, count: int) -> None:
        """
        Fail with 431 once more than max_headers header lines were seen.

        Also called on a partial header block, so a client that never sends
        the blank line cannot grow the buffer past the budget.
        """
        if count > self.max_headers:
            raise HTTPParseError(
                f"Too many headers (limit {self.max_headers})",
                status_code=HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE,
            )

    @staticmethod
    def _content_length(headers: List[Header]) -> int:
        for name, value in headers:
            if name.lower() == "content-length":
                try:
                    length = int(value)
                except ValueError:
                    raise HTTPParseError(f"Invalid Content-Length: {value!r}")
                if length < 0:
                    raise HTTPParseError(f"Invalid Content-Length: {value!r}")
                return length
        return 0


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def parse_request(
    data: bytes,
    client_address: Tuple[str, int] = ("", 0),
    max_headers: int = 64,
) -> ParseResult:
    """
    Parse with a throwaway RequestParser.

    Use RequestParser directly when parsing many requests with the same
    settings, as the connection loop does.
    """
    return RequestParser(max_headers=max_headers).parse(data, client_address)
