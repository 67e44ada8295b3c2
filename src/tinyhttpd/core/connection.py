"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket with buffering, timeouts and a small state
machine. The HTTP server loop drives it; the connection itself knows nothing
about routing.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

TCP does not preserve message boundaries. A request sent in one write may
arrive split across several recv() calls, and a single recv() may carry the
tail of one request plus the start of the next:

    Client sends:
        GET /echo/abc HTTP/1.1\\r\\nHost: x\\r\\n\\r\\n

    Server might receive:
        recv() → "GET /echo/a"
        recv() → "bc HTTP/1.1\\r\\nHost: x\\r\\n\\r\\n"

So bytes go into a per-connection buffer, and the request parser is asked
after every recv() whether the buffer now holds a whole request.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │     NEW ──► READING ──► DISPATCHING ──► WRITING ──┐                  │
    │                ▲  │                        │      │ keep_alive       │
    │                │  │ timeout / EOF /        │      │                  │
    │                │  │ socket error           │      ▼                  │
    │                │  └──────────► CLOSED ◄────┘   READING               │
    │                │                    ▲      not keep_alive            │
    │                └────────────────────┼── (next request)               │
    │                                     │                                │
    │                       malformed request, after the 4xx               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

keep_alive starts True and only ever goes False: a single
"Connection: close" request makes the connection close after that response,
whatever later bytes the client might still send.

=============================================================================
TIMEOUTS
=============================================================================

Every recv() waits at most read_timeout seconds (5 by default). A client
that goes quiet for that long, whether before its first request, between
requests, or halfway through one, has its connection closed without any
response. The timeout only ends this connection; other connections are not
affected.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Tuple
import uuid

from ..http.request import HTTPRequest, RequestParser


logger = logging.getLogger(__name__)

DRAIN_TIMEOUT = 0.5


class ConnectionState(Enum):
    """Connection lifecycle states."""
    NEW = "new"                  # Accepted, nothing read yet
    READING = "reading"          # Waiting for (the rest of) a request
    DISPATCHING = "dispatching"  # Request parsed, handler is running
    WRITING = "writing"          # Sending the response
    CLOSED = "closed"            # Socket released


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short unique identifier, used as a log prefix.
        state: Current ConnectionState.
        keep_alive: False once the client asked for Connection: close.
        created_at: Timestamp when the connection was accepted.
        requests_handled: Number of requests answered on this connection.
        buffer_size: Bytes requested per recv().
        read_timeout: Inactivity timeout for each recv(), in seconds.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    keep_alive: bool = True
    created_at: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 4096
    read_timeout: float = 5.0

    _buffer: bytearray = field(default_factory=bytearray, repr=False)

    def __post_init__(self):
        self.socket.settimeout(self.read_timeout)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def age(self) -> float:
        """Connection age in seconds."""
        return time.time() - self.created_at

    @property
    def buffered(self) -> int:
        """Bytes received but not yet consumed by a request."""
        return len(self._buffer)

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self, parser: RequestParser) -> Optional[HTTPRequest]:
        """
        Read until `parser` produces a complete request.

        ┌─────────────────────────────────────────────────────────────────┐
        │                    read_request() Flow                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │   buffer not empty? ── parse ── complete? ──► drop consumed      │
        │         │                │                    bytes, return      │
        │         │            incomplete                                  │
        │         ▼                ▼                                       │
        │   recv(buffer_size)  (bounded by read_timeout)                   │
        │         │                                                        │
        │         ├── b""      → None (client closed)                      │
        │         ├── timeout  → None (idle client)                        │
        │         └── bytes    → append to buffer, parse again             │
        │                                                                  │
        └─────────────────────────────────────────────────────────────────┘

        The bytes dropped are the consumed span plus the body the parser
        handed to the request, so whatever was buffered behind the headers
        goes with this request unless the parser trimmed it.

        Returns:
            The parsed request, or None if the client went away or idled
            out.

        Raises:
            HTTPParseError: The buffered bytes are not a valid request.
            OSError: The socket failed.
        """
        self.state = ConnectionState.READING

        while True:
            if self._buffer:
                result = parser.parse(self._buffer, self.address)
                if result.is_complete:
                    request = result.request
                    del self._buffer[:result.consumed + len(request.body)]
                    if request.wants_close:
                        self.keep_alive = False
                    self.state = ConnectionState.DISPATCHING
                    return request

            try:
                chunk = self._recv()
            except socket.timeout:
                logger.debug(
                    f"[{self.id}] Read timeout after {self.read_timeout}s "
                    f"({len(self._buffer)} bytes buffered)"
                )
                return None

            if not chunk:
                logger.debug(f"[{self.id}] Client closed the connection")
                return None

            self._buffer += chunk

    def _recv(self) -> bytes:
        return self.socket.recv(self.buffer_size)

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Write a serialized response.

        sendall() keeps writing until every byte is out or the socket
        fails.

        Returns:
            True if the whole response was sent, False if the connection
            was lost.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.error(f"[{self.id}] Send failed: {e}")
            return False
        self.requests_handled += 1
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection. Safe to call more than once.

        ┌─────────────────────────────────────────────────────────────────┐
        │   1. shutdown(SHUT_WR)   FIN: the client sees the end of the    │
        │                          last response                          │
        │   2. drain               discard whatever the client still      │
        │                          sends, for at most DRAIN_TIMEOUT       │
        │   3. close()             release the file descriptor            │
        └─────────────────────────────────────────────────────────────────┘

        Closing with unread bytes in the kernel buffer makes the OS send a
        RST, which can destroy the response the client has not read yet.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        # DRAIN_TIMEOUT bounds the whole drain, not each recv().
        deadline = time.monotonic() + DRAIN_TIMEOUT
        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                if not self.socket.recv(1024):
                    break
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed after {self.requests_handled} requests "
            f"({self.age:.2f}s)"
        )

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        """
        Close automatically at the end of a with block:

            with conn:
                request = conn.read_request(parser)
                conn.send_response(response.to_bytes())
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
