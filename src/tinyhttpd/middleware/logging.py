"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

One line per answered request on the "tinyhttpd.access" logger, in the
Apache combined format plus the response encoding and the handling time:

    127.0.0.1 - - [19/Oct/2026:10:15:02 +0000] "GET /echo/abc HTTP/1.1" 200 23 "-" "curl/8.4.0" gzip 0.41ms

    client, timestamp, request line, status, body bytes sent, Referer,
    User-Agent, Content-Encoding ("-" for none), time spent in the chain.

The logger is separate from the server's module loggers so it can be routed
or silenced on its own:

    logging.getLogger("tinyhttpd.access").setLevel(logging.WARNING)

The line is written after the router answered, so 404 and 405 responses
show up with their final status. A handler that raised something other than
an HTTPError is logged at ERROR and the exception is re-raised for the
server to turn into a 500.

=============================================================================
"""

import json
import logging
import time
from dataclasses import asdict, dataclass

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("tinyhttpd.access")

FORMATS = ("text", "json")


@dataclass
class RequestLog:
    """One access log entry."""

    client_ip: str
    timestamp: str
    method: str
    path: str
    version: str
    status: int
    bytes_sent: int
    bytes_received: int
    referer: str
    user_agent: str
    encoding: str
    duration_ms: float

    @classmethod
    def from_exchange(cls, request: HTTPRequest, response: HTTPResponse, duration_ms: float) -> "RequestLog":
        return cls(
            client_ip=request.client_address[0] or "-",
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
            method=request.method,
            path=request.path,
            version=request.version,
            status=int(response.status),
            bytes_sent=len(response.body),
            bytes_received=len(request.body),
            referer=request.get_header("Referer", "-"),
            user_agent=request.user_agent or "-",
            encoding=response.get_header("Content-Encoding", "-"),
            duration_ms=round(duration_ms, 2),
        )

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path} {self.version}" {self.status} {self.bytes_sent} '
            f'"{self.referer}" "{self.user_agent}" {self.encoding} {self.duration_ms:.2f}ms'
        )

    def to_json(self) -> str:
        return json.dumps(asdict(self))


class LoggingMiddleware(Middleware):
    """
    Access log middleware. Add it first so its timing covers the rest of
    the chain:

        pipeline.add(LoggingMiddleware())                   # combined format
        pipeline.add(LoggingMiddleware(log_format="json"))  # one object per line
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        if log_format not in FORMATS:
            raise ValueError(f"Unknown log format: {log_format}")
        self.log_format = log_format
        self.log_level = log_level

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        started = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            elapsed = (time.perf_counter() - started) * 1000
            logger.error(
                f'{request.client_address[0] or "-"} "{request.method} {request.path}" '
                f"failed after {elapsed:.2f}ms: {type(e).__name__}: {e}"
            )
            raise

        if logger.isEnabledFor(self.log_level):
            entry = RequestLog.from_exchange(request, response, (time.perf_counter() - started) * 1000)
            line = entry.to_json() if self.log_format == "json" else entry.to_text()
            logger.log(self.log_level, line)

        return response
