"""
=============================================================================
CONTENT ENCODING (gzip)
=============================================================================

Content negotiation for the echo route.

    Request:   Accept-Encoding: deflate, gzip, br
    Response:  Content-Encoding: gzip
               Content-Length: <compressed size>

The negotiation is deliberately simple: the first Accept-Encoding header is
searched for the substring "gzip" (case-sensitive). Quality values such as
"gzip;q=0" are not interpreted.

=============================================================================
COMPRESSION LEVELS
=============================================================================

    Level 1:  Fastest compression, lowest ratio
    Level 6:  Balanced (zlib's default) - used here
    Level 9:  Best compression, slowest (gzip.compress's own default)

=============================================================================
"""

import gzip

from .request import HTTPRequest


GZIP = "gzip"
DEFAULT_LEVEL = 6


def accepts_gzip(request: HTTPRequest) -> bool:
    """Check if the client advertised gzip in Accept-Encoding."""
    return GZIP in request.accept_encoding


def gzip_encode(data: bytes, level: int = DEFAULT_LEVEL) -> bytes:
    """
    Compress `data` into a gzip member.

    Any byte sequence is valid input, including the empty one, which still
    yields a complete (header + trailer) gzip stream.
    """
    return gzip.compress(data, compresslevel=level)
