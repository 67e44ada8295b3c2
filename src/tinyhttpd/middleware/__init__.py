"""
=============================================================================
MIDDLEWARE
=============================================================================

Cross-cutting request processing wrapped around the router.

LoggingMiddleware:
    One access log line per request with status, size and timing.

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog


__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
]
