"""
=============================================================================
MIDDLEWARE PIPELINE
=============================================================================

Middleware wraps the router with behaviour that applies to every request,
such as access logging, without touching the handlers themselves.

    request ──► Middleware 1 ──► Middleware 2 ──► router.handle
                     │                │                │
    response ◄───────┘ ◄──────────────┘ ◄──────────────┘

Each middleware is a callable taking the request and the next handler in the
chain. It may act before calling next, after it, or instead of it.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# The next middleware, or the router at the end of the chain.
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

        class Timing(Middleware):
            def __call__(self, request, next):
                start = time.perf_counter()
                response = next(request)
                logger.info(f"{request.path} took {time.perf_counter() - start:.3f}s")
                return response

    Responses are immutable; to change one, return a new value, e.g.
    `return next(request).with_header("X-Served-By", "tinyhttpd")`.
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request.

        Args:
            request: The incoming request.
            next: The rest of the chain. Call it to continue.

        Returns:
            The response from next(), or one produced here.
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains middleware around a final handler.

    The first middleware added is the outermost:

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())
        handler = pipeline.wrap(router.handle)

        response = handler(request)   # LoggingMiddleware → router.handle
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """
        Append middleware (innermost so far).

        Returns:
            Self for chaining.
        """
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around `handler`.

        Given [MW1, MW2] the result calls MW1 → MW2 → handler. Wrapping runs
        in reverse so the first added ends up outermost.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    @staticmethod
    def _create_wrapped_handler(middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)
