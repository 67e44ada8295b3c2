"""
=============================================================================
URL ROUTER
=============================================================================

Maps a request path to exactly one handler.

=============================================================================
MATCHING RULES
=============================================================================

Routes are tried in registration order and the FIRST match wins:

    ┌──────────────────┬──────────┬──────────────────────────────────────┐
    │ Registered path  │ Match    │ Examples                             │
    ├──────────────────┼──────────┼──────────────────────────────────────┤
    │ /                │ exact    │ "/" only                             │
    │ /echo            │ prefix   │ "/echo", "/echo/abc", "/echoes"      │
    │ /files           │ prefix   │ "/files/a.txt", "/files"             │
    └──────────────────┴──────────┴──────────────────────────────────────┘

Only the path selects the route. The method is checked afterwards; a
handler registered for ANY ("*") serves every method on its route:

    path matches, method (or ANY) registered → call handler
    path matches, method NOT registered      → 405 Method Not Allowed + Allow
    no route matches                         → 404 Not Found

Because the method is not part of the match, a DELETE on /files/x is a 405
from the files route rather than a fall-through to some later route.

=============================================================================
ERROR CONVERSION
=============================================================================

Handlers signal client-visible failures by raising HTTPError subclasses
(MissingHeaderError, NotFoundError, ...). Router.handle() turns those into
the matching response so the connection carries on. Anything else (OSError,
bugs) propagates to the server, which answers 500.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .errors import HTTPError, MethodNotAllowedError, NotFoundError
from .request import HTTPRequest
from .response import HTTPResponse, error_response


# Handler: takes a request, returns a response
Handler = Callable[[HTTPRequest], HTTPResponse]

# Method key for a handler that serves every method
ANY = "*"


@dataclass
class Route:
    """
    A registered path with one handler per method.

        Route(path="/files", exact=False,
              handlers={"GET": files.get, "POST": files.post})
    """

    path: str
    exact: bool = False
    handlers: Dict[str, Handler] = field(default_factory=dict)
    name: Optional[str] = None

    def matches(self, path: str) -> bool:
        if self.exact:
            return path == self.path
        return path.startswith(self.path)

    @property
    def allowed_methods(self) -> List[str]:
        return sorted(self.handlers)


class Router:
    """
    First-match-wins prefix router.

    ==========================================================================
    USAGE
    ==========================================================================

        router = Router()

        @router.get("/", exact=True)
        def index(request):
            return ok()

        files = FileHandler("/tmp/data")
        router.add_route("/files", files.get, method="GET")
        router.add_route("/files", files.post, method="POST")

        response = router.handle(request)

    Registering the same path twice with different methods extends the
    existing route instead of creating a second one, so the route keeps its
    original position in the match order.
    ==========================================================================
    """

    def __init__(self):
        self._routes: List[Route] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: str = "GET",
        exact: bool = False,
        name: Optional[str] = None,
    ) -> Route:
        """
        Register `handler` for `method` on `path`.

        Args:
            path: Exact path or path prefix.
            handler: Function taking a request and returning a response.
            method: HTTP method this handler serves.
            exact: Require the whole path to equal `path`.
            name: Optional label, shown by print_routes().

        Returns:
            The (new or extended) Route.
        """
        route = self._find(path, exact)
        if route is None:
            route = Route(path=path, exact=exact, name=name)
            self._routes.append(route)
        route.handlers[method.upper()] = handler
        return route

    def _find(self, path: str, exact: bool) -> Optional[Route]:
        for route in self._routes:
            if route.path == path and route.exact == exact:
                return route
        return None

    def route(self, path: str, method: str = "GET", exact: bool = False, name: Optional[str] = None):
        """
        Decorator form of add_route().

            @router.route("/files", method="POST")
            def upload(request):
                ...
        """
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method=method, exact=exact, name=name)
            return handler
        return decorator

    def get(self, path: str, exact: bool = False, name: Optional[str] = None):
        """Decorator for GET routes."""
        return self.route(path, "GET", exact=exact, name=name)

    def post(self, path: str, exact: bool = False, name: Optional[str] = None):
        """Decorator for POST routes."""
        return self.route(path, "POST", exact=exact, name=name)

    # =========================================================================
    # MATCHING AND DISPATCH
    # =========================================================================

    def match(self, path: str) -> Optional[Route]:
        """Return the first route whose path matches, or None."""
        for route in self._routes:
            if route.matches(path):
                return route
        return None

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """
        Call the handler for `request`, letting HTTPError propagate.

        Raises:
            NotFoundError: No route matches the path.
            MethodNotAllowedError: The route has no handler for the method
                                   and no ANY handler.
        """
        route = self.match(request.path)
        if route is None:
            raise NotFoundError("Invalid path")

        handler = route.handlers.get(request.method.upper()) or route.handlers.get(ANY)
        if handler is None:
            raise MethodNotAllowedError(request.method, route.allowed_methods)

        return handler(request)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request and convert HTTPError into a response.

        This is the entry point the server wraps with middleware.
        """
        try:
            return self.dispatch(request)
        except HTTPError as e:
            return error_response(e)

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def routes(self) -> List[Route]:
        return list(self._routes)

    def print_routes(self) -> None:
        """
        Print all registered routes.

        Example output:
            Registered Routes:
            ------------------------------------------------------------
              *          /            (exact)
              *          /echo
              GET,POST   /files
            ------------------------------------------------------------
        """
        print("\nRegistered Routes:")
        print("-" * 60)
        for route in self._routes:
            methods = ",".join(route.allowed_methods)
            suffix = "  (exact)" if route.exact else ""
            print(f"  {methods:10} {route.path}{suffix}")
        print("-" * 60)
