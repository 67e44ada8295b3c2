"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the listener, the per-connection loop, the router and the middleware
together.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │RequestParser │    │    Router    │        │
    │    │ (1 thread /  │    │              │    │  + Logging   │        │
    │    │  connection) │    │              │    │  middleware  │        │
    │    └──────┬───────┘    └──────────────┘    └──────┬───────┘        │
    │           ▼                                       ▼                 │
    │    ┌──────────────┐                        ┌──────────────┐        │
    │    │  Connection  │                        │   Handlers   │        │
    │    └──────────────┘                        └──────────────┘        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE (per connection thread)
=============================================================================

    1. read_request()     buffer + parse until a whole request is there
                          (None on idle timeout or EOF → close)
    2. Connection: close  sticky: keep_alive stays False from here on
    3. dispatch           middleware → router → handler
                          HTTPError    → its 4xx/5xx response
                          anything else → 500, connection survives
    4. write              Connection: close added when not keep-alive
    5. loop or close

A request that cannot be parsed gets its 400 (or 431) with
Connection: close, and the connection ends: there is no way to tell where
the next request would start.

=============================================================================
"""

import functools
import logging
import threading
import time
from typing import Callable, Optional, Tuple

from .config import ServerConfig
from .core import Connection, SocketServer
from .handlers import FileHandler, echo, root, user_agent
from .http import (
    ANY,
    HTTPParseError,
    HTTPRequest,
    HTTPResponse,
    RequestParser,
    Router,
    error_response,
    internal_error,
)
from .middleware import LoggingMiddleware, Middleware, MiddlewarePipeline


logger = logging.getLogger(__name__)

SERVER_ERROR_MESSAGE = "The server encountered an error and could not complete your request."


def build_router(config: ServerConfig) -> Router:
    """
    The default route table, in match order.

        /             exact    any        root
        /echo         prefix   any        echo (gzip when accepted)
        /user-agent   prefix   any        user_agent
        /files        prefix   GET, POST  FileHandler on config.directory
    """
    router = Router()
    files = FileHandler(config.directory, confine=config.confine_files)

    router.add_route("/", root, method=ANY, exact=True, name="root")
    router.add_route(
        "/echo", functools.partial(echo, gzip_level=config.gzip_level), method=ANY, name="echo"
    )
    router.add_route("/user-agent", user_agent, method=ANY, name="user-agent")
    router.add_route("/files", files.get, method="GET", name="files")
    router.add_route("/files", files.post, method="POST")

    return router


class HTTPServer:
    """
    Threaded HTTP/1.1 server.

    =========================================================================
    USAGE
    =========================================================================

        # Blocking, stops on Ctrl+C / SIGTERM
        HTTPServer(ServerConfig(directory="/tmp/data")).run()

        # Background, e.g. in tests
        server = HTTPServer(ServerConfig(port=0))
        server.start()
        host, port = server.address
        ...
        server.shutdown()

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None, router: Optional[Router] = None):
        """
        Args:
            config: Server configuration. Validated here, so a bad value
                    fails before anything binds.
            router: Route table. Defaults to build_router(config).
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._parser = RequestParser(
            max_headers=self.config.max_headers,
            complete_body=self.config.complete_body,
        )
        self._router = router or build_router(self.config)

        self._middleware = MiddlewarePipeline()
        if self.config.access_log:
            self._middleware.add(LoggingMiddleware())

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._startup_error: Optional[BaseException] = None

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """
        Add middleware inside the ones already registered. Must be called
        before the server starts.
        """
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port); the real port once started with port 0."""
        return self._socket_server.address

    @property
    def active_connections(self) -> int:
        """Connection threads still alive."""
        return self._socket_server.active_connections

    @property
    def is_running(self) -> bool:
        return self._running and self._socket_server.is_running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Serve in the calling thread until SIGINT/SIGTERM or shutdown().

        Raises:
            OSError: The address could not be bound.
        """
        self._setup_logging()
        logger.info(
            f"Starting HTTP server on {self.config.host}:{self.config.port}, "
            f"serving files from {self.config.directory}"
        )
        try:
            self._serve()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._stop(timeout=self.config.read_timeout)

    def start(self, timeout: float = 5.0) -> Tuple[str, int]:
        """
        Serve on a background thread and return once the socket is bound.

        Returns:
            The bound (host, port).

        Raises:
            RuntimeError: The server did not come up within `timeout`.
        """
        self._startup_error = None
        self._thread = threading.Thread(target=self._serve_in_background, name="tinyhttpd", daemon=True)
        self._thread.start()

        deadline = time.monotonic() + timeout
        while not self._socket_server.ready.wait(0.05):
            if not self._thread.is_alive() or time.monotonic() > deadline:
                self.shutdown()
                raise RuntimeError(f"Server failed to start: {self._startup_error or 'timed out'}")
        return self.address

    def shutdown(self, timeout: float = 5.0):
        """
        Stop accepting connections and wait for the live ones.

        Connections idle in a keep-alive wait end on their own read timeout;
        `timeout` bounds how long each of them is waited for here.
        """
        self._running = False
        self._socket_server.shutdown()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self._stop(timeout)

    def _serve(self):
        self._handler = self._middleware.wrap(self._router.handle)
        self._running = True
        self._socket_server.start(self._process_connection)

    def _serve_in_background(self):
        try:
            self._serve()
        except OSError as e:
            self._startup_error = e
            self._running = False

    def _stop(self, timeout: float):
        self._running = False
        self._socket_server.join_connections(timeout)
        logger.info("Server stopped")

    def _setup_logging(self):
        logging.basicConfig(
            level=self.config.log_level_value,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("tinyhttpd").setLevel(self.config.log_level_value)

    # =========================================================================
    # CONNECTION LOOP
    # =========================================================================

    def _process_connection(self, conn: Connection):
        """
        Serve requests on one connection until it closes (runs on the
        connection's own thread).
        """
        with conn:
            while self._running:
                try:
                    request = conn.read_request(self._parser)
                except HTTPParseError as e:
                    logger.warning(f"[{conn.id}] Malformed request: {e.message}")
                    conn.keep_alive = False
                    self._send(conn, error_response(e))
                    break
                except OSError as e:
                    logger.error(f"[{conn.id}] Read failed: {e}")
                    break

                if request is None:
                    break

                response = self._dispatch(conn, request)

                if not self._send(conn, response):
                    break

                if not conn.keep_alive:
                    break

    def _dispatch(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        try:
            return self._handler(request)
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error on {request.method} {request.path}: {e}")
            return internal_error(SERVER_ERROR_MESSAGE)

    def _send(self, conn: Connection, response: HTTPResponse) -> bool:
        if not conn.keep_alive:
            response = response.connection_close()
        return conn.send_response(response.to_bytes())


def create_app(config: Optional[ServerConfig] = None) -> HTTPServer:
    """
    Factory for a server with the default routes.

        app = create_app(ServerConfig(port=8080, directory="/srv/files"))
        app.run()
    """
    return HTTPServer(config)
