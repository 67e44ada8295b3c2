"""
=============================================================================
TCP LISTENER
=============================================================================

Owns the listening socket and hands every accepted client to its own thread.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   start() ── bind ── listen ── ready ──► accept loop                 │
    │                                             │                        │
    │                                  accept() ──┤ (1 s poll)             │
    │                                             │                        │
    │                                  Connection(sock, addr)              │
    │                                             │                        │
    │                            Thread(target=handler, args=(conn,))      │
    │                                                                      │
    │   shutdown() ── stop flag ── loop exits ── close listener            │
    │              └─ join live connection threads (bounded)               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THREAD PER CONNECTION
=============================================================================

Connections share nothing: each thread owns its socket and buffer, so no
locks are needed around request handling. There is no cap on the number of
concurrent connections and no queue in front of them. The only shared
structure is the set of live threads, kept so shutdown() can wait for them.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Callable, Optional, Set, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)

ACCEPT_POLL_INTERVAL = 1.0


class SocketServer:
    """
    Threaded TCP listener.

    Usage:
        def handle_connection(conn: Connection):
            with conn:
                ...

        server = SocketServer(config)
        server.start(handle_connection)  # Blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._bound_address: Optional[Tuple[str, int]] = None

        # Set once the socket is listening; cleared again after cleanup.
        self.ready = threading.Event()
        self._shutdown_event = threading.Event()

        self._threads: Set[threading.Thread] = set()
        self._threads_lock = threading.Lock()

        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The address actually bound. Differs from the config when the port
        was 0.
        """
        if self._bound_address is not None:
            return self._bound_address
        return (self.config.host, self.config.port)

    @property
    def active_connections(self) -> int:
        with self._threads_lock:
            return len(self._threads)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Rebind immediately after a restart instead of waiting out TIME_WAIT.
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Responses are written in one sendall(); don't hold them back.
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes up periodically so the stop flag is noticed.
        sock.settimeout(ACCEPT_POLL_INTERVAL)

        return sock

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _setup_signals(self):
        """
        Route SIGTERM and SIGINT to shutdown().

        Python only allows signal handlers on the main thread, so a server
        started from a background thread skips this.
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # SERVING
    # =========================================================================

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and accept connections until shutdown() is called.

        Args:
            connection_handler: Called on a new thread for every accepted
                                connection. It owns the connection and must
                                close it.

        Raises:
            OSError: The address could not be bound.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self._bound_address = self._socket.getsockname()[:2]

        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()

        host, port = self._bound_address
        logger.info(f"Server listening on {host}:{port}")
        self.ready.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                buffer_size=self.config.buffer_size,
                read_timeout=self.config.read_timeout,
            )
            logger.debug(
                f"[{conn.id}] Accepted connection from "
                f"{client_address[0]}:{client_address[1]}"
            )
            self._spawn(connection_handler, conn)

    def _spawn(self, connection_handler: Callable[[Connection], None], conn: Connection):
        def run():
            try:
                connection_handler(conn)
            finally:
                with self._threads_lock:
                    self._threads.discard(thread)

        thread = threading.Thread(target=run, name=f"conn-{conn.id}", daemon=True)
        with self._threads_lock:
            self._threads.add(thread)
        thread.start()

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def shutdown(self):
        """
        Stop accepting connections. Idempotent, callable from any thread
        or a signal handler.
        """
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

    def join_connections(self, timeout: Optional[float] = None):
        """
        Wait for connection threads still running.

        Each thread is given `timeout` seconds; a client that keeps its
        connection open is cut off by its own read timeout anyway.
        """
        with self._threads_lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout)

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self.ready.clear()
        logger.info("Socket server stopped")

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Block until shutdown() is called.

        Returns:
            True if shutdown happened, False on timeout.
        """
        return self._shutdown_event.wait(timeout)
