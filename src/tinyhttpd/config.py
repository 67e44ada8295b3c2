"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable of the server lives in one dataclass, filled from code, the
environment or the command line:

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m tinyhttpd --port 3000                           │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── TINYHTTPD_PORT=3000 python -m tinyhttpd                   │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    └─────────────────────────────────────────────────────────────────────┘

Values are validated once at startup by validate(); the server never
re-checks them while serving.

=============================================================================
"""

import logging
import os
from dataclasses import dataclass


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK
    - host, port, backlog, buffer_size, read_timeout

    HTTP
    - max_headers, complete_body, gzip_level

    FILES
    - directory, confine_files

    LOGGING
    - log_level, access_log

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. Loopback by default."""

    port: int = 4221
    """Port to listen on. 0 asks the OS for a free port (used by tests)."""

    backlog: int = 128
    """Pending connections the OS queues before refusing new ones."""

    buffer_size: int = 4096
    """Bytes requested per recv() call."""

    read_timeout: float = 5.0
    """
    Seconds a connection may stay silent before it is closed. Applies to
    every read: before the first request, between requests and inside a
    partially received one.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────────────

    max_headers: int = 64
    """Header budget per request. More headers → 431."""

    complete_body: bool = False
    """
    When False the request body is whatever arrived with the headers.
    When True the connection waits for Content-Length body bytes.
    """

    gzip_level: int = 6
    """Compression level for gzip-encoded echo responses (1-9)."""

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    directory: str = "."
    """Directory served under /files/."""

    confine_files: bool = True
    """Refuse file names that resolve outside `directory` (403)."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG shows accepts, closes and idle timeouts."""

    access_log: bool = True
    """One log line per request on the tinyhttpd.access logger."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        TINYHTTPD_HOST          Bind address (default: 127.0.0.1)
        TINYHTTPD_PORT          Port (default: 4221)
        TINYHTTPD_DIRECTORY     Served directory (default: .)
        TINYHTTPD_READ_TIMEOUT  Read timeout in seconds (default: 5)
        TINYHTTPD_LOG_LEVEL     Logging level (default: INFO)

        =====================================================================
        """
        return cls(
            host=os.getenv("TINYHTTPD_HOST", "127.0.0.1"),
            port=int(os.getenv("TINYHTTPD_PORT", "4221")),
            directory=os.getenv("TINYHTTPD_DIRECTORY", "."),
            read_timeout=float(os.getenv("TINYHTTPD_READ_TIMEOUT", "5")),
            log_level=os.getenv("TINYHTTPD_LOG_LEVEL", "INFO").upper(),
        )

    @property
    def log_level_value(self) -> int:
        """log_level as a logging module constant."""
        return getattr(logging, self.log_level.upper())

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.read_timeout <= 0:
            raise ValueError("read_timeout must be > 0")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.backlog < 0:
            raise ValueError("backlog must be >= 0")

        if self.max_headers < 1:
            raise ValueError("max_headers must be >= 1")

        if not 1 <= self.gzip_level <= 9:
            raise ValueError(f"gzip_level must be 1-9, got {self.gzip_level}")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(
                f"Unknown log level: {self.log_level}. "
                f"Choose one of {', '.join(LOG_LEVELS)}."
            )
