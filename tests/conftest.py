"""
pytest configuration and fixtures.
"""

import socket
from pathlib import Path
from typing import Generator, Tuple

import pytest

from tinyhttpd import HTTPServer, ServerConfig
from tinyhttpd.http import RequestParser


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /echo/abc HTTP/1.1\r\n"
        b"Host: localhost:4221\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: */*\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b"12345"
    return (
        b"POST /files/notes.txt HTTP/1.1\r\n"
        b"Host: localhost:4221\r\n"
        b"Content-Type: application/octet-stream\r\n"
        + b"Content-Length: %d\r\n" % len(body)
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def parser() -> RequestParser:
    return RequestParser()


@pytest.fixture
def files_dir(tmp_path: Path) -> Path:
    """Empty directory served under /files/."""
    directory = tmp_path / "files"
    directory.mkdir()
    return directory


@pytest.fixture
def config(files_dir: Path) -> ServerConfig:
    """Test server configuration on an ephemeral port."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        directory=str(files_dir),
        read_timeout=2.0,
        log_level="WARNING",
    )


@pytest.fixture
def server(config: ServerConfig) -> Generator[HTTPServer, None, None]:
    """A running server; shut down after the test."""
    srv = HTTPServer(config)
    srv.start()
    yield srv
    srv.shutdown(timeout=1.0)


@pytest.fixture
def address(server: HTTPServer) -> Tuple[str, int]:
    return server.address


@pytest.fixture
def client(address: Tuple[str, int]) -> Generator[socket.socket, None, None]:
    """A TCP socket connected to the running server."""
    sock = socket.create_connection(address, timeout=5.0)
    yield sock
    sock.close()
