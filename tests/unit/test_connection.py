"""
Unit tests for Connection, driven over a socketpair.
"""

import socket
import threading
import time

import pytest

from tinyhttpd.core.connection import DRAIN_TIMEOUT, Connection, ConnectionState
from tinyhttpd.http.errors import HTTPParseError
from tinyhttpd.http.request import RequestParser


@pytest.fixture
def pair():
    server_side, client_side = socket.socketpair()
    yield server_side, client_side
    server_side.close()
    client_side.close()


def make_connection(sock: socket.socket, read_timeout: float = 1.0) -> Connection:
    return Connection(socket=sock, address=("127.0.0.1", 5000), read_timeout=read_timeout)


class TestReadRequest:

    def test_reads_one_request(self, pair, parser: RequestParser):
        server_side, client_side = pair
        conn = make_connection(server_side)
        client_side.sendall(b"GET /echo/abc HTTP/1.1\r\nHost: x\r\n\r\n")

        request = conn.read_request(parser)

        assert request.path == "/echo/abc"
        assert request.client_address == ("127.0.0.1", 5000)
        assert conn.state == ConnectionState.DISPATCHING
        assert conn.buffered == 0
        assert conn.keep_alive is True

    def test_reassembles_split_request(self, pair, parser: RequestParser):
        server_side, client_side = pair
        conn = make_connection(server_side)
        client_side.sendall(b"GET /user-agent HTTP/1.1\r\nUser-")

        timer = threading.Timer(0.2, client_side.sendall, args=(b"Agent: split\r\n\r\n",))
        timer.start()
        try:
            request = conn.read_request(parser)
        finally:
            timer.join()

        assert request.user_agent == "split"

    def test_two_requests_in_one_segment(self, pair):
        server_side, client_side = pair
        parser = RequestParser(complete_body=True)
        conn = make_connection(server_side)
        client_side.sendall(b"GET /a HTTP/1.1\r\n\r\nGET /b HTTP/1.1\r\n\r\n")

        # Content-Length framing leaves the second request in the buffer.
        first = conn.read_request(parser)
        second = conn.read_request(parser)

        assert first.path == "/a"
        assert second.path == "/b"

    def test_default_parser_takes_trailing_bytes_as_body(self, pair, parser: RequestParser):
        server_side, client_side = pair
        conn = make_connection(server_side)
        client_side.sendall(b"POST /files/a HTTP/1.1\r\nContent-Length: 3\r\n\r\nabc")

        request = conn.read_request(parser)

        assert request.body == b"abc"
        assert conn.buffered == 0

    def test_eof_returns_none(self, pair, parser: RequestParser):
        server_side, client_side = pair
        conn = make_connection(server_side)
        client_side.close()

        assert conn.read_request(parser) is None

    def test_timeout_returns_none(self, pair, parser: RequestParser):
        server_side, _ = pair
        conn = make_connection(server_side, read_timeout=0.2)

        assert conn.read_request(parser) is None

    def test_timeout_mid_request(self, pair, parser: RequestParser):
        server_side, client_side = pair
        conn = make_connection(server_side, read_timeout=0.2)
        client_side.sendall(b"GET / HTTP/1.1\r\nHost")

        assert conn.read_request(parser) is None
        assert conn.buffered > 0

    def test_malformed_raises(self, pair, parser: RequestParser):
        server_side, client_side = pair
        conn = make_connection(server_side)
        client_side.sendall(b"NONSENSE\r\n\r\n")

        with pytest.raises(HTTPParseError):
            conn.read_request(parser)

    def test_connection_close_is_sticky(self, pair, parser: RequestParser):
        server_side, client_side = pair
        conn = make_connection(server_side)

        client_side.sendall(b"GET / HTTP/1.1\r\nConnection: close\r\n\r\n")
        conn.read_request(parser)
        assert conn.keep_alive is False

        client_side.sendall(b"GET / HTTP/1.1\r\nConnection: keep-alive\r\n\r\n")
        conn.read_request(parser)
        assert conn.keep_alive is False


class TestWriteAndClose:

    def test_send_response(self, pair):
        server_side, client_side = pair
        conn = make_connection(server_side)

        assert conn.send_response(b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\n\r\n")
        assert conn.requests_handled == 1
        assert client_side.recv(1024).startswith(b"HTTP/1.1 200 OK")

    def test_send_after_peer_closed(self, pair):
        server_side, client_side = pair
        conn = make_connection(server_side)
        client_side.close()

        # A large write makes the broken pipe surface on this call.
        assert conn.send_response(b"x" * (1 << 20)) is False

    def test_close_bounded_while_peer_trickles(self, pair):
        server_side, client_side = pair
        conn = make_connection(server_side)
        stop = threading.Event()

        def trickle():
            while not stop.is_set():
                try:
                    client_side.sendall(b"x")
                except OSError:
                    return
                stop.wait(0.1)

        sender = threading.Thread(target=trickle, daemon=True)
        sender.start()
        try:
            started = time.monotonic()
            conn.close()
            elapsed = time.monotonic() - started
        finally:
            stop.set()
            sender.join()

        assert conn.is_closed
        assert elapsed < DRAIN_TIMEOUT + 1.0

    def test_close_is_idempotent(self, pair):
        server_side, client_side = pair
        with make_connection(server_side) as conn:
            pass

        assert conn.is_closed
        conn.close()
        assert client_side.recv(1024) == b""
