"""
Unit tests for HTTP request parsing.
"""

import pytest

from tinyhttpd.http.request import (
    HTTPRequest,
    RequestParser,
    ParseResult,
    HTTPParseError,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, parser: RequestParser, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        result = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert result.is_complete
        request = result.request
        assert request.method == "GET"
        assert request.path == "/echo/abc"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)
        assert result.consumed == len(sample_get_request)

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that headers keep wire order and original casing."""
        request = parse_request(sample_get_request).request

        assert request.headers == [
            ("Host", "localhost:4221"),
            ("User-Agent", "pytest"),
            ("Accept", "*/*"),
        ]
        assert request.user_agent == "pytest"

    def test_parse_post_with_body(self, sample_post_request: bytes):
        """Test that the body is what follows the header terminator."""
        result = parse_request(sample_post_request)

        assert result.request.method == "POST"
        assert result.request.body == b"12345"
        assert result.consumed == len(sample_post_request) - 5

    def test_incomplete_without_terminator(self, parser: RequestParser):
        """Test that a request cut before the blank line is incomplete."""
        result = parser.parse(b"GET /echo/abc HTTP/1.1\r\nHost: x\r\n")

        assert not result.is_complete
        assert result == ParseResult.incomplete()

    def test_incomplete_partial_request_line(self, parser: RequestParser):
        """Test that half a request line is neither complete nor malformed."""
        assert not parser.parse(b"GET /ec").is_complete

    def test_incomplete_empty_buffer(self, parser: RequestParser):
        assert not parser.parse(b"").is_complete

    def test_completes_once_rest_arrives(self, parser: RequestParser):
        """Test parsing the same buffer again after more bytes arrive."""
        first = b"GET /echo/abc HTTP/1.1\r\nHo"
        assert not parser.parse(first).is_complete

        result = parser.parse(first + b"st: x\r\n\r\n")
        assert result.is_complete
        assert result.request.get_header("Host") == "x"

    def test_parse_invalid_request_line(self, parser: RequestParser):
        """Test handling of malformed request line."""
        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(b"GET\r\nHost: test\r\n\r\n")

        assert exc_info.value.status_code == 400

    def test_garbage_request_line_fails_early(self, parser: RequestParser):
        """Test that a bad first line is rejected before the headers end."""
        with pytest.raises(HTTPParseError):
            parser.parse(b"this is not http\r\n")

    def test_parse_malformed_header(self, parser: RequestParser):
        """Test that a header line without a colon is rejected."""
        with pytest.raises(HTTPParseError):
            parser.parse(b"GET / HTTP/1.1\r\nNoColonHere\r\n\r\n")

    def test_parse_header_with_space_before_colon(self, parser: RequestParser):
        with pytest.raises(HTTPParseError):
            parser.parse(b"GET / HTTP/1.1\r\nHost : x\r\n\r\n")

    def test_parse_missing_headers(self, parser: RequestParser):
        """Test parsing request with no headers."""
        request = parser.parse(b"GET / HTTP/1.1\r\n\r\n").request

        assert request.method == "GET"
        assert request.path == "/"
        assert request.headers == []

    def test_header_value_whitespace_stripped(self, parser: RequestParser):
        request = parser.parse(b"GET / HTTP/1.1\r\nUser-Agent:   curl/8.0  \r\n\r\n").request

        assert request.user_agent == "curl/8.0"

    def test_path_kept_verbatim(self, parser: RequestParser):
        """Test that the target is neither decoded nor split."""
        request = parser.parse(b"GET /echo/a%20b?x=1 HTTP/1.1\r\n\r\n").request

        assert request.path == "/echo/a%20b?x=1"

    def test_unknown_method_is_still_parsed(self, parser: RequestParser):
        """Test that any token method parses; routing decides what to do."""
        request = parser.parse(b"BREW /pot HTTP/1.1\r\n\r\n").request

        assert request.method == "BREW"

    def test_leading_crlf_ignored(self, parser: RequestParser):
        data = b"\r\nGET / HTTP/1.1\r\n\r\n"
        result = parser.parse(data)

        assert result.request.path == "/"
        assert result.consumed == len(data)

    def test_header_budget(self):
        """Test that exceeding the header budget is a 431, not a crash."""
        parser = RequestParser(max_headers=3)
        ok = b"GET / HTTP/1.1\r\n" + b"".join(b"X-%d: v\r\n" % i for i in range(3)) + b"\r\n"
        too_many = b"GET / HTTP/1.1\r\n" + b"".join(b"X-%d: v\r\n" % i for i in range(4)) + b"\r\n"

        assert len(parser.parse(ok).request.headers) == 3
        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(too_many)
        assert exc_info.value.status_code == 431

    def test_header_budget_without_terminator(self):
        """Test that the budget holds before the blank line arrives."""
        parser = RequestParser(max_headers=3)
        head = b"GET / HTTP/1.1\r\n" + b"".join(b"X-%d: v\r\n" % i for i in range(3))

        assert not parser.parse(head).is_complete
        assert not parser.parse(head + b"X-3: partial").is_complete
        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(head + b"X-3: v\r\n")
        assert exc_info.value.status_code == 431

    def test_default_header_budget_is_64(self):
        headers = b"".join(b"X-%d: v\r\n" % i for i in range(65))

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET / HTTP/1.1\r\n" + headers + b"\r\n")
        assert exc_info.value.status_code == 431

    def test_body_is_whatever_is_buffered(self, parser: RequestParser):
        """Test that by default a short body is not waited for."""
        data = b"POST /files/a HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc"
        result = parser.parse(data)

        assert result.is_complete
        assert result.request.body == b"abc"

    def test_content_length_handling(self):
        """Test Content-Length parsing on the request."""
        raw = b"POST / HTTP/1.1\r\nContent-Length: 9\r\n\r\ntest body"
        request = parse_request(raw).request

        assert request.content_length == 9
        assert request.body == b"test body"

    def test_case_insensitive_headers(self, parser: RequestParser):
        """Test that header names are case-insensitive."""
        request = parser.parse(b"GET / HTTP/1.1\r\nuser-AGENT: foo\r\n\r\n").request

        assert request.get_header("User-Agent") == "foo"
        assert request.get_header("user-agent") == "foo"
        assert request.user_agent == "foo"


class TestCompleteBody:
    """Tests for RequestParser(complete_body=True)."""

    def test_waits_for_content_length(self):
        parser = RequestParser(complete_body=True)
        head = b"POST /files/a HTTP/1.1\r\nContent-Length: 5\r\n\r\n"

        assert not parser.parse(head + b"12").is_complete

        result = parser.parse(head + b"12345")
        assert result.request.body == b"12345"

    def test_trims_surplus(self):
        parser = RequestParser(complete_body=True)
        data = b"POST /files/a HTTP/1.1\r\nContent-Length: 2\r\n\r\nabGET / HTTP/1.1\r\n\r\n"
        result = parser.parse(data)

        assert result.request.body == b"ab"
        assert data[result.consumed + len(result.request.body):] == b"GET / HTTP/1.1\r\n\r\n"

    def test_no_content_length_means_empty_body(self):
        parser = RequestParser(complete_body=True)
        result = parser.parse(b"GET / HTTP/1.1\r\n\r\nleftover")

        assert result.request.body == b""

    @pytest.mark.parametrize("value", [b"abc", b"-1"])
    def test_invalid_content_length(self, value: bytes):
        parser = RequestParser(complete_body=True)

        with pytest.raises(HTTPParseError):
            parser.parse(b"POST / HTTP/1.1\r\nContent-Length: " + value + b"\r\n\r\n")


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_get_header_default(self):
        """Test get_header with default value."""
        request = HTTPRequest(method="GET", path="/")

        assert request.get_header("X-Missing") is None
        assert request.get_header("X-Missing", "default") == "default"

    def test_get_header_returns_first(self):
        request = HTTPRequest(
            method="GET",
            path="/",
            headers=[("Accept-Encoding", "br"), ("accept-encoding", "gzip")],
        )

        assert request.get_header("Accept-Encoding") == "br"
        assert request.get_headers("ACCEPT-ENCODING") == ["br", "gzip"]
        assert request.accept_encoding == "br"

    @pytest.mark.parametrize("value,expected", [
        ("close", True),
        ("Close", True),
        ("CLOSE", True),
        ("keep-alive", False),
        ("close, upgrade", False),
    ])
    def test_wants_close(self, value: str, expected: bool):
        request = HTTPRequest(method="GET", path="/", headers=[("Connection", value)])

        assert request.wants_close is expected

    def test_wants_close_without_header(self):
        assert HTTPRequest(method="GET", path="/").wants_close is False

    def test_content_length_invalid(self):
        request = HTTPRequest(method="POST", path="/", headers=[("Content-Length", "many")])

        assert request.content_length == 0
