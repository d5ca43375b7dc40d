"""
Unit tests for HTTP request parsing and request cookies.
"""

import pytest

from interceptor.http import Cookie, NoCookieError
from interceptor.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        request = RequestParser().parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/api/users"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)
        assert request.client_ip == "127.0.0.1"

    def test_parse_headers_and_query(self, sample_get_request: bytes):
        request = parse_request(sample_get_request)

        assert request.get_header("host") == "localhost:8080"
        assert request.user_agent == "pytest"
        assert request.headers["accept"] == "application/json"
        assert request.get_query("page") == "1"
        assert request.get_query("missing", "default") == "default"

    def test_parse_post_with_body(self, sample_post_request: bytes):
        request = parse_request(sample_post_request)

        assert request.method == "POST"
        assert request.get_header("content-type") == "application/json"
        assert request.body == b'{"name": "John", "email": "john@example.com"}'
        assert request.is_keep_alive is False

    def test_url_encoded_query(self):
        request = parse_request(b"GET /search?q=hello%20world HTTP/1.1\r\nHost: test\r\n\r\n")

        assert request.path == "/search"
        assert request.get_query("q") == "hello world"

    @pytest.mark.parametrize("raw, status", [
        (b"INVALID /path HTTP/1.1\r\nHost: test\r\n\r\n", 405),
        (b"GET / HTTP/2.0\r\nHost: test\r\n\r\n", 505),
        (b"GET\r\nHost: test\r\n\r\n", 400),
        (b"GET /../../etc/passwd HTTP/1.1\r\nHost: test\r\n\r\n", 400),
    ])
    def test_rejected_requests_carry_status(self, raw: bytes, status: int):
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == status

    @pytest.mark.parametrize("raw", [
        b"GET /v1..2 HTTP/1.1\r\n\r\n",
        b"GET /files/..hidden HTTP/1.1\r\n\r\n",
    ])
    def test_dots_inside_a_segment_are_allowed(self, raw: bytes):
        assert parse_request(raw).path.startswith("/")

    def test_dot_dot_segment_in_the_middle_is_rejected(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"GET /a/../b HTTP/1.1\r\n\r\n")

    def test_missing_header_terminator(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n")

    def test_request_too_large(self):
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\nX-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)

        assert exc_info.value.status_code == 413

    @pytest.mark.parametrize("value", [b"abc", b"-1"])
    def test_bad_content_length(self, value: bytes):
        raw = b"POST / HTTP/1.1\r\nContent-Length: " + value + b"\r\n\r\n"

        with pytest.raises(HTTPParseError):
            parse_request(raw)

    def test_incomplete_body(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\nshort"

        with pytest.raises(HTTPParseError):
            parse_request(raw)

    def test_body_sliced_to_content_length(self):
        raw = b"POST / HTTP/1.1\r\nContent-Length: 9\r\n\r\ntest bodyEXTRA"
        request = parse_request(raw)

        assert request.body == b"test body"

    def test_keep_alive_defaults_per_version(self):
        assert parse_request(b"GET / HTTP/1.0\r\n\r\n").is_keep_alive is False
        assert parse_request(b"GET / HTTP/1.0\r\nConnection: keep-alive\r\n\r\n").is_keep_alive is True
        assert parse_request(b"GET / HTTP/1.1\r\n\r\n").is_keep_alive is True
        assert parse_request(b"GET / HTTP/1.1\r\nConnection: close\r\n\r\n").is_keep_alive is False

    def test_case_insensitive_headers(self):
        request = parse_request(b"GET / HTTP/1.1\r\nCONTENT-TYPE: text/html\r\n\r\n")

        assert request.get_header("Content-Type") == "text/html"

    def test_repeated_headers_are_joined(self):
        raw = (
            b"GET / HTTP/1.1\r\n"
            b"Accept: text/html\r\n"
            b"Accept: application/json\r\n"
            b"Cookie: a=1\r\n"
            b"Cookie: b=2\r\n"
            b"\r\n"
        )
        request = parse_request(raw)

        assert request.get_header("accept") == "text/html, application/json"
        assert request.get_header("cookie") == "a=1; b=2"


class TestRequestCookies:
    """Tests for HTTPRequest.cookies and HTTPRequest.cookie()."""

    def test_cookie_found(self):
        request = parse_request(b"GET / HTTP/1.1\r\nCookie: S=a1b2c3; theme=dark\r\n\r\n")

        cookie = request.cookie("S")

        assert isinstance(cookie, Cookie)
        assert cookie.name == "S"
        assert cookie.value == "a1b2c3"
        assert [c.name for c in request.cookies] == ["S", "theme"]

    def test_cookie_missing_raises(self):
        request = parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n\r\n")

        with pytest.raises(NoCookieError) as exc_info:
            request.cookie("S")

        assert str(exc_info.value) == "named cookie not present"
        assert exc_info.value.name == "S"

    def test_cookie_names_are_case_sensitive(self):
        request = parse_request(b"GET / HTTP/1.1\r\nCookie: s=lower\r\n\r\n")

        with pytest.raises(NoCookieError):
            request.cookie("S")

    def test_cookies_list_is_a_copy(self):
        request = HTTPRequest(method="GET", path="/", headers={"cookie": "a=1"})

        request.cookies.clear()

        assert len(request.cookies) == 1


class TestHTTPRequest:
    """Tests for HTTPRequest accessors."""

    def test_get_header_default(self):
        request = HTTPRequest(method="GET", path="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"

    def test_get_query_returns_first_value(self):
        request = HTTPRequest(
            method="GET",
            path="/",
            query_params={"tags": ["python", "http"]},
        )

        assert request.get_query("tags") == "python"
        assert request.query_params["tags"] == ["python", "http"]
