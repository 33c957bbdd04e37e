"""
Unit tests for request parsing and normalization.
"""

import pytest

from httpdispatch.http.request import (
    BodyStream,
    HTTPParseError,
    InvalidURLError,
    RequestParser,
    normalize_request,
)


class TestRequestParser:
    """Tests for RequestParser (request head only)."""

    def test_parse_get(self):
        request = RequestParser().parse(
            b"GET /api/users?page=1 HTTP/1.1\r\n"
            b"Host: localhost:1337\r\n"
            b"Accept: application/json\r\n"
            b"\r\n"
        )

        assert request.method == "GET"
        assert request.url == "/api/users?page=1"
        assert request.version == "HTTP/1.1"
        assert request.headers["host"] == "localhost:1337"

    def test_method_case_preserved(self):
        request = RequestParser().parse(b"post /echo HTTP/1.1\r\n\r\n")

        assert request.method == "post"

    def test_repeated_headers_kept(self):
        request = RequestParser().parse(
            b"GET / HTTP/1.1\r\n"
            b"Accept: text/html\r\n"
            b"Accept: application/json\r\n"
            b"\r\n"
        )

        assert request.headers.get_list("accept") == ["text/html", "application/json"]

    def test_folded_header(self):
        request = RequestParser().parse(
            b"GET / HTTP/1.1\r\n"
            b"X-Long: first\r\n"
            b"  second\r\n"
            b"\r\n"
        )

        assert request.headers["x-long"] == "first second"

    def test_content_length(self):
        request = RequestParser().parse(
            b"POST /echo HTTP/1.1\r\nContent-Length: 17\r\n\r\n"
        )

        assert request.content_length == 17

    def test_no_content_length_means_empty(self):
        request = RequestParser().parse(b"POST /echo HTTP/1.1\r\n\r\n")

        assert request.content_length == 0

    def test_invalid_request_line(self):
        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse(b"NONSENSE\r\n\r\n")

        assert exc_info.value.status_code == 400

    def test_invalid_header_line(self):
        with pytest.raises(HTTPParseError):
            RequestParser().parse(b"GET / HTTP/1.1\r\nno colon here\r\n\r\n")

    def test_header_name_not_a_token(self):
        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse(b"GET / HTTP/1.1\r\nX(Bad): 1\r\n\r\n")

        assert exc_info.value.status_code == 400

    def test_header_value_with_nul(self):
        with pytest.raises(HTTPParseError):
            RequestParser().parse(b"GET / HTTP/1.1\r\nX-A: a\x00b\r\n\r\n")

    def test_unsupported_version(self):
        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse(b"GET / HTTP/2.0\r\n\r\n")

        assert exc_info.value.status_code == 505

    def test_invalid_content_length(self):
        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse(b"POST / HTTP/1.1\r\nContent-Length: abc\r\n\r\n")

        assert exc_info.value.status_code == 400

    def test_conflicting_content_length(self):
        with pytest.raises(HTTPParseError):
            RequestParser().parse(
                b"POST / HTTP/1.1\r\nContent-Length: 1\r\nContent-Length: 2\r\n\r\n"
            )

    def test_chunked_not_implemented(self):
        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse(
                b"POST / HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\n"
            )

        assert exc_info.value.status_code == 501


class TestKeepAlive:
    """Tests for IncomingRequest.is_keep_alive."""

    def test_http11_default(self):
        request = RequestParser().parse(b"GET / HTTP/1.1\r\n\r\n")
        assert request.is_keep_alive

    def test_http11_close(self):
        request = RequestParser().parse(b"GET / HTTP/1.1\r\nConnection: close\r\n\r\n")
        assert not request.is_keep_alive

    def test_http10_default(self):
        request = RequestParser().parse(b"GET / HTTP/1.0\r\n\r\n")
        assert not request.is_keep_alive

    def test_http10_keep_alive(self):
        request = RequestParser().parse(b"GET / HTTP/1.0\r\nConnection: keep-alive\r\n\r\n")
        assert request.is_keep_alive


class TestBodyStream:
    """Tests for BodyStream."""

    @pytest.mark.asyncio
    async def test_chunks_in_order(self):
        stream = BodyStream.from_bytes(b"abcdefg", chunk_size=3)

        chunks = [chunk async for chunk in stream]

        assert chunks == [b"abc", b"def", b"g"]

    @pytest.mark.asyncio
    async def test_read_once(self):
        stream = BodyStream.from_bytes(b"data")

        assert await stream.read() == b"data"
        with pytest.raises(RuntimeError):
            await stream.read()

    @pytest.mark.asyncio
    async def test_drain_unread(self):
        stream = BodyStream.from_bytes(b"data")

        await stream.drain()

        assert stream.consumed

    def test_chunk_size_must_be_positive(self):
        with pytest.raises(ValueError):
            BodyStream.from_bytes(b"x", chunk_size=0)


class TestNormalizeRequest:
    """Tests for normalize_request()."""

    def test_path_and_query(self, request_factory):
        ctx = normalize_request(request_factory("/search?q=hello&tag=a&tag=b"))

        assert ctx.path == "/search"
        assert ctx.query["q"] == "hello"
        assert ctx.query.get_list("tag") == ["a", "b"]

    def test_empty_path_is_root(self, request_factory):
        ctx = normalize_request(request_factory("?x=1"))

        assert ctx.path == "/"
        assert ctx.query["x"] == "1"

    def test_absolute_form(self, request_factory):
        ctx = normalize_request(request_factory("http://example.com/echo?x=1"))

        assert ctx.path == "/echo"
        assert ctx.query["x"] == "1"

    def test_path_not_percent_decoded(self, request_factory):
        ctx = normalize_request(request_factory("/echo/a%2Fb"))

        assert ctx.path == "/echo/a%2Fb"

    def test_method_preserved(self, request_factory):
        ctx = normalize_request(request_factory("/", method="post"))

        assert ctx.method == "post"

    def test_headers_shared(self, request_factory):
        request = request_factory("/", headers={"X-Example": "hello"})

        ctx = normalize_request(request)

        assert ctx.headers["x-example"] == "hello"
        assert ctx.get_header("X-EXAMPLE") == "hello"

    def test_unset_fields(self, request_factory):
        ctx = normalize_request(request_factory("/"))

        assert ctx.payload is None
        assert ctx.groups is None

    def test_content_type_property(self, request_factory):
        request = request_factory("/", headers={"Content-Type": "Text/Plain; charset=utf-8"})

        assert normalize_request(request).content_type == "text/plain"

    def test_invalid_url(self, request_factory):
        with pytest.raises(InvalidURLError):
            normalize_request(request_factory("http://[::1/"))

    def test_url_with_control_characters(self, request_factory):
        with pytest.raises(InvalidURLError):
            normalize_request(request_factory("/echo\x00"))
