"""
Unit tests for handler results and the response serializer.
"""

import json

import pytest

from httpdispatch.http.headers import Headers
from httpdispatch.http.response import (
    HandlerResult,
    ServerResponse,
    created,
    format_http_date,
    header_pairs,
    not_found,
    ok,
    write_result,
)


def serialize(result) -> ServerResponse:
    response = ServerResponse()
    write_result(result, response)
    return response


class TestHandlerResult:
    """Tests for HandlerResult.coerce()."""

    def test_none_is_empty_result(self):
        assert HandlerResult.coerce(None) == HandlerResult()

    def test_mapping(self):
        result = HandlerResult.coerce({"status_code": 201, "payload": "x"})

        assert result.status_code == 201
        assert result.payload == "x"

    def test_unknown_mapping_key(self):
        with pytest.raises(TypeError, match="statusCode"):
            HandlerResult.coerce({"statusCode": 201})

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            HandlerResult.coerce("just a string")


class TestWriteResult:
    """Tests for write_result()."""

    def test_defaults(self):
        response = serialize(HandlerResult())

        assert response.status_code == 200
        assert response.get_header("content-type") == "application/json"
        assert response.body == b""
        assert response.finished

    def test_none_result(self):
        response = serialize(None)

        assert response.status_code == 200
        assert response.body == b""

    def test_json_payload_round_trip(self):
        payload = {"hello": "world", "n": [1, 2, 3], "nested": {"ok": True}}

        response = serialize(HandlerResult(payload=payload))

        assert json.loads(response.body) == payload

    def test_json_string_payload_is_quoted(self):
        response = serialize(HandlerResult(payload="hi"))

        assert response.body == b'"hi"'

    def test_text_payload_verbatim(self):
        response = serialize(
            HandlerResult(status_code=201, content_type="text/plain", payload="123")
        )

        assert response.status_code == 201
        assert response.get_header("content-type") == "text/plain"
        assert response.body == b"123"

    def test_text_payload_utf8(self):
        response = serialize(HandlerResult(content_type="text/plain", payload="café"))

        assert response.body == "café".encode("utf-8")

    def test_bytes_payload_verbatim(self):
        response = serialize(
            HandlerResult(content_type="application/octet-stream", payload=b"\x00\x01")
        )

        assert response.body == b"\x00\x01"

    def test_non_string_payload_for_text_raises(self):
        with pytest.raises(TypeError):
            serialize(HandlerResult(content_type="text/plain", payload={"a": 1}))

    def test_failed_encoding_stages_nothing(self):
        response = ServerResponse()

        with pytest.raises(TypeError):
            write_result(
                HandlerResult(
                    content_type="text/plain",
                    headers={"x-a": "1"},
                    payload=object(),
                ),
                response,
            )

        assert "x-a" not in response.headers
        assert not response.finished

    def test_headers_mapping(self):
        response = serialize(HandlerResult(headers={"oh-no": "this is a test"}))

        assert response.get_header("oh-no") == "this is a test"

    def test_headers_list_values(self):
        response = serialize(HandlerResult(headers={"set-cookie": ["a=1", "b=2"]}))

        assert response.headers.get_list("set-cookie") == ["a=1", "b=2"]

    def test_headers_object(self):
        headers = Headers({"x-example": "hello"})
        headers.add("x-multi", "1")
        headers.add("x-multi", "2")

        response = serialize(HandlerResult(headers=headers))

        assert response.get_header("x-example") == "hello"
        assert response.headers.get_list("x-multi") == ["1", "2"]

    def test_result_header_overrides_content_type(self):
        response = serialize(
            HandlerResult(
                content_type="text/plain",
                headers={"Content-Type": "text/html"},
                payload="<p>hi</p>",
            )
        )

        assert response.headers.get_list("content-type") == ["text/html"]

    def test_crlf_in_header_value_stages_nothing(self):
        response = ServerResponse()

        with pytest.raises(ValueError):
            write_result(
                HandlerResult(headers={"X-A": "v\r\nSet-Cookie: evil=1"}),
                response,
            )

        assert len(response.headers) == 0
        assert not response.finished

    def test_unsupported_headers_type(self):
        with pytest.raises(TypeError):
            serialize(HandlerResult(headers=[("x-a", "1")]))

    def test_mapping_result(self):
        response = serialize({"status_code": 202, "payload": {"queued": True}})

        assert response.status_code == 202
        assert json.loads(response.body) == {"queued": True}


class TestHeaderPairs:
    """Tests for header_pairs()."""

    def test_none(self):
        assert header_pairs(None) == []

    def test_mapping(self):
        assert header_pairs({"x-a": "1", "x-b": ["2", "3"]}) == [
            ("x-a", "1"),
            ("x-b", ["2", "3"]),
        ]

    def test_headers_grouped(self):
        headers = Headers([("X-B", "2"), ("x-a", "1"), ("x-b", "3")])

        assert header_pairs(headers) == [("X-B", ["2", "3"]), ("x-a", "1")]


class TestServerResponse:
    """Tests for ServerResponse serialization."""

    def test_to_bytes(self):
        response = ServerResponse()
        response.status_code = 201
        response.set_header("Content-Type", "text/plain")
        response.end("created")

        data = response.to_bytes(server_name="test/1.0", keep_alive=False)
        head, body = data.split(b"\r\n\r\n", 1)
        lines = head.decode().split("\r\n")

        assert lines[0] == "HTTP/1.1 201 Created"
        assert "Content-Type: text/plain" in lines
        assert "Content-Length: 7" in lines
        assert "Server: test/1.0" in lines
        assert "Connection: close" in lines
        assert any(line.startswith("Date: ") for line in lines)
        assert body == b"created"

    def test_repeated_headers_written_separately(self):
        response = ServerResponse()
        response.set_header("Set-Cookie", ["a=1", "b=2"])
        response.end()

        head = response.to_bytes().split(b"\r\n\r\n", 1)[0].decode()

        assert "Set-Cookie: a=1\r\nSet-Cookie: b=2" in head

    def test_staged_content_length_replaced(self):
        response = ServerResponse()
        response.set_header("Content-Length", "999")
        response.end(b'{"a": 1}')

        head = response.to_bytes().split(b"\r\n\r\n", 1)[0].decode()

        assert "Content-Length: 8" in head
        assert "999" not in head

    def test_staged_connection_replaced(self):
        response = ServerResponse()
        response.set_header("Connection", "keep-alive")
        response.end()

        head = response.to_bytes(keep_alive=False).split(b"\r\n\r\n", 1)[0].decode()

        assert "Connection: close" in head
        assert "keep-alive" not in head

    def test_head_omits_body(self):
        response = ServerResponse()
        response.end("hello")

        data = response.to_bytes(include_body=False)

        assert data.endswith(b"\r\n\r\n")
        assert b"Content-Length: 5" in data

    def test_unknown_status_code(self):
        response = ServerResponse()
        response.status_code = 299

        assert response.status_line == "HTTP/1.1 299 Success"

    def test_end_twice_raises(self):
        response = ServerResponse()
        response.end()

        with pytest.raises(RuntimeError):
            response.end()

    def test_set_header_replaces(self):
        response = ServerResponse()
        response.set_header("X-A", "1")
        response.set_header("x-a", "2")

        assert response.headers.get_list("x-a") == ["2"]

    def test_remove_header(self):
        response = ServerResponse()
        response.set_header("X-A", "1")
        response.remove_header("x-a")

        assert response.get_header("x-a") is None


class TestHelpers:
    """Tests for the result helper functions."""

    def test_ok(self):
        assert ok({"a": 1}) == HandlerResult(status_code=200, payload={"a": 1})

    def test_created_with_location(self):
        result = created({"id": 1}, location="/items/1")

        assert result.status_code == 201
        assert result.headers == {"Location": "/items/1"}

    def test_not_found(self):
        result = not_found()

        assert result.status_code == 404
        assert result.content_type == "application/json"
        assert result.payload is None


def test_format_http_date():
    from datetime import datetime, timezone

    dt = datetime(2026, 10, 19, 12, 0, 5, tzinfo=timezone.utc)

    assert format_http_date(dt) == "Mon, 19 Oct 2026 12:00:05 GMT"
