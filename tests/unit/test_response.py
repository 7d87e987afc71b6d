"""
Unit tests for HTTP response building.
"""

from mediabridge.http.response import (
    HTTPResponse,
    ResponseBuilder,
    error_response,
    method_not_allowed,
    format_http_date,
    ok,
)
from mediabridge.http.status_codes import HTTPStatus
from datetime import datetime, timezone


class TestHTTPResponse:
    """Tests for HTTPResponse serialization."""

    def test_to_bytes(self):
        """Status line, recomputed Content-Length, Server and body."""
        response = HTTPResponse(
            status=HTTPStatus.OK,
            headers={"Content-Type": "text/plain", "Content-Length": "999"},
            body=b"hello",
        )

        raw = response.to_bytes("mediabridge/1.0.0")
        head, body = raw.split(b"\r\n\r\n", 1)

        assert head.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"Content-Length: 5" in head
        assert b"Content-Length: 999" not in head
        assert b"Server: mediabridge/1.0.0" in head
        assert b"Date: " in head
        assert body == b"hello"

    def test_unknown_status_is_coerced(self):
        """An unlisted code renders as a consistent 500 status line."""
        response = HTTPResponse(status=418)

        assert response.status_line == "HTTP/1.1 500 Internal Server Error"

    def test_get_header_case_insensitive(self):
        response = HTTPResponse(headers={"Content-Type": "image/jpeg"})

        assert response.get_header("content-type") == "image/jpeg"
        assert response.content_type == "image/jpeg"


class TestResponseBuilder:
    """Tests for the fluent builder."""

    def test_json(self):
        response = ResponseBuilder().json({"a": 1}).build()

        assert response.status == 200
        assert response.content_type == "application/json; charset=utf-8"
        assert response.json == {"a": 1}

    def test_binary(self):
        """Binary bodies keep their bytes and content type."""
        response = ResponseBuilder().binary(b"\xff\xd8\xff", "image/jpeg").build()

        assert response.body == b"\xff\xd8\xff"
        assert response.content_type == "image/jpeg"


class TestHelpers:
    """Tests for the response helper functions."""

    def test_error_envelope(self):
        """The envelope has exactly error and timestamp."""
        response = error_response("Photo not found", HTTPStatus.NOT_FOUND)

        assert response.status == 404
        assert set(response.json) == {"error", "timestamp"}
        assert response.json["error"] == "Photo not found"
        datetime.strptime(response.json["timestamp"], "%Y-%m-%dT%H:%M:%SZ")

    def test_error_envelope_extra_fields(self):
        """Extra fields such as success=False are merged in."""
        response = error_response("Failed to write file: disk full", 500, success=False)

        assert response.json["success"] is False
        assert response.json["error"] == "Failed to write file: disk full"

    def test_method_not_allowed(self):
        response = method_not_allowed(["GET", "POST"])

        assert response.status == 405
        assert response.get_header("Allow") == "GET, POST"

    def test_ok_dict_is_json(self):
        assert ok({"status": "ok"}).json == {"status": "ok"}

    def test_format_http_date(self):
        value = datetime(2024, 3, 15, 10, 0, 0, tzinfo=timezone.utc)

        assert format_http_date(value) == "Fri, 15 Mar 2024 10:00:00 GMT"
