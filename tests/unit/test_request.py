"""
Unit tests for HTTP request parsing.
"""

import pytest

from mediabridge.http.request import RequestParser, HTTPRequest, HTTPParseError


@pytest.fixture
def parser() -> RequestParser:
    return RequestParser(max_request_size=1024 * 1024)


class TestRequestParser:
    """Tests for RequestParser."""

    def test_parse_get_with_query(self, parser):
        """Method, path and repeated query values are extracted."""
        raw = (
            b"GET /api/photos?page=2&pageSize=10&mediaType=video HTTP/1.1\r\n"
            b"Host: localhost:44556\r\n"
            b"User-Agent: pytest\r\n"
            b"\r\n"
        )

        request = parser.parse(raw, ("127.0.0.1", 50000))

        assert request.method == "GET"
        assert request.path == "/api/photos"
        assert request.get_query("page") == "2"
        assert request.get_query("mediaType") == "video"
        assert request.user_agent == "pytest"
        assert request.client_address == ("127.0.0.1", 50000)

    def test_blank_query_value_kept(self, parser):
        """?q= yields an empty string rather than a missing key."""
        request = parser.parse(b"GET /api/photos/search?q= HTTP/1.1\r\n\r\n", ("127.0.0.1", 1))

        assert request.get_query("q") == ""

    def test_percent_encoded_path_is_decoded(self, parser):
        """Identifiers arrive percent-decoded."""
        request = parser.parse(
            b"GET /api/thumbnails/2024/IMG%200001.jpg HTTP/1.1\r\n\r\n",
            ("127.0.0.1", 1),
        )

        assert request.path == "/api/thumbnails/2024/IMG 0001.jpg"

    def test_parse_post_json_body(self, parser):
        """The body is cut to Content-Length and decodes as JSON."""
        body = b'{"destination": "/tmp/out"}'
        raw = (
            b"POST /api/photos/a/export HTTP/1.1\r\n"
            b"Content-Type: application/json\r\n"
            + f"Content-Length: {len(body)}\r\n".encode()
            + b"\r\n"
            + body
        )

        request = parser.parse(raw, ("127.0.0.1", 1))

        assert request.content_type == "application/json"
        assert request.json == {"destination": "/tmp/out"}

    def test_headers_are_case_insensitive(self, parser):
        """Header names are stored lowercase."""
        request = parser.parse(
            b"GET / HTTP/1.1\r\nX-Requested-With: XMLHttpRequest\r\n\r\n",
            ("127.0.0.1", 1),
        )

        assert request.get_header("X-REQUESTED-WITH") == "XMLHttpRequest"

    def test_invalid_request_line(self, parser):
        """A malformed request line is a 400."""
        with pytest.raises(HTTPParseError) as exc:
            parser.parse(b"NONSENSE\r\n\r\n", ("127.0.0.1", 1))
        assert exc.value.status_code == 400

    def test_unknown_method(self, parser):
        """An unknown method is a 405."""
        with pytest.raises(HTTPParseError) as exc:
            parser.parse(b"BREW /pot HTTP/1.1\r\n\r\n", ("127.0.0.1", 1))
        assert exc.value.status_code == 405

    def test_unsupported_version(self, parser):
        """Only HTTP/1.0 and HTTP/1.1 are accepted."""
        with pytest.raises(HTTPParseError) as exc:
            parser.parse(b"GET / HTTP/2.0\r\n\r\n", ("127.0.0.1", 1))
        assert exc.value.status_code == 505

    def test_dots_in_identifier_accepted(self, parser):
        """Dots inside an identifier ("vacation..jpg") are accepted."""
        request = parser.parse(b"GET /api/thumbnails/2024/vacation..jpg HTTP/1.1\r\n\r\n", ("127.0.0.1", 1))

        assert request.path == "/api/thumbnails/2024/vacation..jpg"

    def test_path_is_percent_decoded(self, parser):
        """Escaped characters reach the router decoded."""
        request = parser.parse(
            b"GET /api/thumbnails/2024/100%25%20done%23final.jpg HTTP/1.1\r\n\r\n", ("127.0.0.1", 1)
        )

        assert request.path == "/api/thumbnails/2024/100% done#final.jpg"

    def test_invalid_content_length(self, parser):
        """A non-numeric Content-Length is a 400."""
        with pytest.raises(HTTPParseError) as exc:
            parser.parse(b"POST / HTTP/1.1\r\nContent-Length: ten\r\n\r\n", ("127.0.0.1", 1))
        assert exc.value.status_code == 400

    def test_incomplete_body(self, parser):
        """A body shorter than Content-Length is rejected."""
        with pytest.raises(HTTPParseError):
            parser.parse(b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\nabc", ("127.0.0.1", 1))

    def test_too_large(self):
        """Requests over the size limit are a 413."""
        parser = RequestParser(max_request_size=32)
        with pytest.raises(HTTPParseError) as exc:
            parser.parse(b"GET /" + b"a" * 64 + b" HTTP/1.1\r\n\r\n", ("127.0.0.1", 1))
        assert exc.value.status_code == 413


class TestHTTPRequest:
    """Tests for HTTPRequest helpers."""

    def test_invalid_json_raises_parse_error(self):
        """A body that is not JSON raises HTTPParseError."""
        request = HTTPRequest(method="POST", path="/", body=b"{not json")

        with pytest.raises(HTTPParseError):
            request.json

    def test_empty_body_json_is_none(self):
        request = HTTPRequest(method="POST", path="/")

        assert request.json is None
