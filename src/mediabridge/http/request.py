"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into structured HTTPRequest objects.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     REQUEST AS THE PLUGIN SENDS IT                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  ┌─ REQUEST LINE ─────────────────────────────────────────────────┐ │
    │  │    GET /api/photos?page=2&pageSize=50 HTTP/1.1\r\n              │ │
    │  │    ─┬─ ─────┬───── ────────┬───────── ────┬───                  │ │
    │  │   Method   Path       Query string     Version                  │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ HEADERS ──────────────────────────────────────────────────────┐ │
    │  │    Host: 127.0.0.1:44556\r\n                                    │ │
    │  │    Content-Type: application/json\r\n                           │ │
    │  │    Content-Length: 42\r\n                                       │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ EMPTY LINE ───────────────────────────────────────────────────┐ │
    │  │    \r\n                                                          │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ BODY (export requests only) ──────────────────────────────────┐ │
    │  │    {"destination": "/Users/me/Desktop/export"}                  │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The path is percent-decoded, so an asset identifier sent as
"2024%2FIMG_0001.jpg" reaches the router as "2024/IMG_0001.jpg". Paths are never mapped onto
the filesystem here, so ".." is just part of an identifier
("2024/vacation..jpg"); the folder store keeps lookups inside its root.

=============================================================================
PARSE ERRORS
=============================================================================

    400 Bad Request                 Malformed syntax, bad Content-Length
    405 Method Not Allowed          Unknown method token
    413 Payload Too Large           Larger than max_request_size
    505 HTTP Version Not Supported  Not HTTP/1.0 or HTTP/1.1

The server answers a parse error with the JSON error envelope (CORS
headers included) and closes the connection.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from urllib.parse import parse_qs, urlparse, unquote
import re
import json


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the HTTP status code that should be returned to the client.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:         GET, POST, OPTIONS, ...
        path:           Percent-decoded path without the query string.
        version:        "HTTP/1.1" or "HTTP/1.0".
        headers:        Header name (lowercase) → value.
        query_params:   "?a=1&a=2" → {"a": ["1", "2"]}.
        body:           Raw body bytes (Content-Length framed).
        path_params:    Filled in by the router ({"id": "2024/IMG_0001.jpg"}).
        client_address: (ip, port) of the client.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: tuple[str, int] = ("", 0)

    _body_json: Optional[Any] = field(default=None, repr=False)

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters ("application/json")."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def json(self) -> Any:
        """
        The body parsed as JSON (cached after the first access).

        Returns:
            Parsed JSON data, or None for an empty body.

        Raises:
            HTTPParseError: If the body is not valid UTF-8 JSON.
        """
        if self._body_json is None and self.body:
            try:
                self._body_json = json.loads(self.body.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise HTTPParseError(f"Invalid JSON body: {e}")
        return self._body_json

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter, or default."""
        values = self.query_params.get(name, [])
        return values[0] if values else default


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        Raw bytes
            │
            ├─► size check ─────────────── too large → 413
            ├─► split at \\r\\n\\r\\n ──────── missing  → 400
            ├─► request line ───────────── invalid  → 400 / 405 / 505
            ├─► headers (lowercased names)
            ├─► body by Content-Length ─── invalid  → 400
            ▼
        HTTPRequest
    """

    VALID_METHODS = {
        "GET",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "HEAD",
        "OPTIONS",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        """
        Args:
            max_request_size: Maximum request size in bytes. Larger
                              requests are rejected with 413.
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest.

        Args:
            data: Raw request bytes read from the socket.
            client_address: Client's (ip, port), for logging.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        content_length = self._content_length(headers)
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )
        body = body[:content_length]

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body,
            client_address=client_address,
        )

    @staticmethod
    def _content_length(headers: Dict[str, str]) -> int:
        raw = headers.get("content-length")
        if raw is None:
            return 0
        try:
            length = int(raw)
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {raw!r}")
        if length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {raw!r}")
        return length

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, Dict[str, list[str]], str]:
        """
        Parse "METHOD SP REQUEST-URI SP HTTP-VERSION".

        Returns:
            Tuple of (method, path, query_params, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505
            )

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        return method, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict with lowercase names.

        Repeated headers are joined with ", "; obsolete continuation
        lines (leading whitespace) extend the previous header; malformed
        lines are skipped.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers
