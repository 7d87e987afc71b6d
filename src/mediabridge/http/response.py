"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTPResponse objects and serializes them to bytes.

    Handler returns          to_bytes()              Socket sends
    HTTPResponse    ─────►   serializes    ─────►    raw bytes

        HTTP/1.1 200 OK\\r\\n                      ← status line
        Content-Type: application/json; ...\\r\\n
        Access-Control-Allow-Origin: *\\r\\n       ← added by CORS layer
        Content-Length: 87\\r\\n                   ← always computed
        Connection: close\\r\\n                    ← one request per connection
        Date: Fri, 15 Mar 2024 10:00:00 GMT\\r\\n
        Server: mediabridge/1.0.0\\r\\n
        \\r\\n
        {"photos": [...], "total": 3, ...}

Every response is framed by Content-Length. Nothing is chunked.

=============================================================================
THE ERROR ENVELOPE
=============================================================================

All errors share one JSON shape so the plugin can handle them uniformly:

    {"error": "Photo not found", "timestamp": "2024-03-15T10:00:00Z"}

A failed export adds "success": false to the same envelope.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Iterable, Union
import json

from .mime_types import DEFAULT_MIME_TYPE, JSON_CONTENT_TYPE
from .status_codes import HTTPStatus


DEFAULT_SERVER_NAME = "mediabridge/1.0.0"


@dataclass
class HTTPResponse:
    """
    An HTTP response to be sent to the client.

    Use ResponseBuilder (or the helper functions below) to construct one.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """Status line, e.g. "HTTP/1.1 200 OK"."""
        status = HTTPStatus.coerce(int(self.status))
        return f"{self.version} {int(status)} {status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    @property
    def content_type(self) -> Optional[str]:
        return self.get_header("Content-Type")

    @property
    def json(self) -> Any:
        """The body decoded as JSON (handy in tests and middleware)."""
        return json.loads(self.body.decode("utf-8")) if self.body else None

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize the response for socket.sendall().

        Content-Length is always recomputed from the body; Date and
        Server are added when the handler did not set them.
        """
        response_headers = {
            name: value for name, value in self.headers.items()
            if name.lower() != "content-length"
        }
        response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

    Usage:
        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json({"status": "ok"})
            .build())

        response = (ResponseBuilder()
            .binary(jpeg_bytes, "image/jpeg")
            .header("Cache-Control", "max-age=3600")
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: Union[HTTPStatus, int]) -> "ResponseBuilder":
        self._status = HTTPStatus.coerce(int(status))
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Raw body; strings are encoded as UTF-8."""
        if isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = body
        return self

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        """
        Serialize data as the JSON body.

        ensure_ascii=False keeps non-ASCII filenames readable on the wire.
        """
        indent = 2 if pretty else None
        self._body = json.dumps(data, indent=indent, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = JSON_CONTENT_TYPE
        return self

    def binary(self, data: bytes, content_type: Optional[str] = None) -> "ResponseBuilder":
        """Binary body (thumbnails, original image bytes)."""
        self._body = data
        self._headers["Content-Type"] = content_type or DEFAULT_MIME_TYPE
        return self

    def cache(self, max_age: int = 3600) -> "ResponseBuilder":
        self._headers["Cache-Control"] = f"public, max-age={max_age}"
        return self

    def no_cache(self) -> "ResponseBuilder":
        self._headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an RFC 7231 HTTP-date.

    Example: "Fri, 15 Mar 2024 10:00:00 GMT". Day and month names are
    fixed English abbreviations regardless of locale.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    dt = dt.astimezone(timezone.utc)
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def ok(body: Union[str, bytes, dict, list] = "", content_type: Optional[str] = None) -> HTTPResponse:
    """
    200 OK.

    dict/list bodies become JSON, bytes are sent as-is with the given
    content type, and strings as plain text.
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)

    if isinstance(body, (dict, list)):
        builder.json(body)
    elif isinstance(body, bytes):
        builder.binary(body, content_type)
    else:
        builder.body(body)
        builder.content_type(content_type or "text/plain; charset=utf-8")

    return builder.build()


def error_response(
    message: str,
    status: Union[HTTPStatus, int] = HTTPStatus.BAD_REQUEST,
    **extra: Any
) -> HTTPResponse:
    """
    The JSON error envelope: {"error": message, "timestamp": ISO-8601}.

    Args:
        message: Human-readable error.
        status: HTTP status code.
        **extra: Additional envelope fields (e.g. success=False).
    """
    payload: Dict[str, Any] = dict(extra)
    payload["error"] = message
    payload["timestamp"] = _utc_timestamp()
    return ResponseBuilder().status(status).json(payload).build()


def bad_request(message: str = "Bad request") -> HTTPResponse:
    return error_response(message, HTTPStatus.BAD_REQUEST)


def not_found(message: str = "Not found") -> HTTPResponse:
    return error_response(message, HTTPStatus.NOT_FOUND)


def method_not_allowed(allowed_methods: Iterable[str]) -> HTTPResponse:
    """405 with the Allow header listing the methods the path accepts."""
    response = error_response("Method not allowed", HTTPStatus.METHOD_NOT_ALLOWED)
    response.set_header("Allow", ", ".join(allowed_methods))
    return response


def internal_error(message: str = "Internal server error") -> HTTPResponse:
    return error_response(message, HTTPStatus.INTERNAL_SERVER_ERROR)


def service_unavailable(message: str = "Service unavailable") -> HTTPResponse:
    return error_response(message, HTTPStatus.SERVICE_UNAVAILABLE)
