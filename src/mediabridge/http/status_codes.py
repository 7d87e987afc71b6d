"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes the bridge actually sends, with their reason phrases.

    ┌────────┬──────────────────────────────────────────────────────────┐
    │  200   │ Listings, thumbnails, originals, export success,         │
    │        │ CORS preflight                                           │
    ├────────┼──────────────────────────────────────────────────────────┤
    │  400   │ Malformed request, missing q/date, bad export body       │
    │  404   │ Unknown route or unknown asset identifier                │
    │  405   │ Known path, wrong method                                 │
    │  408   │ Client stopped sending mid-request                       │
    │  413   │ Request larger than max_request_size                     │
    │  431   │ Header block too large                                   │
    ├────────┼──────────────────────────────────────────────────────────┤
    │  500   │ Fetch failed, unsupported, export failed, unexpected     │
    │  503   │ Worker queue full, readiness check failed                │
    │  505   │ Not HTTP/1.x                                             │
    └────────┴──────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so members compare equal to plain ints:

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    OK = 200
    NO_CONTENT = 204

    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413
    REQUEST_HEADER_FIELDS_TOO_LARGE = 431

    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line ("HTTP/1.1 404 Not Found")."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_error(self) -> bool:
        return self >= 400

    @classmethod
    def coerce(cls, code: int) -> "HTTPStatus":
        """
        HTTPStatus for an int, falling back to 500 for codes not listed.

        Lets callers that only hold a number (e.g. an exception's
        status_code) still produce a valid status line.
        """
        try:
            return cls(code)
        except ValueError:
            return cls.INTERNAL_SERVER_ERROR


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE: "Request Header Fields Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
