"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Translates raw bytes from TCP into structured HTTP messages and back.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py      raw bytes ──► HTTPRequest                           │
    │ router.py       HTTPRequest ──► handler (with :param / *wildcard)   │
    │ response.py     HTTPResponse ──► raw bytes, JSON error envelope     │
    │ status_codes.py HTTPStatus enum with reason phrases                 │
    │ mime_types.py   store format tag ──► MIME type / file extension     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,
    error_response,
    bad_request,
    not_found,
    method_not_allowed,
    internal_error,
    service_unavailable,
)
from .router import Router, Route, RouteMatch
from .status_codes import HTTPStatus
from .mime_types import mime_type_for_tag, extension_for_tag, format_tag_for_path

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "error_response",
    "bad_request",
    "not_found",
    "method_not_allowed",
    "internal_error",
    "service_unavailable",

    # Routing
    "Router",
    "Route",
    "RouteMatch",

    # Status codes
    "HTTPStatus",

    # Format tags
    "mime_type_for_tag",
    "extension_for_tag",
    "format_tag_for_path",
]
