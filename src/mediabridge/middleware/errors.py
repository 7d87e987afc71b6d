"""
=============================================================================
ERROR MIDDLEWARE
=============================================================================

Turns exceptions raised by handlers into the JSON error envelope:

    MediaBridgeError (BadRequest, NotFound, FetchFailed, ...)
        → its status_code, {"error": e.message, "timestamp": ...}

    HTTPParseError raised while reading the body (e.g. invalid JSON)
        → its status_code, same envelope

    anything else
        → logged with traceback, 500 {"error": "Internal server error", ...}

Internal details of unexpected errors never reach the client.

=============================================================================
"""

import logging

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest, HTTPParseError
from ..http.response import HTTPResponse, error_response, internal_error
from ..media.errors import MediaBridgeError


logger = logging.getLogger(__name__)


class ErrorMiddleware(Middleware):
    """Exception → error envelope. Place innermost, next to the router."""

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        try:
            return next(request)
        except MediaBridgeError as e:
            if e.status_code >= 500:
                logger.warning(f"{request.method} {request.path} failed: {e.message}")
            return error_response(e.message, e.status_code)
        except HTTPParseError as e:
            return error_response(e.message, e.status_code)
        except Exception as e:
            logger.exception(f"Unhandled error in {request.method} {request.path}: {e}")
            return internal_error()
