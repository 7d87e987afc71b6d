"""
=============================================================================
CORS MIDDLEWARE
=============================================================================

The plugin runs inside a host application whose web view enforces the
same-origin policy, so every response from the bridge must carry CORS
headers. That includes errors, and even responses to requests that
could not be parsed:

    Access-Control-Allow-Origin:  *
    Access-Control-Allow-Methods: GET, POST, PUT, DELETE, OPTIONS
    Access-Control-Allow-Headers: Content-Type, Authorization, X-Requested-With

PREFLIGHT: an OPTIONS request to ANY path is answered here, before
routing, with 200, an empty body, the headers above and

    Access-Control-Max-Age: 86400

=============================================================================
"""

from typing import Dict, Optional, List
from dataclasses import dataclass, field

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder
from ..http.status_codes import HTTPStatus


@dataclass
class CORSConfig:
    """CORS header values. The defaults are what the plugin expects."""

    allow_origin: str = "*"
    allow_methods: List[str] = field(
        default_factory=lambda: ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )
    allow_headers: List[str] = field(
        default_factory=lambda: ["Content-Type", "Authorization", "X-Requested-With"]
    )
    max_age: int = 86400


def cors_headers(config: Optional[CORSConfig] = None) -> Dict[str, str]:
    """
    The CORS headers every response carries.

    Used by the middleware and directly by the server when it answers a
    request that never reached the middleware (parse errors, overload).
    """
    config = config or CORSConfig()
    return {
        "Access-Control-Allow-Origin": config.allow_origin,
        "Access-Control-Allow-Methods": ", ".join(config.allow_methods),
        "Access-Control-Allow-Headers": ", ".join(config.allow_headers),
    }


class CORSMiddleware(Middleware):
    """
    Answers preflights and stamps CORS headers on every response.

    Usage:
        pipeline.add(CORSMiddleware())     # outermost
    """

    def __init__(self, config: Optional[CORSConfig] = None):
        self.config = config or CORSConfig()

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        if request.method == "OPTIONS":
            return self.preflight()

        response = next(request)
        response.headers.update(cors_headers(self.config))
        return response

    def preflight(self) -> HTTPResponse:
        """200, empty body, CORS headers plus Access-Control-Max-Age."""
        response = ResponseBuilder().status(HTTPStatus.OK).build()
        response.headers.update(cors_headers(self.config))
        response.headers["Access-Control-Max-Age"] = str(self.config.max_age)
        return response
