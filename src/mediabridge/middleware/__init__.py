"""
=============================================================================
MIDDLEWARE
=============================================================================

Cross-cutting concerns applied to every request without touching the
handlers:

    CORSMiddleware      preflight answers and CORS headers everywhere
    LoggingMiddleware   access log and X-Request-ID
    ErrorMiddleware     exceptions → JSON error envelope

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .cors import CORSMiddleware, CORSConfig, cors_headers
from .logging import LoggingMiddleware
from .errors import ErrorMiddleware

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "CORSMiddleware",
    "CORSConfig",
    "cors_headers",
    "LoggingMiddleware",
    "ErrorMiddleware",
]
