"""
=============================================================================
MIDDLEWARE BASE
=============================================================================

Middleware wraps the router like layers of an onion. The request flows
inward, the response flows back out:

    ┌─────────────────────────────────────────────────────────────┐
    │  CORSMiddleware          preflight + CORS headers           │
    │  ┌───────────────────────────────────────────────────────┐  │
    │  │  LoggingMiddleware    access log + X-Request-ID       │  │
    │  │  ┌─────────────────────────────────────────────────┐  │  │
    │  │  │  ErrorMiddleware   exceptions → error envelope  │  │  │
    │  │  │  ┌───────────────────────────────────────────┐  │  │  │
    │  │  │  │            router.handle                  │  │  │  │
    │  │  │  └───────────────────────────────────────────┘  │  │  │
    │  │  └─────────────────────────────────────────────────┘  │  │
    │  └───────────────────────────────────────────────────────┘  │
    └─────────────────────────────────────────────────────────────┘

ErrorMiddleware sits innermost so every handler failure has already
become a response by the time it is logged and decorated with CORS
headers.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

    Implement __call__(request, next): optionally inspect the request,
    call next(request) (or return early), optionally modify the response.
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request.

        Args:
            request: The incoming HTTP request
            next: The next handler in the chain

        Returns:
            HTTP response (from next() or short-circuited)
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains middleware around a final handler.

    The first middleware added is the outermost layer.

    Usage:
        pipeline = MiddlewarePipeline()
        pipeline.use(CORSMiddleware(), LoggingMiddleware(), ErrorMiddleware())
        handler = pipeline.wrap(router.handle)
        response = handler(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Wrap handler with every middleware in the pipeline.

        Wrapping happens in reverse so the first-added middleware ends
        up outermost: [A, B, C] + h  →  A(B(C(h))).
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    @staticmethod
    def _create_wrapped_handler(
        middleware: Middleware,
        next_handler: NextHandler
    ) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)
