"""
=============================================================================
HTTP ROUTER
=============================================================================

Maps (method, path) to handler functions.

    GET  /api/health                → health
    GET  /api/photos                → list_photos
    GET  /api/photos/search         → search_photos
    GET  /api/photos/date           → photos_by_date
    GET  /api/thumbnails/*id        → thumbnail
    GET  /api/photos/*id/original   → original
    POST /api/photos/*id/export     → export_photo
    POST /api/export/batch          → export_batch

=============================================================================
PATTERN SYNTAX
=============================================================================

    ┌──────────────┬─────────────────────────┬─────────────────────────────┐
    │ Segment      │ Regex                   │ Matches                     │
    ├──────────────┼─────────────────────────┼─────────────────────────────┤
    │ photos       │ photos                  │ exactly "photos"            │
    │ :name        │ (?P<name>[^/]+)         │ one segment                 │
    │ *name        │ (?P<name>.+)            │ one or more segments,       │
    │              │                         │ slashes included            │
    └──────────────┴─────────────────────────┴─────────────────────────────┘

Asset identifiers are opaque and may contain "/", so they are captured
with a wildcard. Unlike a catch-all, a wildcard may be followed by more
static segments:

    /api/photos/*id/original

    /api/photos/2024/IMG_0001.jpg/original  →  {"id": "2024/IMG_0001.jpg"}

The wildcard is greedy, so the LAST "/original" ends the identifier:

    /api/photos/a/original/original         →  {"id": "a/original"}

=============================================================================
MATCHING ORDER
=============================================================================

Routes are tried in registration order and the first match wins, so
static routes (/api/photos/search) must be registered before wildcard
routes that could also match them.

When no route matches the method but some route matches the path, the
router answers 405 with an Allow header instead of 404.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, List
import re

from .request import HTTPRequest
from .response import HTTPResponse, not_found, method_not_allowed


Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """
    A registered route.

        Route(
            path="/api/photos/*id/original",
            method="GET",
            handler=original,
            name="photo_original",
            _pattern=<compiled>,
            _param_names=["id"],
        )
    """

    path: str
    method: Optional[str]
    handler: Handler
    name: Optional[str] = None

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class RouteMatch:
    """The matched route plus the extracted path parameters."""
    route: Route
    params: Dict[str, str]


class Router:
    """
    HTTP request router with dynamic path parameters.

    Usage:
        router = Router()
        router.add_route("/api/thumbnails/*id", thumbnail, "GET", name="thumbnail")

        response = router.handle(request)   # thumbnail sees request.path_params["id"]
    """

    def __init__(self):
        self._routes: List[Route] = []

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Route:
        """
        Register a route.

        Args:
            path: URL pattern (e.g. /api/photos/*id/export)
            handler: Takes an HTTPRequest, returns an HTTPResponse
            method: HTTP method (None for any method)
            name: Optional route name, shown in the startup banner
        """
        pattern, param_names = self._compile_pattern(path)

        route = Route(
            path=path,
            method=method.upper() if method else None,
            handler=handler,
            name=name,
            _pattern=pattern,
            _param_names=param_names,
        )

        self._routes.append(route)
        return route

    def _compile_pattern(self, path: str) -> tuple[re.Pattern, List[str]]:
        """
        Compile a path pattern into an anchored regex.

            "/api/photos/*id/original"
                 │
                 ▼  split on "/"
            ["", "api", "photos", "*id", "original"]
                 │
                 ▼  one regex piece per segment
            ^/api/photos/(?P<id>.+)/original$

        Returns:
            Tuple of (compiled regex, list of parameter names)
        """
        param_names: List[str] = []
        regex_parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue

            regex_parts.append("/")

            if segment.startswith(":"):
                param_name = segment[1:]
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>[^/]+)")

            elif segment.startswith("*"):
                param_name = segment[1:] or "wildcard"
                if param_name in param_names:
                    raise ValueError(f"Duplicate parameter {param_name!r} in {path}")
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>.+)")

            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")

        regex_parts.append("$")
        return re.compile("".join(regex_parts)), param_names

    @staticmethod
    def _normalize(path: str) -> str:
        return "/" + path.strip("/") if path != "/" else "/"

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the first route matching method and path.

        Returns:
            RouteMatch if found, None otherwise
        """
        path = self._normalize(path)

        for route in self._routes:
            if route.method and route.method != method.upper():
                continue

            match = route._pattern.match(path) if route._pattern else None
            if match:
                return RouteMatch(route=route, params=match.groupdict())

        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """Methods registered for a path (for the 405 Allow header)."""
        path = self._normalize(path)
        methods = set()

        for route in self._routes:
            if route._pattern and route._pattern.match(path):
                if route.method:
                    methods.add(route.method)
                else:
                    return ["DELETE", "GET", "OPTIONS", "POST", "PUT"]

        return sorted(methods)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request to its handler.

        Returns the handler's response, 405 when only the method is
        wrong, or 404 when nothing matches the path.
        """
        match = self.match(request.method, request.path)

        if match:
            request.path_params = match.params
            return match.route.handler(request)

        allowed = self.get_allowed_methods(request.path)
        if allowed:
            return method_not_allowed(allowed)

        return not_found("Not found")

    def routes(self) -> List[Route]:
        """All registered routes, in matching order."""
        return list(self._routes)
