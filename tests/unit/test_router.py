"""
Unit tests for URL router.
"""

import pytest

from mediabridge.http.router import Router
from mediabridge.http.request import HTTPRequest
from mediabridge.http.response import HTTPResponse, ResponseBuilder


def make_request(method: str, path: str) -> HTTPRequest:
    """Helper to create a request for testing."""
    return HTTPRequest(method=method, path=path)


def dummy_handler(request: HTTPRequest) -> HTTPResponse:
    """Echo the path parameters back as JSON."""
    return ResponseBuilder().json(request.path_params).build()


class TestRouter:
    """Tests for Router class."""

    def test_match_static_path(self):
        """Static paths match exactly."""
        router = Router()
        router.add_route("/api/health", dummy_handler, method="GET")

        assert router.match("GET", "/api/health") is not None
        assert router.match("GET", "/api/healthz") is None

    def test_trailing_slash_is_ignored(self):
        """Trailing slashes are normalized away."""
        router = Router()
        router.add_route("/api/photos", dummy_handler, method="GET")

        assert router.match("GET", "/api/photos/") is not None

    def test_named_parameter_matches_one_segment(self):
        """:name captures a single segment."""
        router = Router()
        router.add_route("/items/:id", dummy_handler, method="GET")

        assert router.match("GET", "/items/42").params == {"id": "42"}
        assert router.match("GET", "/items/4/2") is None

    def test_wildcard_captures_slashes(self):
        """*id captures an identifier containing slashes."""
        router = Router()
        router.add_route("/api/thumbnails/*id", dummy_handler, method="GET")

        match = router.match("GET", "/api/thumbnails/2024/03/IMG_0001.jpg")

        assert match.params == {"id": "2024/03/IMG_0001.jpg"}

    def test_wildcard_followed_by_static_segment(self):
        """A wildcard may be followed by more static segments."""
        router = Router()
        router.add_route("/api/photos/*id/original", dummy_handler, method="GET")

        match = router.match("GET", "/api/photos/2024/IMG_0001.jpg/original")

        assert match.params == {"id": "2024/IMG_0001.jpg"}
        assert router.match("GET", "/api/photos/2024/IMG_0001.jpg") is None

    def test_wildcard_is_greedy(self):
        """The last static suffix ends the identifier."""
        router = Router()
        router.add_route("/api/photos/*id/original", dummy_handler, method="GET")

        match = router.match("GET", "/api/photos/a/original/original")

        assert match.params == {"id": "a/original"}

    def test_registration_order_wins(self):
        """A static route registered first shadows a wildcard route."""
        def search(request):
            return ResponseBuilder().json({"route": "search"}).build()

        router = Router()
        router.add_route("/api/photos/search", search, method="GET")
        router.add_route("/api/photos/*id", dummy_handler, method="GET")

        response = router.handle(make_request("GET", "/api/photos/search"))

        assert response.json == {"route": "search"}

    def test_duplicate_parameter_rejected(self):
        """A pattern may not reuse a parameter name."""
        router = Router()
        with pytest.raises(ValueError):
            router.add_route("/a/*id/b/*id", dummy_handler, method="GET")


class TestRouterHandle:
    """Tests for Router.handle() dispatch and error responses."""

    def test_sets_path_params(self):
        """The handler sees the extracted parameters."""
        router = Router()
        router.add_route("/api/thumbnails/*id", dummy_handler, method="GET")

        response = router.handle(make_request("GET", "/api/thumbnails/a/b.jpg"))

        assert response.status == 200
        assert response.json == {"id": "a/b.jpg"}

    def test_unknown_path_is_404_envelope(self):
        """No matching path gives the 404 error envelope."""
        router = Router()
        router.add_route("/api/photos", dummy_handler, method="GET")

        response = router.handle(make_request("GET", "/nope"))

        assert response.status == 404
        assert response.json["error"] == "Not found"
        assert "timestamp" in response.json

    def test_wrong_method_is_405_with_allow(self):
        """A known path with the wrong method gives 405 and Allow."""
        router = Router()
        router.add_route("/api/export/batch", dummy_handler, method="POST")

        response = router.handle(make_request("GET", "/api/export/batch"))

        assert response.status == 405
        assert response.get_header("Allow") == "POST"

    def test_routes_keep_registration_order(self):
        """routes() lists every route, names included, in matching order."""
        router = Router()
        router.add_route("/api/photos/search", dummy_handler, "GET", name="search_photos")
        router.add_route("/api/photos/*id/export", dummy_handler, "post", name="export_photo")

        routes = router.routes()

        assert [(r.method, r.path, r.name) for r in routes] == [
            ("GET", "/api/photos/search", "search_photos"),
            ("POST", "/api/photos/*id/export", "export_photo"),
        ]
