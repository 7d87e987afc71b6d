"""
=============================================================================
PHOTO ENDPOINTS
=============================================================================

    GET /api/photos                 ?page=&pageSize=&mediaType=&refresh=
    GET /api/photos/search          ?q=&page=&pageSize=
    GET /api/photos/date            ?date=YYYY/MM/DD&page=&pageSize=
    GET /api/thumbnails/*id         JPEG thumbnail
    GET /api/photos/*id/original    original bytes

Listings share one body shape:

    {
        "photos": [{"id": "...", "mediaType": "image", ...}, ...],
        "total": 1234,
        "page": 1,
        "pageSize": 50,
        "hasMore": true
    }

Handlers raise MediaBridgeError subclasses; ErrorMiddleware renders them.

=============================================================================
"""

import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, HTTPStatus, ok
from ..http.mime_types import JPEG_MIME_TYPE
from ..media.errors import BadRequest, NotFound
from ..media.index import LibraryIndex
from ..media.models import Asset, PageRequest
from ..media.resolver import AssetResolver


logger = logging.getLogger(__name__)


class PhotosHandler:
    """
    Library listing, search and asset retrieval.

    Usage:
        photos = PhotosHandler(index, resolver)
        router.get("/api/photos")(photos.list)
        router.get("/api/thumbnails/*id")(photos.thumbnail)
    """

    def __init__(
        self,
        index: LibraryIndex,
        resolver: AssetResolver,
        default_page_size: int = 50,
        max_page_size: int = 200,
    ):
        self.index = index
        self.resolver = resolver
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def _page(self, request: HTTPRequest) -> PageRequest:
        page = PageRequest.from_query(request.query_params, self.default_page_size)
        page.page_size = min(page.page_size, self.max_page_size)
        return page

    def _asset(self, request: HTTPRequest) -> Asset:
        identifier = request.path_params.get("id", "")
        asset = self.index.lookup(identifier)
        if asset is None:
            raise NotFound("Photo not found")
        return asset

    # ─────────────────────────────────────────────────────────────────────
    # Listings
    # ─────────────────────────────────────────────────────────────────────

    def list(self, request: HTTPRequest) -> HTTPResponse:
        page = self._page(request)
        result = self.index.list(
            page=page.page,
            page_size=page.page_size,
            kind=page.kind,
            force_reload=page.force_reload,
        )
        return ok(result.to_dict())

    def search(self, request: HTTPRequest) -> HTTPResponse:
        query = request.get_query("q")
        if not query:
            raise BadRequest("Missing or empty search query parameter 'q'")

        page = self._page(request)
        result = self.index.search(query, page=page.page, page_size=page.page_size)
        logger.debug(f"Search {query!r} matched {result.total} assets")
        return ok(result.to_dict())

    def by_date(self, request: HTTPRequest) -> HTTPResponse:
        date_string = request.get_query("date")
        if not date_string:
            raise BadRequest("Missing or empty date parameter (format: YYYY/MM/DD)")

        page = self._page(request)
        result = self.index.by_date(date_string, page=page.page, page_size=page.page_size)
        return ok(result.to_dict())

    # ─────────────────────────────────────────────────────────────────────
    # Binary content
    # ─────────────────────────────────────────────────────────────────────

    def thumbnail(self, request: HTTPRequest) -> HTTPResponse:
        """JPEG thumbnail. Blocks this worker until the race settles."""
        asset = self._asset(request)
        data = self.resolver.thumbnail(asset)
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .binary(data, JPEG_MIME_TYPE)
            .build())

    def original(self, request: HTTPRequest) -> HTTPResponse:
        asset = self._asset(request)
        resolution = self.resolver.original(asset)
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .binary(resolution.data, resolution.content_type)
            .build())
