"""
=============================================================================
APPLICATION WIRING
=============================================================================

Builds the bridge from a MediaStore:

    MediaStore ──► LibraryIndex ──┐
         │                        ├──► PhotosHandler ──┐
         ├──────► AssetResolver ──┘                    │
         └──────► Exporter ─────────► ExportHandler ───┼──► Router ──► HTTPServer
                                      HealthHandler ───┘

Static routes are registered before the wildcard routes that could also
match them (/api/photos/search vs /api/photos/*id/original).

=============================================================================
"""

import logging
from typing import Optional

from .config import BridgeConfig
from .handlers import HealthHandler, HealthStatus, PhotosHandler, ExportHandler
from .http import Router
from .media import LibraryIndex, AssetResolver, Exporter, MediaStore
from .middleware import CORSMiddleware, LoggingMiddleware, ErrorMiddleware
from .server import HTTPServer


logger = logging.getLogger(__name__)


def library_check(index: LibraryIndex):
    """Readiness check: the library has been loaded at least once."""
    def check() -> HealthStatus:
        age = index.snapshot_age
        if age is None:
            return HealthStatus(healthy=False, message="Library not loaded")
        return HealthStatus(
            healthy=True,
            details={"assets": index.asset_count, "snapshot_age_seconds": round(age, 1)},
        )
    return check


def build_router(
    config: BridgeConfig,
    index: LibraryIndex,
    resolver: AssetResolver,
    exporter: Exporter,
) -> Router:
    """Register every bridge endpoint, in matching order."""
    health = HealthHandler(version=config.version)
    health.add_check("library", library_check(index))

    photos = PhotosHandler(
        index,
        resolver,
        default_page_size=config.default_page_size,
        max_page_size=config.max_page_size,
    )
    export = ExportHandler(index, exporter)

    router = Router()
    router.add_route("/api/health", health.handle, "GET", name="health")
    router.add_route("/api/health/ready", health.readiness, "GET", name="readiness")

    router.add_route("/api/photos", photos.list, "GET", name="list_photos")
    router.add_route("/api/photos/search", photos.search, "GET", name="search_photos")
    router.add_route("/api/photos/date", photos.by_date, "GET", name="photos_by_date")
    router.add_route("/api/thumbnails/*id", photos.thumbnail, "GET", name="thumbnail")
    router.add_route("/api/photos/*id/original", photos.original, "GET", name="original")
    router.add_route("/api/photos/*id/export", export.export, "POST", name="export_photo")
    router.add_route("/api/export/batch", export.export_batch, "POST", name="export_batch")

    return router


def create_app(
    config: Optional[BridgeConfig] = None,
    store: Optional[MediaStore] = None,
    index: Optional[LibraryIndex] = None,
) -> HTTPServer:
    """
    Create a ready-to-run bridge server.

    Args:
        config: Server configuration (defaults if omitted).
        store: The media library to serve.
        index: A pre-built index over store; built from config if omitted.

    Returns:
        HTTPServer with routes and middleware registered.
    """
    config = config or BridgeConfig()
    if store is None:
        raise ValueError("create_app() needs a MediaStore")

    index = index or LibraryIndex(store, staleness_seconds=config.staleness_seconds)
    resolver = AssetResolver(
        store,
        thumbnail_size=(config.thumbnail_size, config.thumbnail_size),
        thumbnail_timeout=config.thumbnail_timeout,
        jpeg_quality=config.jpeg_quality,
        resolve_timeout=config.resolve_timeout,
    )
    exporter = Exporter(
        store,
        max_workers=config.export_workers,
        resolve_timeout=config.resolve_timeout,
    )

    server = HTTPServer(config, router=build_router(config, index, resolver, exporter))
    server.use(CORSMiddleware())
    server.use(LoggingMiddleware(log_format=config.log_format))
    server.use(ErrorMiddleware())

    logger.debug(f"Registered {len(server.router.routes())} routes")
    return server
