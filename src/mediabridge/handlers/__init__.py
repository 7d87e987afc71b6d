"""Request handlers for the bridge endpoints."""

from .health import HealthHandler, HealthStatus, HealthCheck
from .photos import PhotosHandler
from .export import ExportHandler

__all__ = [
    "HealthHandler",
    "HealthStatus",
    "HealthCheck",
    "PhotosHandler",
    "ExportHandler",
]
