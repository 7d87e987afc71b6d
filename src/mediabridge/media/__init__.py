"""
=============================================================================
MEDIA LAYER
=============================================================================

Everything between the HTTP handlers and the device's media library:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   handlers ──► LibraryIndex   (list, search, by-date, lookup)       │
    │            ──► AssetResolver  (thumbnail race, original bytes)      │
    │            ──► Exporter       (write / copy to the filesystem)      │
    │                     │                                                │
    │                     ▼                                                │
    │               MediaStore (abstract; FolderMediaStore on disk)       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .errors import (
    MediaBridgeError,
    BadRequest,
    NotFound,
    UpstreamFailure,
    FetchFailed,
    Unsupported,
)
from .models import (
    Asset,
    Location,
    MediaKind,
    MediaSubtype,
    PageRequest,
    PageResult,
    Resolution,
    ExportRequest,
    ExportResult,
)
from .store import (
    MediaStore,
    FetchQuality,
    FetchHandle,
    ImageDelivery,
    DataDelivery,
)
from .index import LibraryIndex, LibrarySnapshot
from .resolver import AssetResolver, ThumbnailRace
from .exporter import Exporter
from .folder_store import FolderMediaStore

__all__ = [
    # Errors
    "MediaBridgeError",
    "BadRequest",
    "NotFound",
    "UpstreamFailure",
    "FetchFailed",
    "Unsupported",

    # Data model
    "Asset",
    "Location",
    "MediaKind",
    "MediaSubtype",
    "PageRequest",
    "PageResult",
    "Resolution",
    "ExportRequest",
    "ExportResult",

    # Store contract
    "MediaStore",
    "FetchQuality",
    "FetchHandle",
    "ImageDelivery",
    "DataDelivery",

    # Components
    "LibraryIndex",
    "LibrarySnapshot",
    "AssetResolver",
    "ThumbnailRace",
    "Exporter",
    "FolderMediaStore",
]
