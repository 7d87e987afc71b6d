"""
=============================================================================
MEDIA DATA MODEL
=============================================================================

Plain dataclasses describing what flows between the store, the index,
the resolver, the exporter and the HTTP handlers.

=============================================================================
WIRE FORMAT
=============================================================================

Python attributes are snake_case; the JSON the plugin consumes is
camelCase. Each model owns a to_dict() that performs the translation, so
handlers never build JSON by hand:

    Asset.to_dict()
    ┌──────────────────────────────────────────────────────────────────┐
    │ {                                                                │
    │   "id": "2024/IMG_0001.jpg",                                     │
    │   "filename": "IMG_0001.jpg",              ← omitted if unknown   │
    │   "createdDate": "2024-03-15T10:00:00Z",   ← ISO-8601, UTC        │
    │   "modifiedDate": "2024-03-15T10:05:00Z",                        │
    │   "mediaType": "image",                                          │
    │   "mediaSubtype": "screenshot",            ← omitted if none      │
    │   "width": 4032, "height": 3024,                                 │
    │   "duration": 12.5,                        ← video only           │
    │   "location": {"latitude": .., "longitude": .., "altitude": ..}, │
    │   "isFavorite": false,                                           │
    │   "thumbnailUrl": "/api/thumbnails/2024/IMG_0001.jpg",           │
    │   "isHidden": false                                              │
    │ }                                                                │
    └──────────────────────────────────────────────────────────────────┘

Optional keys are left out entirely rather than sent as null.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List, Mapping, Tuple
from urllib.parse import quote

from .errors import BadRequest


DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


class MediaKind(Enum):
    """Top-level media type of an asset."""
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["MediaKind"]:
        """
        Parse a mediaType query value.

        Only image, video and audio are accepted as filters; anything
        else (including "unknown") means "no filter".
        """
        if not value:
            return None
        try:
            kind = cls(value.lower())
        except ValueError:
            return None
        return None if kind is cls.UNKNOWN else kind

    @property
    def filename_prefix(self) -> str:
        """Prefix used when synthesizing export filenames."""
        return _FILENAME_PREFIXES[self]


_FILENAME_PREFIXES = {
    MediaKind.IMAGE: "IMG",
    MediaKind.VIDEO: "VID",
    MediaKind.AUDIO: "AUD",
    MediaKind.UNKNOWN: "MEDIA",
}


class MediaSubtype(Enum):
    """Optional refinement of the media kind."""
    LIVE = "live"
    HDR = "hdr"
    PANORAMA = "panorama"
    SCREENSHOT = "screenshot"
    HIGH_FRAME_RATE = "highFrameRate"
    TIMELAPSE = "timelapse"


def isoformat(value: datetime) -> str:
    """
    Render a datetime as ISO-8601 in UTC with second precision.

    Naive datetimes are interpreted as local time.

    Example:
        2024-03-15 11:00:00+01:00 → "2024-03-15T10:00:00Z"
    """
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def utc_now_iso() -> str:
    """Current time as an ISO-8601 UTC string (used in envelopes)."""
    return isoformat(datetime.now(timezone.utc))


# =============================================================================
# ASSETS
# =============================================================================

@dataclass(frozen=True)
class Location:
    """Geolocation attached to an asset."""
    latitude: float
    longitude: float
    altitude: Optional[float] = None

    def to_dict(self) -> Dict[str, float]:
        data = {"latitude": self.latitude, "longitude": self.longitude}
        if self.altitude is not None:
            data["altitude"] = self.altitude
        return data


@dataclass(frozen=True)
class Asset:
    """
    Immutable metadata snapshot of one library item.

    Assets are produced by the MediaStore and never modified here; the
    index replaces whole snapshots instead of editing assets in place.

    Attributes:
        identifier: Opaque, stable identifier (may contain slashes).
        kind: image | video | audio | unknown.
        subtype: Optional subtype tag (live, hdr, ...).
        width: Pixel width.
        height: Pixel height.
        duration: Seconds, meaningful for video only.
        created_at: Creation timestamp (timezone-aware) or None.
        modified_at: Modification timestamp or None.
        location: Optional geolocation.
        is_favorite: Favorite flag.
        is_hidden: Hidden flag (hidden assets are not enumerated).
        filename: Original filename recorded by the store, if known.
    """

    identifier: str
    kind: MediaKind = MediaKind.IMAGE
    subtype: Optional[MediaSubtype] = None
    width: int = 0
    height: int = 0
    duration: Optional[float] = None
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    location: Optional[Location] = None
    is_favorite: bool = False
    is_hidden: bool = False
    filename: Optional[str] = None

    @property
    def thumbnail_url(self) -> str:
        """Percent-encoded so the request parser decodes it back to the identifier."""
        return f"/api/thumbnails/{quote(self.identifier, safe='/')}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase wire model."""
        data: Dict[str, Any] = {"id": self.identifier}
        if self.filename is not None:
            data["filename"] = self.filename
        if self.created_at is not None:
            data["createdDate"] = isoformat(self.created_at)
        if self.modified_at is not None:
            data["modifiedDate"] = isoformat(self.modified_at)
        data["mediaType"] = self.kind.value
        if self.subtype is not None:
            data["mediaSubtype"] = self.subtype.value
        data["width"] = self.width
        data["height"] = self.height
        if self.kind is MediaKind.VIDEO and self.duration is not None:
            data["duration"] = self.duration
        if self.location is not None:
            data["location"] = self.location.to_dict()
        data["isFavorite"] = self.is_favorite
        data["thumbnailUrl"] = self.thumbnail_url
        data["isHidden"] = self.is_hidden
        return data


# =============================================================================
# PAGINATION
# =============================================================================

def _parse_int(value: Optional[str], default: int) -> int:
    """Permissive integer parse: anything non-numeric yields the default."""
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


@dataclass
class PageRequest:
    """
    A validated page request.

    page is 1-based and never below 1; page_size is clamped to
    [1, MAX_PAGE_SIZE].
    """

    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    kind: Optional[MediaKind] = None
    force_reload: bool = False

    def __post_init__(self):
        self.page = max(1, self.page)
        self.page_size = min(max(1, self.page_size), MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @classmethod
    def from_query(
        cls,
        query: Mapping[str, List[str]],
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> "PageRequest":
        """
        Build a PageRequest from parsed query parameters.

        Query parameters are parsed permissively: a malformed page or
        pageSize falls back to its default instead of producing an error.

        Args:
            query: Query parameters as produced by parse_qs.
            default_page_size: pageSize used when absent or malformed.
        """
        def first(name: str) -> Optional[str]:
            values = query.get(name) or []
            return values[0] if values else None

        refresh = (first("refresh") or "").lower() == "true"
        return cls(
            page=_parse_int(first("page"), 1),
            page_size=_parse_int(first("pageSize"), default_page_size),
            kind=MediaKind.parse(first("mediaType")),
            force_reload=refresh,
        )


@dataclass
class PageResult:
    """One page of assets plus the bookkeeping the plugin needs."""

    items: List[Asset]
    total: int
    page: int
    page_size: int
    has_more: bool

    @classmethod
    def empty(cls, page: int, page_size: int, total: int = 0) -> "PageResult":
        return cls(items=[], total=total, page=page, page_size=page_size, has_more=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "photos": [asset.to_dict() for asset in self.items],
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
            "hasMore": self.has_more,
        }


def page_window(total: int, page: int, page_size: int) -> Tuple[int, int]:
    """
    Compute the [start, end) slice for a page, clamped to total.

    An out-of-range page yields an empty window (start == end == total),
    so callers never index past the end of a sequence.
    """
    start = min((page - 1) * page_size, total)
    end = min(start + page_size, total)
    return start, end


# =============================================================================
# RESOLUTION
# =============================================================================

@dataclass(frozen=True)
class Resolution:
    """Bytes resolved for an asset plus the metadata needed to serve them."""
    data: bytes
    content_type: str
    format_tag: Optional[str] = None


# =============================================================================
# EXPORT
# =============================================================================

@dataclass
class ExportRequest:
    """
    Body of POST /api/photos/{id}/export.

    keep_original_name is accepted for compatibility but does not change
    filename resolution.
    """

    destination: str
    filename: Optional[str] = None
    keep_original_name: Optional[bool] = None

    @classmethod
    def from_json(cls, data: Any) -> "ExportRequest":
        """
        Validate a decoded JSON body.

        Raises:
            BadRequest: If the body is not an object or lacks a string
                        "destination".
        """
        if not isinstance(data, dict):
            raise BadRequest("Invalid request body: expected a JSON object")

        destination = data.get("destination")
        if not isinstance(destination, str) or not destination:
            raise BadRequest("Invalid request body: 'destination' must be a non-empty string")

        filename = data.get("filename")
        if filename is not None and not isinstance(filename, str):
            raise BadRequest("Invalid request body: 'filename' must be a string")

        keep = data.get("keepOriginalName")
        if keep is not None and not isinstance(keep, bool):
            raise BadRequest("Invalid request body: 'keepOriginalName' must be a boolean")

        return cls(destination=destination, filename=filename or None, keep_original_name=keep)


@dataclass
class ExportResult:
    """Outcome of exporting one asset."""

    success: bool
    file_path: Optional[str] = None
    original_filename: Optional[str] = None
    error: Optional[str] = None
    identifier: Optional[str] = field(default=None, compare=False)

    @classmethod
    def failure(cls, message: str, identifier: Optional[str] = None) -> "ExportResult":
        return cls(success=False, error=message, identifier=identifier)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.file_path is not None:
            data["filePath"] = self.file_path
        if self.original_filename is not None:
            data["originalFilename"] = self.original_filename
        if self.error is not None:
            data["error"] = self.error
        return data
