"""
=============================================================================
FORMAT TAGS, MIME TYPES AND FILE EXTENSIONS
=============================================================================

The media store describes the bytes it hands back with a FORMAT TAG, a
uniform type identifier such as "public.jpeg" or
"com.apple.quicktime-movie". Two consumers need to translate that tag:

    ┌────────────────────────────────────────────────────────────────────┐
    │                                                                    │
    │   format tag ──► MIME type       Content-Type of /original         │
    │   format tag ──► file extension  Exporter filenames                │
    │   file path  ──► format tag      Folder-backed store               │
    │                                                                    │
    └────────────────────────────────────────────────────────────────────┘

    ┌───────────────────────────────┬──────────────────┬───────────┐
    │ Format tag                    │ MIME type        │ Extension │
    ├───────────────────────────────┼──────────────────┼───────────┤
    │ public.jpeg                   │ image/jpeg       │ jpg       │
    │ public.png                    │ image/png        │ png       │
    │ public.tiff                   │ image/tiff       │ tiff      │
    │ public.gif                    │ (default)        │ gif       │
    │ public.heif                   │ image/heif       │ heif      │
    │ public.heic                   │ image/heic       │ heic      │
    │ com.apple.quicktime-movie     │ video/quicktime  │ mov       │
    │ public.mpeg-4                 │ video/mp4        │ mp4       │
    │ public.avi                    │ video/avi        │ avi       │
    │ public.3gpp                   │ (default)        │ 3gp       │
    └───────────────────────────────┴──────────────────┴───────────┘

Unknown tags fall back to DEFAULT_MIME_TYPE and DEFAULT_EXTENSION, so
a client always receives a valid Content-Type and an export always
gets a filename.

=============================================================================
"""

from pathlib import Path
from typing import Optional, Union


DEFAULT_MIME_TYPE = "application/octet-stream"
DEFAULT_EXTENSION = "bin"

JPEG_MIME_TYPE = "image/jpeg"
JSON_CONTENT_TYPE = "application/json; charset=utf-8"


FORMAT_TAG_MIME_TYPES = {
    "public.jpeg": "image/jpeg",
    "public.png": "image/png",
    "public.tiff": "image/tiff",
    "public.heif": "image/heif",
    "public.heic": "image/heic",
    "com.apple.quicktime-movie": "video/quicktime",
    "public.mpeg-4": "video/mp4",
    "public.avi": "video/avi",
}


FORMAT_TAG_EXTENSIONS = {
    "public.jpeg": "jpg",
    "public.png": "png",
    "public.tiff": "tiff",
    "public.gif": "gif",
    "public.heif": "heif",
    "public.heic": "heic",
    "com.apple.quicktime-movie": "mov",
    "public.mpeg-4": "mp4",
    "public.avi": "avi",
    "public.3gpp": "3gp",
}


# Reverse direction, used when the library is a plain folder of files.
EXTENSION_FORMAT_TAGS = {
    ".jpg": "public.jpeg",
    ".jpeg": "public.jpeg",
    ".png": "public.png",
    ".tif": "public.tiff",
    ".tiff": "public.tiff",
    ".gif": "public.gif",
    ".heif": "public.heif",
    ".heic": "public.heic",
    ".webp": "org.webmproject.webp",
    ".mov": "com.apple.quicktime-movie",
    ".mp4": "public.mpeg-4",
    ".m4v": "public.mpeg-4",
    ".avi": "public.avi",
    ".3gp": "public.3gpp",
    ".mp3": "public.mp3",
    ".m4a": "com.apple.m4a-audio",
    ".wav": "com.microsoft.waveform-audio",
}


def mime_type_for_tag(format_tag: Optional[str]) -> str:
    """
    MIME type for a store format tag.

    Examples:
        >>> mime_type_for_tag("public.heic")
        'image/heic'
        >>> mime_type_for_tag("public.gif")
        'application/octet-stream'
        >>> mime_type_for_tag(None)
        'application/octet-stream'
    """
    if not format_tag:
        return DEFAULT_MIME_TYPE
    return FORMAT_TAG_MIME_TYPES.get(format_tag, DEFAULT_MIME_TYPE)


def extension_for_tag(format_tag: str) -> str:
    """
    File extension (without the dot) for a store format tag.

    Examples:
        >>> extension_for_tag("com.apple.quicktime-movie")
        'mov'
        >>> extension_for_tag("public.unknown")
        'bin'
    """
    return FORMAT_TAG_EXTENSIONS.get(format_tag, DEFAULT_EXTENSION)


def format_tag_for_path(path: Union[str, Path]) -> Optional[str]:
    """Format tag for a file, judged by its extension. None if unknown."""
    return EXTENSION_FORMAT_TAGS.get(Path(path).suffix.lower())
