"""
=============================================================================
MEDIABRIDGE
=============================================================================

A loopback HTTP bridge that exposes a local media library to an editor
plugin: paginated listing, search, day queries, JPEG thumbnails,
original bytes and export to the filesystem.

    from mediabridge import BridgeConfig, create_app
    from mediabridge.media import FolderMediaStore

    server = create_app(BridgeConfig(), FolderMediaStore("~/Pictures"))
    server.run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import BridgeConfig
from .server import HTTPServer
from .app import create_app

__all__ = [
    "__version__",
    "BridgeConfig",
    "HTTPServer",
    "create_app",
]
