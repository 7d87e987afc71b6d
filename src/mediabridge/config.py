"""
=============================================================================
BRIDGE CONFIGURATION
=============================================================================

All tunables live in one dataclass. Values come from three layers, the
later ones overriding the earlier:

    ┌──────────────────┐    ┌──────────────────────┐    ┌───────────────┐
    │ dataclass        │ ─► │ MEDIABRIDGE_* env    │ ─► │ CLI flags     │
    │ defaults         │    │ (from_env)           │    │ (__main__)    │
    └──────────────────┘    └──────────────────────┘    └───────────────┘

validate() runs once at startup and raises ValueError on anything
inconsistent, so a bad value stops the process before it binds.

=============================================================================
LOOPBACK ONLY
=============================================================================

The API has no authentication: it trusts whoever can reach it. It must
therefore only ever listen on a loopback address (127.0.0.0/8 or
"localhost"); validate() rejects anything else.

=============================================================================
"""

import ipaddress
import os
from dataclasses import dataclass
from typing import Optional

from . import __version__


DEFAULT_PORT = 44556
LOG_FORMATS = ("text", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def is_loopback_host(host: str) -> bool:
    """True for "localhost" and IPv4 loopback addresses."""
    if host == "localhost":
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return address.version == 4 and address.is_loopback


@dataclass
class BridgeConfig:
    """
    Configuration for the media bridge server.

    Groups:
        NETWORK     host, port, backlog, buffer_size, timeout,
                    keep_alive, max_request_size
        THREADING   min_workers, max_workers, queue_size
        LIBRARY     library_path, staleness_seconds, default_page_size,
                    max_page_size
        RESOLVER    thumbnail_size, thumbnail_timeout, jpeg_quality,
                    resolve_timeout
        EXPORT      export_workers
        LOGGING     log_level, log_format
    """

    host: str = "127.0.0.1"
    """Loopback address to bind to."""

    port: int = DEFAULT_PORT
    """Port the plugin connects to. 0 picks a free port (tests)."""

    backlog: int = 128
    buffer_size: int = 8192

    timeout: Optional[float] = 30.0
    """Seconds a client may take to send its request."""

    keep_alive: bool = False
    """
    Serve one request per connection. Every response carries
    "Connection: close". Kept as an explicit setting so the behavior is
    visible in the configuration rather than implied by the server.
    """

    max_request_size: int = 10 * 1024 * 1024

    min_workers: int = 4
    max_workers: int = 16

    queue_size: int = 100
    """Connections allowed to wait for a worker before 503s are sent."""

    library_path: Optional[str] = None
    """Root folder for the folder-backed store (None = current directory)."""

    staleness_seconds: float = 300.0
    """Age after which a listing triggers a background reload."""

    default_page_size: int = 50
    max_page_size: int = 200

    thumbnail_size: int = 200
    """Thumbnails are thumbnail_size x thumbnail_size, aspect-filled."""

    thumbnail_timeout: float = 8.0
    """How long the high-quality fetch may run before the fallback."""

    jpeg_quality: int = 80

    resolve_timeout: Optional[float] = 60.0
    """Upper bound on waiting for any store callback."""

    export_workers: int = 4

    log_level: str = "INFO"
    log_format: str = "text"
    """'text' (Apache-style access lines) or 'json'."""

    version: str = __version__
    server_name: str = f"mediabridge/{__version__}"

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        """
        Build a config from MEDIABRIDGE_* environment variables.

            MEDIABRIDGE_HOST               bind host
            MEDIABRIDGE_PORT               bind port
            MEDIABRIDGE_WORKERS            max worker threads
            MEDIABRIDGE_TIMEOUT            client read timeout (seconds)
            MEDIABRIDGE_LIBRARY            folder store root
            MEDIABRIDGE_THUMBNAIL_TIMEOUT  high-quality fetch timeout
            MEDIABRIDGE_LOG_LEVEL          DEBUG/INFO/WARNING/ERROR
            MEDIABRIDGE_LOG_FORMAT         text/json

        Raises:
            ValueError: If a numeric variable is not a number.
        """
        defaults = cls()
        return cls(
            host=os.getenv("MEDIABRIDGE_HOST", defaults.host),
            port=int(os.getenv("MEDIABRIDGE_PORT", str(defaults.port))),
            max_workers=int(os.getenv("MEDIABRIDGE_WORKERS", str(defaults.max_workers))),
            timeout=float(os.getenv("MEDIABRIDGE_TIMEOUT", str(defaults.timeout))),
            library_path=os.getenv("MEDIABRIDGE_LIBRARY"),
            thumbnail_timeout=float(
                os.getenv("MEDIABRIDGE_THUMBNAIL_TIMEOUT", str(defaults.thumbnail_timeout))
            ),
            log_level=os.getenv("MEDIABRIDGE_LOG_LEVEL", defaults.log_level).upper(),
            log_format=os.getenv("MEDIABRIDGE_LOG_FORMAT", defaults.log_format).lower(),
        )

    def validate(self) -> None:
        """
        Fail fast on invalid settings.

        Raises:
            ValueError: Describing the first invalid setting found.
        """
        if not is_loopback_host(self.host):
            raise ValueError(f"host must be a loopback address, got {self.host!r}")

        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.keep_alive:
            raise ValueError("keep_alive is not supported; the bridge serves one request per connection")

        if not 1 <= self.default_page_size <= self.max_page_size:
            raise ValueError("default_page_size must be between 1 and max_page_size")

        if self.thumbnail_size < 1:
            raise ValueError("thumbnail_size must be >= 1")

        if self.thumbnail_timeout <= 0:
            raise ValueError("thumbnail_timeout must be > 0")

        if not 1 <= self.jpeg_quality <= 100:
            raise ValueError("jpeg_quality must be between 1 and 100")

        if self.resolve_timeout is not None and self.resolve_timeout < self.thumbnail_timeout:
            raise ValueError("resolve_timeout must be >= thumbnail_timeout")

        if self.export_workers < 1:
            raise ValueError("export_workers must be >= 1")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")
