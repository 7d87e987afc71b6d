"""
=============================================================================
MEDIA ERROR TAXONOMY
=============================================================================

Every failure a handler can report maps onto one of these exceptions.
Each carries the HTTP status code it should be rendered with, so the
error middleware can turn any of them into the JSON error envelope
without knowing which component raised it.

    ┌─────────────────────┬────────┬──────────────────────────────────────┐
    │ Exception           │ Status │ Raised when                          │
    ├─────────────────────┼────────┼──────────────────────────────────────┤
    │ BadRequest          │  400   │ Missing/invalid query or body params │
    │ NotFound            │  404   │ Identifier absent from the index     │
    │ UpstreamFailure     │  500   │ Store, directory or file I/O failed  │
    │   └── FetchFailed   │  500   │ Fetch failed after fallback          │
    │ Unsupported         │  500   │ Original bytes requested for video   │
    └─────────────────────┴────────┴──────────────────────────────────────┘

The thumbnail timeout is deliberately absent from this table: it is
absorbed by the resolver's fallback path and never reaches a caller.

=============================================================================
"""


class MediaBridgeError(Exception):
    """
    Base class for errors that become JSON error responses.

    Args:
        message: Human-readable message placed in the "error" field.
        status_code: HTTP status to respond with.
    """

    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequest(MediaBridgeError):
    """Missing or invalid query/body parameters."""

    status_code = 400


class NotFound(MediaBridgeError):
    """The requested identifier is not in the library."""

    status_code = 404


class UpstreamFailure(MediaBridgeError):
    """The store or the filesystem failed underneath a request."""

    status_code = 500


class FetchFailed(UpstreamFailure):
    """A store fetch failed after every fallback was exhausted."""


class Unsupported(MediaBridgeError):
    """The operation is not supported for this kind of asset."""

    status_code = 500
