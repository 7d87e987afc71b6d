"""
=============================================================================
MEDIA STORE CONTRACT
=============================================================================

The MediaStore is the external collaborator that actually owns the
library: it enumerates assets, and it fetches pixels and bytes for them.
Everything in mediabridge talks to it through this abstract interface.

=============================================================================
CALLBACK-BASED FETCHING
=============================================================================

Fetches are asynchronous. The caller passes a callback and gets control
back immediately; the store invokes the callback later, on a thread of
its own choosing:

    caller thread                       store thread(s)
    ─────────────                       ───────────────
    request_image(asset, cb) ──────►    (decoding, downloading...)
        │ returns FetchHandle                   │
        ▼                                       │
    (free to do other work)                     ├──► cb(degraded preview)
                                                │
                                                └──► cb(final image)

An image request may call back MORE THAN ONCE: a quick low-quality
preview flagged `degraded`, followed by the final result. A request can
also finish with an error, or with `cancelled` after FetchHandle.cancel().

=============================================================================
FETCH QUALITY
=============================================================================

    HIGH_QUALITY   Wait for the best representation. May be slow when the
                   original must first be downloaded.

    OPPORTUNISTIC  Return whatever is quickest, possibly lower fidelity.
                   Used as the fallback when HIGH_QUALITY is too slow or
                   fails.

=============================================================================
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .models import Asset, MediaKind


class FetchQuality(Enum):
    """Delivery mode requested from the store."""
    HIGH_QUALITY = "high_quality"
    OPPORTUNISTIC = "opportunistic"


@dataclass
class ImageDelivery:
    """
    One callback's worth of image data.

    Attributes:
        image: A PIL.Image.Image, or None if nothing could be produced.
        degraded: True for a provisional preview that will be followed
                  by a better callback.
        error: Error raised by the store, if any.
        cancelled: True if the request was cancelled before completing.
    """

    image: Optional[object] = None
    degraded: bool = False
    error: Optional[BaseException] = None
    cancelled: bool = False

    @property
    def is_final_success(self) -> bool:
        """A usable, non-provisional image with no error."""
        return (
            self.image is not None
            and not self.degraded
            and self.error is None
            and not self.cancelled
        )

    @property
    def is_failure(self) -> bool:
        """The request ended without an image and will not call back again."""
        return self.error is not None or self.cancelled


@dataclass
class DataDelivery:
    """Raw original bytes plus the store's format tag (e.g. "public.jpeg")."""
    data: Optional[bytes] = None
    format_tag: Optional[str] = None
    error: Optional[BaseException] = None


ImageCallback = Callable[[ImageDelivery], None]
DataCallback = Callable[[DataDelivery], None]
PathCallback = Callable[[Optional[str]], None]


class FetchHandle:
    """
    Handle for an in-flight fetch.

    Stores return one of these from request_image(). Calling cancel()
    asks the store to abandon the request; a store that honours it
    reports `cancelled=True` in a final callback (or simply never calls
    back again).
    """

    def __init__(self, on_cancel: Optional[Callable[[], None]] = None):
        self._cancelled = threading.Event()
        self._on_cancel = on_cancel

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        if self._on_cancel is not None:
            self._on_cancel()


class MediaStore(ABC):
    """
    Read-only access to a media library.

    Implementations must be safe to call from many threads at once;
    mediabridge issues concurrent fetches without extra locking.
    """

    @abstractmethod
    def enumerate(
        self,
        kind: Optional[MediaKind] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Asset]:
        """
        List visible (non-hidden) assets, newest creation time first.

        Args:
            kind: Restrict to one media kind.
            start: Inclusive lower bound on creation time.
            end: Exclusive upper bound on creation time.
                 When either bound is given, assets without a creation
                 time are excluded.
        """

    @abstractmethod
    def request_image(
        self,
        asset: Asset,
        target_size: Tuple[int, int],
        quality: FetchQuality,
        callback: ImageCallback,
    ) -> FetchHandle:
        """
        Request a rendered image, aspect-filled to target_size.

        The callback may fire several times (degraded previews first).
        """

    @abstractmethod
    def request_image_data(self, asset: Asset, callback: DataCallback) -> None:
        """Request the full-resolution original bytes and their format tag."""

    @abstractmethod
    def request_file_path(self, asset: Asset, callback: PathCallback) -> None:
        """Request a filesystem path to the asset's backing file (video export)."""
