"""
=============================================================================
ASSET RESOLVER - TIERED THUMBNAIL PROTOCOL
=============================================================================

Turns an asset into bytes an HTTP handler can send: a 200x200 JPEG
thumbnail, or the original full-resolution image bytes.

=============================================================================
THE THUMBNAIL RACE
=============================================================================

A high-quality fetch can take arbitrarily long (the original may have to
be downloaded first), but the plugin is waiting on an HTTP response. So
the high-quality fetch races an 8-second timer, and whichever fires
first decides what happens next:

    ┌──────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   start ──► request_image(HIGH_QUALITY) ──┐                          │
    │        └──► Timer(8s) ───────────────────┐│                          │
    │                                          ││                          │
    │                    ┌─────────────────────┘│                          │
    │                    ▼                      ▼                          │
    │              timer fires          callback arrives                   │
    │                    │                      │                          │
    │                    │        ┌─────────────┼──────────────┐           │
    │                    │        ▼             ▼              ▼           │
    │                    │    final image   error or       degraded        │
    │                    │        │         cancelled      preview         │
    │                    │        │             │              │           │
    │                    │        ▼             │              ▼           │
    │                    │    JPEG, done        │          ignore, keep    │
    │                    │                      │          waiting         │
    │                    ▼                      ▼                          │
    │           cancel HIGH_QUALITY      cancel timer                      │
    │                    │                      │                          │
    │                    └──────────┬───────────┘                          │
    │                               ▼                                      │
    │                request_image(OPPORTUNISTIC)   ← issued exactly once  │
    │                               │                                      │
    │                   first callback is final:                           │
    │                   image → JPEG, none → FetchFailed                   │
    │                                                                      │
    └──────────────────────────────────────────────────────────────────────┘

The timeout is never reported to the caller. It only ever moves the race
onto the fallback path.

=============================================================================
FIRST WRITER WINS
=============================================================================

The timer thread and the store's callback thread can fire at the same
moment. Every transition goes through one lock-protected stage field:

    HIGH_QUALITY ──(success)──────────────────────────────► DONE
    HIGH_QUALITY ──(error | cancelled | timeout)──► FALLBACK ──(any)──► DONE

An event that finds the race in a later stage than it expects is a late
arrival and is dropped. That guarantees one fallback request and one
delivered result, no matter how the threads interleave.

=============================================================================
ASYNC TO SYNC
=============================================================================

Handlers run on a worker thread and need a plain return value. The race
settles a concurrent.futures.Future; the handler blocks on
future.result(timeout). Other requests run on their own workers, so one
slow thumbnail never stalls the server.

=============================================================================
"""

import io
import logging
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeout
from enum import Enum
from typing import Optional, Tuple

from PIL import Image

from ..http.mime_types import mime_type_for_tag
from .errors import FetchFailed, Unsupported
from .models import Asset, MediaKind, Resolution
from .store import DataDelivery, FetchHandle, FetchQuality, ImageDelivery, MediaStore


logger = logging.getLogger(__name__)


THUMBNAIL_SIZE = (200, 200)
THUMBNAIL_TIMEOUT = 8.0
JPEG_QUALITY = 80
RESOLVE_TIMEOUT = 60.0


def encode_jpeg(image: Image.Image, quality: int = JPEG_QUALITY) -> bytes:
    """
    Encode a Pillow image as JPEG bytes.

    JPEG has no alpha channel or palette, so anything that is not RGB
    (or L) is converted first.
    """
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


class RaceStage(Enum):
    """Where a thumbnail race currently stands."""
    HIGH_QUALITY = "high_quality"
    FALLBACK = "fallback"
    DONE = "done"


class ThumbnailRace:
    """
    One thumbnail resolution: a high-quality fetch racing a timeout.

    Create it, call start(), then wait on `future`. See the module
    docstring for the state machine.
    """

    def __init__(
        self,
        store: MediaStore,
        asset: Asset,
        size: Tuple[int, int] = THUMBNAIL_SIZE,
        timeout: float = THUMBNAIL_TIMEOUT,
        quality: int = JPEG_QUALITY,
    ):
        self.store = store
        self.asset = asset
        self.size = size
        self.timeout = timeout
        self.quality = quality

        self.future: Future = Future()

        self._lock = threading.Lock()
        self._stage = RaceStage.HIGH_QUALITY
        self._handle: Optional[FetchHandle] = None
        self._timer: Optional[threading.Timer] = None

    @property
    def stage(self) -> RaceStage:
        return self._stage

    def start(self) -> Future:
        """Arm the timer and issue the high-quality request."""
        timer = threading.Timer(self.timeout, self._on_timeout)
        timer.daemon = True
        self._timer = timer
        timer.start()

        try:
            handle = self.store.request_image(
                self.asset, self.size, FetchQuality.HIGH_QUALITY, self._on_high_quality
            )
        except Exception as e:
            self._on_high_quality(ImageDelivery(error=e))
            return self.future

        with self._lock:
            self._handle = handle
            cancel_now = self._stage is RaceStage.FALLBACK

        # The timer won before the handle was known: cancel it now.
        if cancel_now and handle is not None:
            handle.cancel()

        return self.future

    # ─────────────────────────────────────────────────────────────────────
    # Race events
    # ─────────────────────────────────────────────────────────────────────

    def _on_high_quality(self, delivery: ImageDelivery) -> None:
        if delivery.is_final_success:
            with self._lock:
                if self._stage is not RaceStage.HIGH_QUALITY:
                    return
                self._stage = RaceStage.DONE
            self._cancel_timer()
            self._deliver_image(delivery.image)
            return

        if delivery.is_failure:
            with self._lock:
                if self._stage is not RaceStage.HIGH_QUALITY:
                    return
                self._stage = RaceStage.FALLBACK
            self._cancel_timer()
            logger.debug(
                f"High-quality fetch failed for {self.asset.identifier} "
                f"(cancelled={delivery.cancelled}, error={delivery.error}), falling back"
            )
            self._request_fallback()
            return

        # Degraded preview (or an empty interim callback): not final.

    def _on_timeout(self) -> None:
        with self._lock:
            if self._stage is not RaceStage.HIGH_QUALITY:
                return
            self._stage = RaceStage.FALLBACK
            handle = self._handle

        logger.debug(
            f"High-quality fetch for {self.asset.identifier} exceeded "
            f"{self.timeout:.1f}s, falling back"
        )
        if handle is not None:
            handle.cancel()
        self._request_fallback()

    def _request_fallback(self) -> None:
        try:
            self.store.request_image(
                self.asset, self.size, FetchQuality.OPPORTUNISTIC, self._on_opportunistic
            )
        except Exception as e:
            self._finish_with_error(FetchFailed(f"Failed to generate thumbnail: {e}"))

    def _on_opportunistic(self, delivery: ImageDelivery) -> None:
        with self._lock:
            if self._stage is not RaceStage.FALLBACK:
                return
            self._stage = RaceStage.DONE

        if delivery.image is None:
            logger.warning(f"Failed to generate thumbnail for asset {self.asset.identifier}")
            self.future.set_result(None)
            return
        self._deliver_image(delivery.image)

    # ─────────────────────────────────────────────────────────────────────
    # Completion
    # ─────────────────────────────────────────────────────────────────────

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()

    def _deliver_image(self, image: Image.Image) -> None:
        try:
            data = encode_jpeg(image, self.quality)
        except (OSError, ValueError) as e:
            logger.warning(f"JPEG encoding failed for {self.asset.identifier}: {e}")
            self.future.set_result(None)
            return
        self.future.set_result(data)

    def _finish_with_error(self, error: Exception) -> None:
        with self._lock:
            self._stage = RaceStage.DONE
        if not self.future.done():
            self.future.set_exception(error)


class AssetResolver:
    """
    Resolves assets into thumbnail or original bytes.

    Usage:
        resolver = AssetResolver(store)

        jpeg = resolver.thumbnail(asset)        # bytes, or raises FetchFailed
        original = resolver.original(asset)     # Resolution(data, content_type)
    """

    def __init__(
        self,
        store: MediaStore,
        thumbnail_size: Tuple[int, int] = THUMBNAIL_SIZE,
        thumbnail_timeout: float = THUMBNAIL_TIMEOUT,
        jpeg_quality: int = JPEG_QUALITY,
        resolve_timeout: Optional[float] = RESOLVE_TIMEOUT,
    ):
        """
        Args:
            store: Where pixels and bytes come from.
            thumbnail_size: Thumbnail target (aspect-fill).
            thumbnail_timeout: How long the high-quality fetch may run
                               before the fallback is issued.
            jpeg_quality: JPEG quality for thumbnails (0-100).
            resolve_timeout: Upper bound on how long a handler waits for
                             the store to call back at all.
                             None = wait forever.
        """
        self.store = store
        self.thumbnail_size = thumbnail_size
        self.thumbnail_timeout = thumbnail_timeout
        self.jpeg_quality = jpeg_quality
        self.resolve_timeout = resolve_timeout

    def thumbnail_future(self, asset: Asset) -> Future:
        """
        Start a thumbnail race and return its future.

        The future resolves to JPEG bytes, or to None if both tiers
        produced nothing.
        """
        race = ThumbnailRace(
            self.store,
            asset,
            size=self.thumbnail_size,
            timeout=self.thumbnail_timeout,
            quality=self.jpeg_quality,
        )
        return race.start()

    def thumbnail(self, asset: Asset) -> bytes:
        """
        Resolve a JPEG thumbnail, blocking until the race settles.

        Raises:
            FetchFailed: Neither the high-quality nor the fallback fetch
                         produced an image.
        """
        data = self._wait(self.thumbnail_future(asset), "Failed to generate thumbnail")
        if data is None:
            raise FetchFailed("Failed to generate thumbnail")
        return data

    def original(self, asset: Asset) -> Resolution:
        """
        Resolve the original full-resolution bytes of an image.

        Raises:
            Unsupported: The asset is a video (export it instead).
            FetchFailed: The store returned no data.
        """
        if asset.kind is MediaKind.VIDEO:
            raise Unsupported("Original data is not available for video assets; use export instead")

        future: Future = Future()

        def on_data(delivery: DataDelivery) -> None:
            if not future.done():
                future.set_result(delivery)

        self.store.request_image_data(asset, on_data)
        delivery = self._wait(future, "Failed to get original image data")

        if delivery.data is None:
            if delivery.error is not None:
                logger.warning(f"Original fetch failed for {asset.identifier}: {delivery.error}")
            raise FetchFailed("Failed to get original image data")

        return Resolution(
            data=delivery.data,
            content_type=mime_type_for_tag(delivery.format_tag),
            format_tag=delivery.format_tag,
        )

    def _wait(self, future: Future, failure_message: str):
        try:
            return future.result(timeout=self.resolve_timeout)
        except FutureTimeout:
            logger.warning(f"Store did not respond within {self.resolve_timeout}s")
            raise FetchFailed(failure_message)
