"""
=============================================================================
EXPORTER
=============================================================================

Writes assets out of the library into a destination directory.

    ┌──────────────────────────────────────────────────────────────────────┐
    │                         export(asset, dest)                          │
    ├──────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   mkdir -p dest ─── fails? ──► "Failed to create destination ..."    │
    │        │                                                             │
    │        ├── video ──► request_file_path ──► rm existing ──► copy      │
    │        │               (extension from the source path, "mov")       │
    │        │                                                             │
    │        └── other ──► request_image_data ──► write bytes              │
    │                        (extension from the format tag, "jpg")        │
    │                                                                      │
    └──────────────────────────────────────────────────────────────────────┘

Videos are copied byte-for-byte, never re-encoded. Failures are reported
in the returned ExportResult rather than raised; none are retried.

=============================================================================
FILENAMES
=============================================================================

    explicit "holiday"          → holiday.jpg
    explicit "holiday.jpg"      → holiday.jpg         (already correct)
    explicit "holiday.png"      → holiday.png.jpg     (appended, not replaced)
    no explicit, store name     → IMG_0001.HEIC       (store's original)
    neither                     → IMG_2024-03-15_10-30-00.jpg

The synthesized prefix follows the media kind: IMG, VID, AUD or MEDIA,
and the timestamp is the local creation time (or now, if unknown).

=============================================================================
BATCH EXPORT
=============================================================================

export_many() fans the exports out over a thread pool and joins on all
of them. It returns exactly one result per asset, in completion order,
and only after every export has finished.

=============================================================================
"""

import logging
import os
import shutil
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout, as_completed
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..http.mime_types import extension_for_tag
from .models import Asset, ExportResult, MediaKind
from .store import DataDelivery, MediaStore


logger = logging.getLogger(__name__)


FILENAME_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
FALLBACK_IMAGE_EXTENSION = "jpg"
FALLBACK_VIDEO_EXTENSION = "mov"

VIDEO_BYTES_PER_SECOND = 1_250_000
DEFAULT_SIZE_ESTIMATE = 1_000_000


def synthesize_filename(asset: Asset, extension: str, now: Optional[datetime] = None) -> str:
    """
    Build "<PREFIX>_<yyyy-MM-dd_HH-mm-ss>.<ext>" for an asset.

    Args:
        asset: The asset being exported.
        extension: Extension without the dot.
        now: Timestamp to use when the asset has no creation time.
    """
    moment = asset.created_at or now or datetime.now()
    stamp = moment.astimezone().strftime(FILENAME_TIMESTAMP_FORMAT)
    return f"{asset.kind.filename_prefix}_{stamp}.{extension}"


def resolve_filename(
    asset: Asset,
    extension: str,
    explicit: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Pick the destination filename for an export.

    An explicit name gets ".<extension>" appended unless it already ends
    with it. Otherwise the store's original filename wins, and failing
    that a name is synthesized from the kind and creation time.
    """
    if explicit:
        suffix = f".{extension}"
        return explicit if explicit.endswith(suffix) else explicit + suffix
    if asset.filename:
        return asset.filename
    return synthesize_filename(asset, extension, now)


def estimate_file_size(asset: Asset) -> int:
    """
    Rough size of an exported asset in bytes.

    Images: width × height × 3. Videos: duration × 1.25 MB/s.
    Anything else: 1 MB.
    """
    if asset.kind is MediaKind.IMAGE:
        return asset.width * asset.height * 3
    if asset.kind is MediaKind.VIDEO:
        return int((asset.duration or 0.0) * VIDEO_BYTES_PER_SECOND)
    return DEFAULT_SIZE_ESTIMATE


def available_space(path: str) -> Optional[int]:
    """
    Free bytes on the filesystem that holds path.

    path need not exist yet: the nearest existing parent is measured.
    Returns None if nothing along the path can be inspected.
    """
    candidate = Path(path).expanduser().absolute()
    for directory in (candidate, *candidate.parents):
        if directory.exists():
            try:
                return shutil.disk_usage(directory).free
            except OSError:
                return None
    return None


class Exporter:
    """
    Exports assets from a MediaStore to the local filesystem.

    Usage:
        exporter = Exporter(store)
        result = exporter.export(asset, "/Users/me/Desktop/export")
        results = exporter.export_many(assets, "/Users/me/Desktop/export")
    """

    def __init__(
        self,
        store: MediaStore,
        max_workers: int = 4,
        resolve_timeout: Optional[float] = 60.0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            store: Source of image bytes and video file paths.
            max_workers: Concurrency of export_many().
            resolve_timeout: How long to wait for a store callback.
            clock: Source of "now" for synthesized filenames.
        """
        self.store = store
        self.max_workers = max_workers
        self.resolve_timeout = resolve_timeout
        self._clock = clock

    # ─────────────────────────────────────────────────────────────────────
    # Single export
    # ─────────────────────────────────────────────────────────────────────

    def export(self, asset: Asset, destination: str, filename: Optional[str] = None) -> ExportResult:
        """
        Export one asset into destination.

        Args:
            asset: Asset to export.
            destination: Target directory; created (with parents) if missing.
            filename: Optional explicit filename.

        Returns:
            ExportResult with success, file path and original filename,
            or success=False and an error message.
        """
        try:
            os.makedirs(destination, exist_ok=True)
        except OSError as e:
            return self._failed(asset, f"Failed to create destination directory: {e}")

        if asset.kind is MediaKind.VIDEO:
            result = self._export_video(asset, destination, filename)
        else:
            result = self._export_image(asset, destination, filename)

        if result.success:
            logger.info(f"Exported {asset.identifier} to {result.file_path}")
        return result

    def _export_image(self, asset: Asset, destination: str, filename: Optional[str]) -> ExportResult:
        future: Future = Future()

        def on_data(delivery: DataDelivery) -> None:
            if not future.done():
                future.set_result(delivery)

        self.store.request_image_data(asset, on_data)
        delivery = self._wait(future)

        if delivery is None or delivery.data is None:
            return self._failed(asset, "Failed to get image data")

        if delivery.format_tag:
            extension = extension_for_tag(delivery.format_tag)
        else:
            extension = FALLBACK_IMAGE_EXTENSION

        name = resolve_filename(asset, extension, filename, now=self._clock())
        target = Path(destination) / name

        try:
            target.write_bytes(delivery.data)
        except OSError as e:
            return self._failed(asset, f"Failed to write file: {e}")

        return ExportResult(
            success=True,
            file_path=str(target),
            original_filename=asset.filename,
            identifier=asset.identifier,
        )

    def _export_video(self, asset: Asset, destination: str, filename: Optional[str]) -> ExportResult:
        future: Future = Future()

        def on_path(path: Optional[str]) -> None:
            if not future.done():
                future.set_result(path)

        self.store.request_file_path(asset, on_path)
        source = self._wait(future)

        if not source:
            return self._failed(asset, "Failed to get video URL")

        extension = Path(source).suffix.lstrip(".") or FALLBACK_VIDEO_EXTENSION
        name = resolve_filename(asset, extension, filename, now=self._clock())
        target = Path(destination) / name

        try:
            if target.exists():
                target.unlink()
            shutil.copyfile(source, target)
        except OSError as e:
            return self._failed(asset, f"Failed to copy video file: {e}")

        return ExportResult(
            success=True,
            file_path=str(target),
            original_filename=asset.filename,
            identifier=asset.identifier,
        )

    def _wait(self, future: Future):
        try:
            return future.result(timeout=self.resolve_timeout)
        except FutureTimeout:
            logger.warning(f"Store did not respond within {self.resolve_timeout}s")
            return None

    @staticmethod
    def _failed(asset: Asset, message: str) -> ExportResult:
        logger.warning(f"Export of {asset.identifier} failed: {message}")
        return ExportResult.failure(message, identifier=asset.identifier)

    # ─────────────────────────────────────────────────────────────────────
    # Batch export
    # ─────────────────────────────────────────────────────────────────────

    def export_many(self, assets: Sequence[Asset], destination: str) -> List[ExportResult]:
        """
        Export several assets concurrently and wait for all of them.

        Returns:
            One ExportResult per asset, in completion order (not input
            order). Each result carries the asset identifier.
        """
        if not assets:
            return []

        estimated = sum(estimate_file_size(a) for a in assets)
        free = available_space(destination)
        if free is not None and estimated > free:
            logger.warning(
                f"Batch export of {len(assets)} assets needs ~{estimated} bytes "
                f"but only {free} are free at {destination}"
            )

        results: List[ExportResult] = []
        workers = max(1, min(self.max_workers, len(assets)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="export") as pool:
            futures = {pool.submit(self.export, asset, destination): asset for asset in assets}
            for future in as_completed(futures):
                asset = futures[future]
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.exception(f"Unexpected error exporting {asset.identifier}: {e}")
                    results.append(ExportResult.failure(str(e), identifier=asset.identifier))
        return results
