"""
=============================================================================
FOLDER-BACKED MEDIA STORE
=============================================================================

A MediaStore over a plain directory tree, so the bridge can run against
any folder of photos and videos:

    library/
    ├── 2024/
    │   ├── IMG_0001.jpg          id "2024/IMG_0001.jpg"
    │   ├── Screenshot 1.png      subtype screenshot
    │   └── clip.mov              video
    └── .trash/
        └── old.jpg               hidden, never enumerated

IDENTIFIERS are POSIX paths relative to the root, so they are stable
across runs and may contain slashes.

METADATA comes from Pillow where it can: pixel size, and the EXIF
DateTimeOriginal tag for the creation time. The file's modification
time fills in when there is no EXIF date.

CALLBACKS are delivered on an internal thread pool, never on the
calling thread, which mirrors how a real photo library behaves.

=============================================================================
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from ..http.mime_types import format_tag_for_path
from .models import Asset, MediaKind, MediaSubtype
from .store import (
    DataCallback,
    DataDelivery,
    FetchHandle,
    FetchQuality,
    ImageCallback,
    ImageDelivery,
    MediaStore,
    PathCallback,
)


logger = logging.getLogger(__name__)


IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".tif", ".tiff", ".gif", ".heif", ".heic", ".webp"}
VIDEO_EXTENSIONS = {".mov", ".mp4", ".m4v", ".avi", ".3gp"}
AUDIO_EXTENSIONS = {".mp3", ".m4a", ".wav"}

SCREENSHOT_PREFIXES = ("screenshot", "screen shot")

EXIF_IFD = 0x8769
EXIF_DATETIME_ORIGINAL = 36867
EXIF_DATETIME = 306
EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"


def kind_for_path(path: Union[str, Path]) -> MediaKind:
    """Media kind judged by file extension."""
    suffix = Path(path).suffix.lower()
    if suffix in IMAGE_EXTENSIONS:
        return MediaKind.IMAGE
    if suffix in VIDEO_EXTENSIONS:
        return MediaKind.VIDEO
    if suffix in AUDIO_EXTENSIONS:
        return MediaKind.AUDIO
    return MediaKind.UNKNOWN


def _exif_datetime(image: Image.Image) -> Optional[datetime]:
    # EXIF dates carry no zone; they are local wall-clock time.
    exif = image.getexif()
    if not exif:
        return None
    raw = exif.get_ifd(EXIF_IFD).get(EXIF_DATETIME_ORIGINAL) or exif.get(EXIF_DATETIME)
    if not isinstance(raw, str):
        return None
    try:
        return datetime.strptime(raw.strip().rstrip("\x00"), EXIF_DATE_FORMAT).astimezone()
    except ValueError:
        return None


class FolderMediaStore(MediaStore):
    """
    MediaStore backed by files under a root directory.

    Usage:
        store = FolderMediaStore("~/Pictures")
        assets = store.enumerate()
    """

    def __init__(self, root: Union[str, Path], workers: int = 4):
        self.root = Path(root).expanduser().resolve()
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="FolderStore")

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    # ─────────────────────────────────────────────────────────────────────
    # Enumeration
    # ─────────────────────────────────────────────────────────────────────

    def enumerate(
        self,
        kind: Optional[MediaKind] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Asset]:
        if not self.root.is_dir():
            logger.warning(f"Library root {self.root} is not a directory")
            return []

        assets = []
        for path in self.root.rglob("*"):
            if not path.is_file():
                continue
            asset = self.describe(path)
            if asset is None or asset.is_hidden:
                continue
            if kind is not None and asset.kind is not kind:
                continue
            if start is not None or end is not None:
                if asset.created_at is None:
                    continue
                created = asset.created_at.astimezone()
                if start is not None and created < start:
                    continue
                if end is not None and created >= end:
                    continue
            assets.append(asset)

        undated = [a for a in assets if a.created_at is None]
        dated = sorted(
            (a for a in assets if a.created_at is not None),
            key=lambda a: a.created_at.astimezone(),
            reverse=True,
        )
        return dated + undated

    def describe(self, path: Path) -> Optional[Asset]:
        """
        Build an Asset for one file, or None if it is not media.

        Unreadable images are still listed, with zero dimensions and
        the modification time as their creation time.
        """
        kind = kind_for_path(path)
        if kind is MediaKind.UNKNOWN:
            return None

        relative = path.relative_to(self.root)
        try:
            stat = path.stat()
        except OSError as e:
            logger.debug(f"Skipping {path}: {e}")
            return None

        modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        created = None
        width = height = 0

        if kind is MediaKind.IMAGE:
            try:
                with Image.open(path) as image:
                    width, height = image.size
                    created = _exif_datetime(image)
            except (OSError, UnidentifiedImageError, ValueError, Image.DecompressionBombError) as e:
                logger.debug(f"Could not read image metadata from {path}: {e}")

        subtype = None
        if path.name.lower().startswith(SCREENSHOT_PREFIXES):
            subtype = MediaSubtype.SCREENSHOT

        return Asset(
            identifier=relative.as_posix(),
            kind=kind,
            subtype=subtype,
            width=width,
            height=height,
            created_at=created or modified,
            modified_at=modified,
            is_hidden=any(part.startswith(".") for part in relative.parts),
            filename=path.name,
        )

    def path_for(self, asset: Asset) -> Path:
        path = (self.root / asset.identifier).resolve()
        if self.root not in path.parents:
            raise FileNotFoundError(f"{asset.identifier} is outside the library")
        return path

    # ─────────────────────────────────────────────────────────────────────
    # Fetching
    # ─────────────────────────────────────────────────────────────────────

    def request_image(
        self,
        asset: Asset,
        target_size: Tuple[int, int],
        quality: FetchQuality,
        callback: ImageCallback,
    ) -> FetchHandle:
        handle = FetchHandle()
        self._executor.submit(self._render, asset, target_size, handle, callback)
        return handle

    def _render(self, asset: Asset, target_size: Tuple[int, int], handle: FetchHandle, callback: ImageCallback) -> None:
        if handle.cancelled:
            callback(ImageDelivery(cancelled=True))
            return
        try:
            with Image.open(self.path_for(asset)) as source:
                image = ImageOps.exif_transpose(source)
                rendered = ImageOps.fit(image, target_size, method=Image.Resampling.LANCZOS)
        except Exception as e:
            # Includes Pillow's DecompressionBombError, which is not an OSError.
            logger.debug(f"Could not render {asset.identifier}: {e}")
            callback(ImageDelivery(error=e))
            return

        if handle.cancelled:
            callback(ImageDelivery(cancelled=True))
            return
        callback(ImageDelivery(image=rendered))

    def request_image_data(self, asset: Asset, callback: DataCallback) -> None:
        self._executor.submit(self._read_data, asset, callback)

    def _read_data(self, asset: Asset, callback: DataCallback) -> None:
        try:
            path = self.path_for(asset)
            data = path.read_bytes()
        except Exception as e:
            logger.debug(f"Could not read {asset.identifier}: {e}")
            callback(DataDelivery(error=e))
            return
        callback(DataDelivery(data=data, format_tag=format_tag_for_path(path)))

    def request_file_path(self, asset: Asset, callback: PathCallback) -> None:
        self._executor.submit(self._locate, asset, callback)

    def _locate(self, asset: Asset, callback: PathCallback) -> None:
        try:
            path = self.path_for(asset)
        except OSError:
            callback(None)
            return
        callback(os.fspath(path) if path.is_file() else None)
