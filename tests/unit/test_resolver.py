"""
Unit tests for the asset resolver and the thumbnail race.
"""

import io

import pytest
from PIL import Image

from mediabridge.media.errors import FetchFailed, Unsupported
from mediabridge.media.models import MediaKind
from mediabridge.media.resolver import AssetResolver, RaceStage, ThumbnailRace, encode_jpeg
from mediabridge.media.store import DataDelivery, FetchQuality, ImageDelivery

from conftest import FakeMediaStore, make_asset, make_image


ASSET = make_asset("2024/IMG_0001.jpg")
HQ = FetchQuality.HIGH_QUALITY
FAST = FetchQuality.OPPORTUNISTIC


def decode(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


@pytest.fixture
def store() -> FakeMediaStore:
    return FakeMediaStore([ASSET])


@pytest.fixture
def resolver(store) -> AssetResolver:
    return AssetResolver(store, thumbnail_timeout=0.1, resolve_timeout=5.0)


class TestThumbnailRace:
    """The high-quality fetch racing its timeout."""

    def test_high_quality_success(self, store, resolver):
        store.high_quality[ASSET.identifier] = [ImageDelivery(image=make_image((0, 0, 255)))]

        data = resolver.thumbnail(ASSET)

        assert decode(data).format == "JPEG"
        assert store.requests_for(FAST) == 0

    def test_degraded_preview_is_not_final(self, store, resolver):
        """A degraded callback is ignored; the final image wins."""
        store.high_quality[ASSET.identifier] = [
            ImageDelivery(image=make_image((255, 0, 0)), degraded=True),
            ImageDelivery(image=make_image((0, 0, 255))),
        ]

        image = decode(resolver.thumbnail(ASSET)).convert("RGB")

        red, green, blue = image.getpixel((10, 10))
        assert blue > 200 and red < 60
        assert store.requests_for(FAST) == 0

    def test_error_falls_back_once(self, store, resolver):
        store.high_quality[ASSET.identifier] = [ImageDelivery(error=OSError("icloud offline"))]
        store.opportunistic[ASSET.identifier] = [ImageDelivery(image=make_image())]

        data = resolver.thumbnail(ASSET)

        assert decode(data).format == "JPEG"
        assert store.requests_for(FAST) == 1

    def test_cancelled_falls_back(self, store, resolver):
        store.high_quality[ASSET.identifier] = [ImageDelivery(cancelled=True)]
        store.opportunistic[ASSET.identifier] = [ImageDelivery(image=make_image())]

        assert resolver.thumbnail(ASSET)
        assert store.requests_for(FAST) == 1

    def test_timeout_cancels_and_falls_back(self, store, resolver):
        """A high-quality fetch that never answers is cancelled at the timeout."""
        store.opportunistic[ASSET.identifier] = [ImageDelivery(image=make_image())]

        data = resolver.thumbnail(ASSET)

        assert decode(data).format == "JPEG"
        quality, handle = store.handles[0]
        assert quality is HQ
        assert handle.cancelled
        assert store.requests_for(FAST) == 1

    def test_late_high_quality_arrival_is_dropped(self, store):
        """After the timeout, a late high-quality callback changes nothing."""
        store.opportunistic[ASSET.identifier] = [ImageDelivery(image=make_image((0, 255, 0)))]
        race = ThumbnailRace(store, ASSET, timeout=0.05)

        first = race.start().result(timeout=5)
        _, _, late_callback = store.pending[0]
        late_callback(ImageDelivery(image=make_image((0, 0, 255))))
        late_callback(ImageDelivery(error=OSError("late failure")))

        assert race.stage is RaceStage.DONE
        assert race.future.result() == first
        assert store.requests_for(FAST) == 1

    def test_fallback_without_image_fails(self, store, resolver):
        store.high_quality[ASSET.identifier] = [ImageDelivery(error=OSError("gone"))]
        store.opportunistic[ASSET.identifier] = [ImageDelivery()]

        with pytest.raises(FetchFailed) as exc:
            resolver.thumbnail(ASSET)
        assert exc.value.message == "Failed to generate thumbnail"
        assert exc.value.status_code == 500

    def test_only_first_fallback_callback_counts(self, store, resolver):
        store.high_quality[ASSET.identifier] = [ImageDelivery(error=OSError("gone"))]
        store.opportunistic[ASSET.identifier] = [
            ImageDelivery(),
            ImageDelivery(image=make_image()),
        ]

        with pytest.raises(FetchFailed):
            resolver.thumbnail(ASSET)

    def test_store_never_answers(self, store):
        resolver = AssetResolver(store, thumbnail_timeout=0.05, resolve_timeout=0.3)

        with pytest.raises(FetchFailed):
            resolver.thumbnail(ASSET)

    def test_request_image_raising_is_a_failure(self, store, resolver):
        def broken(*args, **kwargs):
            raise RuntimeError("store exploded")
        store.request_image = broken

        with pytest.raises(FetchFailed):
            resolver.thumbnail(ASSET)

    def test_thumbnail_dimensions(self, store):
        """The store is asked for the configured square size."""
        seen = []

        def request_image(asset, target_size, quality, callback):
            seen.append(target_size)
            callback(ImageDelivery(image=make_image(size=target_size)))

        store.request_image = request_image
        resolver = AssetResolver(store, thumbnail_size=(200, 200))

        assert decode(resolver.thumbnail(ASSET)).size == (200, 200)
        assert seen == [(200, 200)]


class TestOriginal:
    """Original bytes."""

    def test_image_bytes_and_mime(self, store, resolver):
        store.data[ASSET.identifier] = DataDelivery(data=b"PNGDATA", format_tag="public.png")

        resolution = resolver.original(ASSET)

        assert resolution.data == b"PNGDATA"
        assert resolution.content_type == "image/png"

    def test_unknown_tag_is_octet_stream(self, store, resolver):
        store.data[ASSET.identifier] = DataDelivery(data=b"x", format_tag="public.gif")

        assert resolver.original(ASSET).content_type == "application/octet-stream"

    def test_video_unsupported(self, resolver):
        video = make_asset("clip.mov", kind=MediaKind.VIDEO)

        with pytest.raises(Unsupported) as exc:
            resolver.original(video)
        assert exc.value.status_code == 500

    def test_missing_data(self, store, resolver):
        store.data[ASSET.identifier] = DataDelivery(error=OSError("unreadable"))

        with pytest.raises(FetchFailed) as exc:
            resolver.original(ASSET)
        assert exc.value.message == "Failed to get original image data"


class TestEncodeJpeg:
    def test_rgba_is_converted(self):
        data = encode_jpeg(Image.new("RGBA", (10, 10), (1, 2, 3, 128)), quality=80)

        assert decode(data).mode == "RGB"
