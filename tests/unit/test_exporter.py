"""
Unit tests for exporting assets to the filesystem.
"""

import logging
from datetime import datetime

import pytest

from mediabridge.media.exporter import (
    Exporter,
    estimate_file_size,
    resolve_filename,
    synthesize_filename,
)
from mediabridge.media.models import MediaKind
from mediabridge.media.store import DataDelivery

from conftest import FakeMediaStore, make_asset


CREATED = datetime(2024, 3, 15, 10, 30, 5).astimezone()
NOW = datetime(2025, 1, 2, 3, 4, 5)


class TestFilenames:
    """Destination filename resolution."""

    def test_explicit_name_gets_extension(self):
        asset = make_asset("a.jpg")

        assert resolve_filename(asset, "jpg", "holiday") == "holiday.jpg"

    def test_explicit_name_keeps_matching_extension(self):
        assert resolve_filename(make_asset("a.jpg"), "jpg", "holiday.jpg") == "holiday.jpg"

    def test_explicit_name_with_other_extension(self):
        assert resolve_filename(make_asset("a.jpg"), "png", "holiday.jpg") == "holiday.jpg.png"

    def test_store_filename(self):
        assert resolve_filename(make_asset("2024/IMG_0001.HEIC"), "heic") == "IMG_0001.HEIC"

    @pytest.mark.parametrize("kind, prefix", [
        (MediaKind.IMAGE, "IMG"),
        (MediaKind.VIDEO, "VID"),
        (MediaKind.AUDIO, "AUD"),
        (MediaKind.UNKNOWN, "MEDIA"),
    ])
    def test_synthesized_name(self, kind, prefix):
        asset = make_asset("x", CREATED, kind=kind, filename=None)

        assert resolve_filename(asset, "bin") == f"{prefix}_2024-03-15_10-30-05.bin"

    def test_synthesized_name_without_date_uses_now(self):
        asset = make_asset("x", None, filename=None)

        assert synthesize_filename(asset, "jpg", now=NOW) == "IMG_2025-01-02_03-04-05.jpg"


class TestSizeEstimate:
    def test_image(self):
        assert estimate_file_size(make_asset("a", width=100, height=50)) == 15_000

    def test_video(self):
        video = make_asset("v", kind=MediaKind.VIDEO, duration=2.0)

        assert estimate_file_size(video) == 2_500_000

    def test_other(self):
        assert estimate_file_size(make_asset("s", kind=MediaKind.AUDIO)) == 1_000_000


@pytest.fixture
def exporter_store() -> FakeMediaStore:
    return FakeMediaStore()


@pytest.fixture
def exporter(exporter_store) -> Exporter:
    return Exporter(exporter_store, resolve_timeout=5.0, clock=lambda: NOW)


class TestExportImage:
    """Image export writes the original bytes."""

    def test_writes_bytes(self, exporter, exporter_store, tmp_path):
        asset = make_asset("2024/IMG_0001.png", CREATED)
        exporter_store.data[asset.identifier] = DataDelivery(data=b"\x89PNG", format_tag="public.png")

        result = exporter.export(asset, str(tmp_path / "out"))

        assert result.success
        assert result.file_path == str(tmp_path / "out" / "IMG_0001.png")
        assert result.original_filename == "IMG_0001.png"
        assert (tmp_path / "out" / "IMG_0001.png").read_bytes() == b"\x89PNG"

    def test_extension_from_format_tag(self, exporter, exporter_store, tmp_path):
        asset = make_asset("a", CREATED, filename=None)
        exporter_store.data["a"] = DataDelivery(data=b"x", format_tag="public.heic")

        result = exporter.export(asset, str(tmp_path), filename="pic")

        assert result.file_path.endswith("pic.heic")

    def test_unknown_tag_is_bin(self, exporter, exporter_store, tmp_path):
        asset = make_asset("a", CREATED, filename=None)
        exporter_store.data["a"] = DataDelivery(data=b"x", format_tag="public.webp")

        assert exporter.export(asset, str(tmp_path)).file_path.endswith("IMG_2024-03-15_10-30-05.bin")

    def test_missing_tag_is_jpg(self, exporter, exporter_store, tmp_path):
        asset = make_asset("a", CREATED, filename=None)
        exporter_store.data["a"] = DataDelivery(data=b"x")

        assert exporter.export(asset, str(tmp_path)).file_path.endswith(".jpg")

    def test_overwrites_existing(self, exporter, exporter_store, tmp_path):
        asset = make_asset("a.jpg")
        (tmp_path / "a.jpg").write_bytes(b"old")
        exporter_store.data["a.jpg"] = DataDelivery(data=b"new", format_tag="public.jpeg")

        exporter.export(asset, str(tmp_path))

        assert (tmp_path / "a.jpg").read_bytes() == b"new"

    def test_no_data(self, exporter, tmp_path, caplog):
        with caplog.at_level(logging.WARNING):
            result = exporter.export(make_asset("a.jpg"), str(tmp_path))

        assert not result.success
        assert result.error == "Failed to get image data"
        assert "Export of a.jpg failed" in caplog.text

    def test_audio_takes_image_path(self, exporter, exporter_store, tmp_path):
        asset = make_asset("song.m4a", kind=MediaKind.AUDIO)
        exporter_store.data["song.m4a"] = DataDelivery(data=b"aac")

        result = exporter.export(asset, str(tmp_path))

        assert result.success
        assert (tmp_path / "song.m4a").read_bytes() == b"aac"

    def test_destination_cannot_be_created(self, exporter, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        result = exporter.export(make_asset("a.jpg"), str(blocker / "sub"))

        assert not result.success
        assert result.error.startswith("Failed to create destination directory: ")

    def test_write_failure(self, exporter, exporter_store, tmp_path):
        asset = make_asset("a.jpg")
        exporter_store.data["a.jpg"] = DataDelivery(data=b"x", format_tag="public.jpeg")
        (tmp_path / "a.jpg").mkdir()

        result = exporter.export(asset, str(tmp_path))

        assert not result.success
        assert result.error.startswith("Failed to write file: ")


class TestExportVideo:
    """Video export copies the backing file."""

    def test_copies_file(self, exporter, exporter_store, tmp_path):
        source = tmp_path / "library" / "clip.mp4"
        source.parent.mkdir()
        source.write_bytes(b"MP4DATA")
        asset = make_asset("clip.mp4", CREATED, kind=MediaKind.VIDEO, filename=None)
        exporter_store.paths["clip.mp4"] = str(source)

        result = exporter.export(asset, str(tmp_path / "out"), filename="trip")

        assert result.success
        assert (tmp_path / "out" / "trip.mp4").read_bytes() == b"MP4DATA"
        assert source.exists()

    def test_replaces_existing_target(self, exporter, exporter_store, tmp_path):
        source = tmp_path / "clip.mov"
        source.write_bytes(b"NEW")
        out = tmp_path / "out"
        out.mkdir()
        (out / "clip.mov").write_bytes(b"OLD")
        exporter_store.paths["v"] = str(source)

        exporter.export(make_asset("v", kind=MediaKind.VIDEO, filename="clip.mov"), str(out))

        assert (out / "clip.mov").read_bytes() == b"NEW"

    def test_no_path(self, exporter, tmp_path):
        result = exporter.export(make_asset("v", kind=MediaKind.VIDEO), str(tmp_path))

        assert result.error == "Failed to get video URL"

    def test_copy_failure(self, exporter, exporter_store, tmp_path):
        exporter_store.paths["v"] = str(tmp_path / "missing.mov")

        result = exporter.export(make_asset("v", kind=MediaKind.VIDEO), str(tmp_path / "out"))

        assert result.error.startswith("Failed to copy video file: ")


class TestExportMany:
    """Concurrent batch export."""

    def test_all_results_returned(self, exporter, exporter_store, tmp_path):
        assets = [make_asset(f"IMG_{i}.jpg") for i in range(5)]
        for asset in assets[:4]:
            exporter_store.data[asset.identifier] = DataDelivery(data=b"x", format_tag="public.jpeg")

        results = exporter.export_many(assets, str(tmp_path))

        assert len(results) == 5
        assert sorted(r.identifier for r in results) == sorted(a.identifier for a in assets)
        assert sum(r.success for r in results) == 4

    def test_empty(self, exporter, tmp_path):
        assert exporter.export_many([], str(tmp_path)) == []

    def test_warns_when_space_is_short(self, exporter, exporter_store, tmp_path, caplog, monkeypatch):
        monkeypatch.setattr("mediabridge.media.exporter.available_space", lambda path: 10)
        asset = make_asset("a.jpg", width=100, height=100)
        exporter_store.data["a.jpg"] = DataDelivery(data=b"x")

        with caplog.at_level(logging.WARNING):
            exporter.export_many([asset], str(tmp_path))

        assert "only 10 are free" in caplog.text
