"""
pytest configuration and fixtures.
"""

import http.client
import json
import threading
from datetime import datetime, timezone
from typing import Generator, Optional

import pytest
from PIL import Image

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mediabridge import BridgeConfig, create_app
from mediabridge.media import (
    Asset,
    DataDelivery,
    FetchHandle,
    FetchQuality,
    ImageDelivery,
    LibraryIndex,
    MediaKind,
    MediaStore,
)


class FakeMediaStore(MediaStore):
    """
    In-memory MediaStore with scripted callbacks.

    For each asset identifier the test decides what request_image()
    delivers per quality tier. A tier with nothing scripted never calls
    back; the request is parked in `pending` so the test can answer it
    later (late arrivals).
    """

    def __init__(self, assets=()):
        self.assets = list(assets)
        self.high_quality: dict = {}
        self.opportunistic: dict = {}
        self.data: dict = {}
        self.paths: dict = {}

        self.image_requests: list = []
        self.handles: list = []
        self.pending: list = []
        self.enumerate_calls = 0
        self.enumerate_error: Optional[Exception] = None
        self.enumerate_gate: Optional[threading.Event] = None
        self._lock = threading.Lock()

    def enumerate(self, kind=None, start=None, end=None):
        with self._lock:
            self.enumerate_calls += 1
        if self.enumerate_gate is not None:
            self.enumerate_gate.wait(5)
        if self.enumerate_error is not None:
            raise self.enumerate_error

        assets = [a for a in self.assets if not a.is_hidden]
        if kind is not None:
            assets = [a for a in assets if a.kind is kind]
        if start is not None or end is not None:
            assets = [
                a for a in assets
                if a.created_at is not None
                and (start is None or a.created_at >= start)
                and (end is None or a.created_at < end)
            ]
        return assets

    def request_image(self, asset, target_size, quality, callback):
        handle = FetchHandle()
        with self._lock:
            self.image_requests.append((asset.identifier, quality))
            self.handles.append((quality, handle))

        table = self.high_quality if quality is FetchQuality.HIGH_QUALITY else self.opportunistic
        deliveries = table.get(asset.identifier)
        if deliveries is None:
            self.pending.append((asset, quality, callback))
        else:
            for delivery in deliveries:
                callback(delivery)
        return handle

    def request_image_data(self, asset, callback):
        callback(self.data.get(asset.identifier, DataDelivery(error=OSError("no data"))))

    def request_file_path(self, asset, callback):
        callback(self.paths.get(asset.identifier))

    def requests_for(self, quality: FetchQuality) -> int:
        return sum(1 for _, q in self.image_requests if q is quality)


def make_image(color=(200, 30, 30), size=(320, 240)) -> Image.Image:
    return Image.new("RGB", size, color)


def make_asset(
    identifier: str,
    created: Optional[datetime] = None,
    kind: MediaKind = MediaKind.IMAGE,
    **kwargs,
) -> Asset:
    """An asset named after its identifier, 4000x3000 unless told otherwise."""
    kwargs.setdefault("width", 4000)
    kwargs.setdefault("height", 3000)
    kwargs.setdefault("filename", identifier.rsplit("/", 1)[-1])
    return Asset(identifier=identifier, kind=kind, created_at=created, **kwargs)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def assets() -> list:
    """Six assets, newest first: img, vid, img, vid, img, img."""
    return [
        make_asset("2024/IMG_0006.jpg", utc(2024, 3, 16, 12, 0)),
        make_asset("2024/VID_0005.mov", utc(2024, 3, 15, 18, 0), kind=MediaKind.VIDEO, duration=12.5),
        make_asset("2024/IMG_0004.jpg", utc(2024, 3, 15, 12, 0)),
        make_asset("2024/VID_0003.mov", utc(2024, 3, 14, 12, 0), kind=MediaKind.VIDEO, duration=3.0),
        make_asset("2023/IMG_0002.png", utc(2023, 12, 25, 9, 30)),
        make_asset("2023/IMG_0001.jpg", utc(2023, 1, 1, 0, 0)),
    ]


@pytest.fixture
def store(assets) -> FakeMediaStore:
    return FakeMediaStore(assets)


@pytest.fixture
def index(store) -> LibraryIndex:
    """An index whose first snapshot is already loaded."""
    library = LibraryIndex(store)
    assert library.reload(wait=True, timeout=5)
    return library


@pytest.fixture
def config() -> BridgeConfig:
    """Test configuration: free port, small pool, quiet logs, fast timeouts."""
    return BridgeConfig(
        host="127.0.0.1",
        port=0,
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        thumbnail_timeout=0.2,
        resolve_timeout=5.0,
        log_level="WARNING",
    )


class TestClient:
    """Tiny http.client wrapper bound to a running server."""

    __test__ = False

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port

    def request(self, method: str, path: str, body=None, headers=None):
        conn = http.client.HTTPConnection(self.host, self.port, timeout=10)
        try:
            payload = json.dumps(body).encode() if isinstance(body, (dict, list)) else body
            conn.request(method, path, body=payload, headers=headers or {})
            response = conn.getresponse()
            data = response.read()
            return response.status, dict(response.getheaders()), data
        finally:
            conn.close()

    def get_json(self, path: str):
        status, headers, data = self.request("GET", path)
        return status, json.loads(data) if data else None


@pytest.fixture
def running_server(config, store, index) -> Generator:
    """The full bridge on a background thread, bound to a free port."""
    server = create_app(config, store, index=index)
    server.start()
    yield server
    server.stop()


@pytest.fixture
def client(running_server) -> TestClient:
    host, port = running_server.address
    return TestClient(host, port)
