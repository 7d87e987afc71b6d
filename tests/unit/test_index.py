"""
Unit tests for the library index.
"""

import threading
import time
from datetime import datetime

from mediabridge.media.index import LibraryIndex, medium_date
from mediabridge.media.models import MediaKind

from conftest import FakeMediaStore, make_asset


def wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def local(*args) -> datetime:
    return datetime(*args).astimezone()


class TestListing:
    """Tests for LibraryIndex.list()."""

    def test_first_page(self, index):
        result = index.list(page=1, page_size=4)

        assert [a.identifier for a in result.items] == [
            "2024/IMG_0006.jpg",
            "2024/VID_0005.mov",
            "2024/IMG_0004.jpg",
            "2024/VID_0003.mov",
        ]
        assert result.total == 6
        assert result.has_more is True

    def test_last_page(self, index):
        result = index.list(page=2, page_size=4)

        assert len(result.items) == 2
        assert result.has_more is False

    def test_page_past_the_end_is_empty(self, index):
        result = index.list(page=9, page_size=4)

        assert result.items == []
        assert result.total == 6
        assert result.has_more is False

    def test_kind_filter_applies_after_pagination(self, index):
        """
        The window is cut from the unfiltered snapshot, then filtered,
        so total/hasMore describe the whole library.
        """
        pages = [index.list(page=p, page_size=2, kind=MediaKind.VIDEO) for p in (1, 2, 3)]

        assert [[a.identifier for a in p.items] for p in pages] == [
            ["2024/VID_0005.mov"],
            ["2024/VID_0003.mov"],
            [],
        ]
        assert [p.total for p in pages] == [6, 6, 6]
        assert [p.has_more for p in pages] == [True, True, False]

    def test_hidden_assets_excluded(self):
        store = FakeMediaStore([
            make_asset("a.jpg", local(2024, 1, 2)),
            make_asset(".trash/b.jpg", local(2024, 1, 3), is_hidden=True),
        ])
        index = LibraryIndex(store)
        index.reload(wait=True, timeout=5)

        assert [a.identifier for a in index.list().items] == ["a.jpg"]

    def test_undated_assets_sort_last(self):
        store = FakeMediaStore([
            make_asset("undated.jpg", None),
            make_asset("old.jpg", local(2020, 1, 1)),
            make_asset("new.jpg", local(2024, 1, 1)),
        ])
        index = LibraryIndex(store)
        index.reload(wait=True, timeout=5)

        assert [a.identifier for a in index.list().items] == ["new.jpg", "old.jpg", "undated.jpg"]


class TestReload:
    """Tests for snapshot loading, staleness and coalescing."""

    def test_first_list_is_empty_and_triggers_load(self, store):
        index = LibraryIndex(store)

        result = index.list()

        assert result.items == [] and result.total == 0
        assert wait_until(lambda: index.asset_count == 6)

    def test_stale_snapshot_served_while_reloading(self, store):
        now = [0.0]
        index = LibraryIndex(store, staleness_seconds=300, clock=lambda: now[0])
        index.reload(wait=True, timeout=5)
        first = index.snapshot

        now[0] = 10.0
        index.list()
        assert store.enumerate_calls == 1

        store.enumerate_gate = threading.Event()
        store.assets = store.assets[:2]
        now[0] = 301.0

        result = index.list()

        assert result.total == 6
        assert index.snapshot is first
        store.enumerate_gate.set()
        assert wait_until(lambda: index.asset_count == 2)

    def test_refresh_forces_reload(self, index, store):
        index.list(force_reload=True)

        assert wait_until(lambda: store.enumerate_calls == 2)

    def test_concurrent_triggers_coalesce(self, store):
        store.enumerate_gate = threading.Event()
        index = LibraryIndex(store)

        index.reload()
        index.reload()
        index.list(force_reload=True)
        assert index.reload() is False

        store.enumerate_gate.set()
        assert index.reload(wait=True, timeout=5) is True
        assert store.enumerate_calls <= 2
        assert index.asset_count == 6

    def test_failed_reload_keeps_previous_snapshot(self, index, store, caplog):
        previous = index.snapshot
        store.enumerate_error = OSError("library offline")

        assert index.reload(wait=True, timeout=5)

        assert index.snapshot is previous
        assert "Library reload failed" in caplog.text

    def test_snapshot_age(self):
        now = [100.0]
        index = LibraryIndex(FakeMediaStore(), clock=lambda: now[0])
        assert index.snapshot_age is None
        assert index.is_stale()

        index.reload(wait=True, timeout=5)
        now[0] = 160.0

        assert index.snapshot_age == 60.0
        assert not index.is_stale()


class TestSearch:
    """Tests for LibraryIndex.search()."""

    def test_filename_substring_case_insensitive(self, index):
        result = index.search("img_000")

        assert result.total == 4
        assert all("IMG" in a.filename for a in result.items)

    def test_matches_medium_date(self):
        store = FakeMediaStore([
            make_asset("a.jpg", local(2024, 3, 15, 9, 0), filename="a.jpg"),
            make_asset("b.jpg", local(2024, 3, 16, 9, 0), filename="b.jpg"),
        ])
        index = LibraryIndex(store)
        index.reload(wait=True, timeout=5)

        result = index.search("mar 15, 2024")

        assert [a.identifier for a in result.items] == ["a.jpg"]

    def test_paginates_matches(self, index):
        result = index.search(".jpg", page=2, page_size=2)

        assert result.total == 3
        assert len(result.items) == 1
        assert result.has_more is False

    def test_no_snapshot(self, store):
        assert LibraryIndex(store).search("img").total == 0

    def test_medium_date(self):
        assert medium_date(local(2024, 3, 5, 12, 0)) == "Mar 5, 2024"


class TestByDate:
    """Tests for LibraryIndex.by_date()."""

    def test_one_local_day(self):
        store = FakeMediaStore([
            make_asset("late.jpg", local(2024, 3, 15, 23, 59)),
            make_asset("early.jpg", local(2024, 3, 15, 0, 0)),
            make_asset("next.jpg", local(2024, 3, 16, 0, 0)),
            make_asset("prev.jpg", local(2024, 3, 14, 23, 59)),
        ])
        index = LibraryIndex(store)

        result = index.by_date("2024/03/15")

        assert [a.identifier for a in result.items] == ["late.jpg", "early.jpg"]
        assert result.total == 2

    def test_invalid_date_is_empty(self, index):
        for value in ("2024-03-15", "yesterday", "2024/13/40"):
            result = index.by_date(value)
            assert result.total == 0
            assert result.items == []


class TestLookup:
    def test_lookup(self, index):
        assert index.lookup("2024/IMG_0004.jpg").filename == "IMG_0004.jpg"
        assert index.lookup("missing") is None
