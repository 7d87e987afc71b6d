"""
=============================================================================
LIBRARY INDEX
=============================================================================

Caches an ordered snapshot of the store's enumeration and answers the
listing, search, by-date and lookup queries behind the photo endpoints.

=============================================================================
SNAPSHOT LIFECYCLE
=============================================================================

Exactly one snapshot is live at a time. A reload builds a brand new
snapshot off to the side and then swaps a single reference; nothing is
ever mutated in place, so a reader that grabbed the old snapshot keeps a
consistent view until it is done.

    request A ──► read ref ──► [snapshot v1] ──► paginate ──► respond
                                    ▲
    reload thread ── enumerate ── build v2 ── swap ref (lock) ──┐
                                                                ▼
    request B ──► read ref ──────────────────────────────► [snapshot v2]

RELOAD TRIGGERS (list only):
    - the caller asked for it (refresh=true)
    - no snapshot has been loaded yet
    - the live snapshot is older than the staleness threshold (5 min)

A triggered reload runs on a background thread and does NOT block the
call that triggered it: that call is served from whatever snapshot was
live (possibly nothing, on first use). Later calls see the new snapshot.
Triggers that arrive while a reload is running are coalesced into it.

=============================================================================
PAGINATION BEFORE FILTER
=============================================================================

list() slices the UNFILTERED snapshot first and applies the media kind
filter inside the selected window afterwards:

    snapshot:  [img, vid, img, vid, img, img]    pageSize=2, kind=video
    page 1:    [img, vid]  ──filter──► [vid]      (1 item, hasMore=True)
    page 2:    [img, vid]  ──filter──► [vid]
    page 3:    [img, img]  ──filter──► []         (empty, hasMore=False)

total and hasMore therefore describe the unfiltered library. Existing
clients depend on this shape, so it is kept as-is. search() and
by_date() do filter first and paginate the matches.

=============================================================================
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .models import (
    Asset,
    MediaKind,
    PageResult,
    DEFAULT_PAGE_SIZE,
    page_window,
)
from .store import MediaStore


logger = logging.getLogger(__name__)


STALENESS_SECONDS = 5 * 60
DATE_QUERY_FORMAT = "%Y/%m/%d"


def medium_date(value: datetime) -> str:
    """
    Format a date in the medium style used for search ("Mar 15, 2024").

    The month abbreviation is always English so results do not depend on
    the process locale.
    """
    local = value.astimezone()
    return f"{_MONTHS[local.month - 1]} {local.day}, {local.year}"


_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def _newest_first(assets: Sequence[Asset]) -> List[Asset]:
    # Assets without a creation time sort after everything else.
    dated = [a for a in assets if a.created_at is not None]
    undated = [a for a in assets if a.created_at is None]
    dated.sort(key=lambda a: a.created_at.astimezone(), reverse=True)
    return dated + undated


@dataclass(frozen=True)
class LibrarySnapshot:
    """
    Immutable, ordered view of the library at one point in time.

    Attributes:
        assets: Visible assets, newest creation time first.
        loaded_at: Clock reading when the snapshot was built.
    """

    assets: Tuple[Asset, ...]
    loaded_at: float
    _by_id: Dict[str, Asset] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def build(cls, assets: Sequence[Asset], loaded_at: float) -> "LibrarySnapshot":
        visible = _newest_first([a for a in assets if not a.is_hidden])
        return cls(
            assets=tuple(visible),
            loaded_at=loaded_at,
            _by_id={a.identifier: a for a in visible},
        )

    def __len__(self) -> int:
        return len(self.assets)

    def get(self, identifier: str) -> Optional[Asset]:
        return self._by_id.get(identifier)


class LibraryIndex:
    """
    Snapshot cache over a MediaStore.

    Usage:
        index = LibraryIndex(store)
        index.reload(wait=True)                 # optional warm-up

        page = index.list(page=1, page_size=50)
        hits = index.search("IMG_00", page=1, page_size=50)
        day = index.by_date("2024/03/15", page=1, page_size=50)
        asset = index.lookup("2024/IMG_0001.jpg")
    """

    def __init__(
        self,
        store: MediaStore,
        staleness_seconds: float = STALENESS_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            store: The library to index.
            staleness_seconds: Age after which list() triggers a reload.
            clock: Monotonic clock, injectable for tests.
        """
        self._store = store
        self.staleness_seconds = staleness_seconds
        self._clock = clock

        self._snapshot: Optional[LibrarySnapshot] = None
        self._lock = threading.Lock()
        self._reloading = False
        self._idle = threading.Event()
        self._idle.set()

    # ─────────────────────────────────────────────────────────────────────
    # Snapshot management
    # ─────────────────────────────────────────────────────────────────────

    @property
    def snapshot(self) -> Optional[LibrarySnapshot]:
        """The live snapshot (None until the first reload completes)."""
        return self._snapshot

    @property
    def asset_count(self) -> int:
        snapshot = self._snapshot
        return len(snapshot) if snapshot else 0

    @property
    def snapshot_age(self) -> Optional[float]:
        """Seconds since the live snapshot was built, or None."""
        snapshot = self._snapshot
        if snapshot is None:
            return None
        return self._clock() - snapshot.loaded_at

    def is_stale(self) -> bool:
        age = self.snapshot_age
        return age is None or age > self.staleness_seconds

    def reload(self, wait: bool = False, timeout: Optional[float] = None) -> bool:
        """
        Start a background reload.

        Args:
            wait: Block until the reload (or the one already running)
                  has finished.
            timeout: Maximum seconds to wait when wait=True.

        Returns:
            True if no reload is running when this returns.
        """
        self._start_reload()
        if wait:
            return self._idle.wait(timeout)
        return self._idle.is_set()

    def _start_reload(self) -> None:
        with self._lock:
            if self._reloading:
                return
            self._reloading = True
            self._idle.clear()

        thread = threading.Thread(
            target=self._reload_worker,
            name="LibraryIndex-reload",
            daemon=True,
        )
        thread.start()

    def _reload_worker(self) -> None:
        started = time.time()
        try:
            assets = self._store.enumerate()
            snapshot = LibrarySnapshot.build(assets, loaded_at=self._clock())
        except Exception as e:
            logger.exception(f"Library reload failed, keeping previous snapshot: {e}")
        else:
            with self._lock:
                self._snapshot = snapshot
            elapsed = (time.time() - started) * 1000
            logger.info(f"Loaded {len(snapshot)} assets in {elapsed:.1f}ms")
        finally:
            with self._lock:
                self._reloading = False
                self._idle.set()

    def _current(self, force_reload: bool = False) -> Optional[LibrarySnapshot]:
        snapshot = self._snapshot
        if force_reload or snapshot is None or self.is_stale():
            self._start_reload()
        return snapshot

    # ─────────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────────

    def list(
        self,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        kind: Optional[MediaKind] = None,
        force_reload: bool = False,
    ) -> PageResult:
        """
        One page of the library, newest first.

        Pagination is computed over the unfiltered snapshot and the kind
        filter is applied inside the page window (see module docstring),
        so a filtered page may hold fewer than page_size items even when
        later pages contain matches.

        Args:
            page: 1-based page number.
            page_size: Items per page.
            kind: Optional media kind filter.
            force_reload: Trigger a background reload first.
        """
        snapshot = self._current(force_reload)
        if snapshot is None:
            return PageResult.empty(page, page_size)

        total = len(snapshot)
        start, end = page_window(total, page, page_size)
        window = snapshot.assets[start:end]
        if kind is not None:
            window = tuple(a for a in window if a.kind is kind)

        return PageResult(
            items=list(window),
            total=total,
            page=page,
            page_size=page_size,
            has_more=end < total,
        )

    def search(self, query: str, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> PageResult:
        """
        Case-insensitive substring search over filenames and dates.

        An asset matches when the query occurs in its filename or in its
        creation date formatted medium-style ("Mar 15, 2024"). Matches
        are collected first and then paginated, so total and has_more
        count matches only.
        """
        snapshot = self._snapshot
        if snapshot is None:
            return PageResult.empty(page, page_size)

        needle = query.lower()
        matches = [a for a in snapshot.assets if self._matches(a, needle)]
        return self._paginate(matches, page, page_size)

    @staticmethod
    def _matches(asset: Asset, needle: str) -> bool:
        if asset.filename and needle in asset.filename.lower():
            return True
        if asset.created_at is not None:
            return needle in medium_date(asset.created_at).lower()
        return False

    def by_date(self, date_string: str, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> PageResult:
        """
        Assets created on one local calendar day.

        The query goes straight to the store for [local midnight, next
        local midnight) and never touches the cached snapshot.

        Args:
            date_string: Day in "YYYY/MM/DD" form. Anything unparseable
                         yields an empty result with total=0.
        """
        day = self._parse_day(date_string)
        if day is None:
            logger.debug(f"Invalid date query: {date_string!r}")
            return PageResult.empty(page, page_size)

        start = datetime.combine(day, datetime.min.time()).astimezone()
        end = datetime.combine(day + timedelta(days=1), datetime.min.time()).astimezone()

        assets = self._store.enumerate(start=start, end=end)
        matches = [
            a for a in _newest_first(assets)
            if not a.is_hidden and a.created_at is not None and start <= a.created_at.astimezone() < end
        ]
        result = self._paginate(matches, page, page_size)
        logger.debug(f"Found {len(result.items)} assets for {date_string} (page {page})")
        return result

    @staticmethod
    def _parse_day(value: str) -> Optional[date]:
        try:
            return datetime.strptime(value.strip(), DATE_QUERY_FORMAT).date()
        except ValueError:
            return None

    def lookup(self, identifier: str) -> Optional[Asset]:
        """Find an asset in the live snapshot. None if absent."""
        snapshot = self._snapshot
        return snapshot.get(identifier) if snapshot else None

    @staticmethod
    def _paginate(matches: Sequence[Asset], page: int, page_size: int) -> PageResult:
        total = len(matches)
        start, end = page_window(total, page, page_size)
        return PageResult(
            items=list(matches[start:end]),
            total=total,
            page=page,
            page_size=page_size,
            has_more=end < total,
        )
