"""In-memory TTL cache for upstream snapshots."""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable

INTERACTIVE_TTL_SECONDS = 10 * 60
LIST_TTL_SECONDS = 5 * 60


@dataclass(frozen=True)
class CacheEntry:
    """A cached value and the clock reading when it was fetched."""
    key: Hashable
    snapshot: Any
    fetched_at: float


class _Flight:
    """One in-progress load that concurrent callers can wait on."""

    def __init__(self):
        self.done = threading.Event()
        self.value: Any = None
        self.error: BaseException | None = None


class FreshnessCache:
    """TTL cache with whole-entry replacement and optional single-flight loads.

    Entries are served while ``clock() - fetched_at < ttl``. Writes replace
    the entry; concurrent writes for the same key are last-write-wins.
    """

    def __init__(
        self,
        ttl: float = INTERACTIVE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[Hashable, CacheEntry] = {}
        self._flights: dict[Hashable, _Flight] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return self.clock() - entry.fetched_at < self.ttl

    def get(self, key: Hashable) -> CacheEntry | None:
        """Return the entry for ``key`` if it is still fresh."""
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or not self._is_fresh(entry):
            return None
        return entry

    def get_stale(self, key: Hashable) -> CacheEntry | None:
        """Return the entry for ``key`` regardless of age."""
        with self._lock:
            return self._entries.get(key)

    def put(self, key: Hashable, snapshot: Any) -> CacheEntry:
        entry = CacheEntry(key=key, snapshot=snapshot, fetched_at=self.clock())
        with self._lock:
            self._entries[key] = entry
        return entry

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_or_load(self, key: Hashable, loader: Callable[[Hashable], Any]) -> Any:
        """Return a fresh value, loading it at most once for concurrent misses.

        The first caller for a missing key runs ``loader``; others wait for
        its result. A failing load raises to every waiter and leaves any
        existing entry untouched.
        """
        entry = self.get(key)
        if entry is not None:
            return entry.snapshot

        with self._lock:
            flight = self._flights.get(key)
            leader = flight is None
            if leader:
                flight = _Flight()
                self._flights[key] = flight

        if not leader:
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.value

        try:
            value = loader(key)
        except BaseException as e:
            flight.error = e
            raise
        else:
            self.put(key, value)
            flight.value = value
            return value
        finally:
            with self._lock:
                self._flights.pop(key, None)
            flight.done.set()
