import logging
from typing import Callable, Iterable, Optional

from passwatch.base.config import PredictionConfig
from passwatch.base.models import CacheEntry, ObserverLocation, PassPrediction, is_stationary
from passwatch.common.utils import unix_now

logger = logging.getLogger(__name__)

CacheKey = tuple[int, float, float]


class PassPredictionCache:
    """Pass predictions per (satellite, rounded observer location).

    Refreshing never alters a pass that is in progress, so a trajectory being tracked stays fixed for
    the rest of its observation.
    """

    def __init__(
        self,
        config: PredictionConfig = None,
        stationary: Callable[[PassPrediction], bool] = is_stationary,
        clock: Callable[[], float] = unix_now,
    ):
        if config is None:
            config = PredictionConfig()
        self.config = config
        self.is_stationary = stationary
        self.clock = clock
        self._entries: dict[CacheKey, CacheEntry] = {}

    def key(self, norad_id: int, observer: ObserverLocation) -> CacheKey:
        lat, lng = observer.key(self.config.key_precision)
        return int(norad_id), lat, lng

    def get(self, norad_id: int, observer: ObserverLocation) -> Optional[CacheEntry]:
        """Entry for the satellite and location, or None on a miss. Stale entries are returned too;
        callers decide with `is_stale`."""
        return self._entries.get(self.key(norad_id, observer))

    def put(
        self, norad_id: int, passes: Iterable[PassPrediction], observer: ObserverLocation, now: Optional[float] = None
    ) -> CacheEntry:
        now = self.clock() if now is None else now
        entry = CacheEntry(
            norad_id=int(norad_id),
            observer=observer,
            passes=tuple(sorted(passes, key=lambda p: p.start_time)),
            fetched_at=now,
        )
        self._entries[self.key(norad_id, observer)] = entry
        return entry

    def restore(self, entry: CacheEntry) -> None:
        """Insert an entry loaded from persistent storage, keeping its fetch time."""
        self._entries[self.key(entry.norad_id, entry.observer)] = entry

    def is_stale(self, entry: CacheEntry, now: Optional[float] = None) -> bool:
        now = self.clock() if now is None else now
        return now - entry.fetched_at > self.config.cache_ttl

    def refresh(
        self, norad_id: int, passes: Iterable[PassPrediction], observer: ObserverLocation, now: Optional[float] = None
    ) -> CacheEntry:
        """Replace the entry with freshly computed passes, keeping any pass in progress unchanged.

        Fresh passes that overlap a preserved pass are dropped, they describe the same pass.
        """
        now = self.clock() if now is None else now
        existing = self.get(norad_id, observer)
        preserved = [p for p in existing.passes if p.contains(now)] if existing is not None else []

        fresh = [p for p in passes if not any(p.overlaps(kept) for kept in preserved)]
        if preserved:
            logger.info(f"Preserving {len(preserved)} in-progress pass(es) for {norad_id} during refresh")
        return self.put(norad_id, preserved + fresh, observer, now)

    def cleanup(self, now: Optional[float] = None, grace: Optional[float] = None) -> int:
        """Remove passes that ended more than `grace` seconds ago, except stationary passes.
        Entries left without passes are evicted. Returns the number of passes removed."""
        now = self.clock() if now is None else now
        grace = self.config.passed_grace if grace is None else grace
        removed = 0
        for key, entry in list(self._entries.items()):
            kept = tuple(p for p in entry.passes if self.is_stationary(p) or p.end_time >= now - grace)
            if len(kept) == len(entry.passes):
                continue
            removed += len(entry.passes) - len(kept)
            if kept:
                self._entries[key] = CacheEntry(entry.norad_id, entry.observer, kept, entry.fetched_at)
            else:
                del self._entries[key]
        if removed:
            logger.info(f"Removed {removed} expired passes")
        return removed

    def untrack(self, norad_id: int) -> None:
        """Drop every entry of a satellite, stationary passes included."""
        for key in [k for k in self._entries if k[0] == int(norad_id)]:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Pass prediction cache cleared")

    def entries(self) -> list[CacheEntry]:
        return list(self._entries.values())

    def predictions(self, observer: Optional[ObserverLocation] = None) -> dict[int, list[PassPrediction]]:
        """Passes per satellite, optionally restricted to one observer location."""
        result: dict[int, list[PassPrediction]] = {}
        for key, entry in self._entries.items():
            if observer is not None and key[1:] != observer.key(self.config.key_precision):
                continue
            result.setdefault(entry.norad_id, []).extend(entry.passes)
        return result
