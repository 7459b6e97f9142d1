import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from passwatch.astrodynamics.catalog import ElementCatalog
from passwatch.base.config import AstrodynamicsConfig, PredictionConfig
from passwatch.base.errors import CredentialMissing, FetchError
from passwatch.base.models import CacheEntry, ObserverLocation, PassPrediction
from passwatch.common.utils import unix_now
from passwatch.prediction.cache import PassPredictionCache
from passwatch.prediction.store import PassPredictionStore
from passwatch.upstream.sources import PassSource

logger = logging.getLogger(__name__)


@dataclass
class PassLookup:
    passes: list[PassPrediction]
    entry: Optional[CacheEntry] = None
    from_cache: bool = False
    warning: Optional[str] = None


class PredictionService:
    """Serves pass predictions from the cache and refreshes stale entries from a pass source.

    Upstream failures never raise: the last known entry is returned, however old, together with a
    warning.
    """

    def __init__(
        self,
        source: PassSource,
        cache: PassPredictionCache = None,
        store: PassPredictionStore = None,
        catalog: ElementCatalog = None,
        config: PredictionConfig = None,
        horizon_days: int = AstrodynamicsConfig.horizon_days,
        clock: Callable[[], float] = unix_now,
    ):
        if config is None:
            config = PredictionConfig()
        self.config = config
        self.source = source
        self.clock = clock
        self.cache = cache if cache is not None else PassPredictionCache(config, clock=clock)
        self.store = store
        self.catalog = catalog
        self.horizon_days = horizon_days

    def load(self) -> int:
        """Restore cache entries and elements from the store. Returns the number of entries restored."""
        if self.store is None:
            return 0
        entries, elements = self.store.load()
        for entry in entries:
            self.cache.restore(entry)
        if self.catalog is not None:
            self.catalog.update_many(elements)
        logger.info(f"Restored {len(entries)} cache entries and {len(elements)} element records")
        return len(entries)

    def save(self) -> None:
        if self.store is None:
            return
        elements = self.catalog.all() if self.catalog is not None else None
        self.store.save(self.cache.entries(), elements)

    async def get_passes(
        self,
        norad_id: int,
        observer: ObserverLocation,
        min_elevation: float = AstrodynamicsConfig.min_elevation,
        credential: Optional[str] = None,
        force: bool = False,
    ) -> PassLookup:
        now = self.clock()
        entry = self.cache.get(norad_id, observer)
        if entry is not None and not force and not self.cache.is_stale(entry, now):
            return PassLookup(list(entry.passes), entry, from_cache=True)

        try:
            passes = await self.source.fetch_passes(norad_id, observer, self.horizon_days, min_elevation, credential)
        except (FetchError, CredentialMissing) as e:
            logger.warning(f"Pass fetch failed for {norad_id}, using cached predictions: {e}")
            if entry is None:
                return PassLookup([], None, from_cache=False, warning=f"No pass predictions available: {e}")
            return PassLookup(list(entry.passes), entry, from_cache=True, warning=f"Showing cached passes: {e}")

        entry = self.cache.refresh(norad_id, passes, observer, now)
        logger.info(f"Cached {len(entry.passes)} passes for {norad_id}")
        return PassLookup(list(entry.passes), entry, from_cache=False)

    async def update_all(
        self,
        satellites: Iterable[int],
        observer: ObserverLocation,
        min_elevation: float = AstrodynamicsConfig.min_elevation,
        credential: Optional[str] = None,
        force: bool = False,
    ) -> dict[int, PassLookup]:
        """Look up every satellite in turn, then drop expired passes and persist."""
        results = {}
        for norad_id in satellites:
            try:
                results[norad_id] = await self.get_passes(norad_id, observer, min_elevation, credential, force)
            except ValueError as e:
                logger.error(f"Invalid pass data for {norad_id}: {e}")
                results[norad_id] = PassLookup([], warning=str(e))
        self.cache.cleanup(self.clock())
        self.save()
        return results

    def untrack(self, norad_id: int) -> None:
        self.cache.untrack(norad_id)
        if self.catalog is not None:
            self.catalog.remove(norad_id)
