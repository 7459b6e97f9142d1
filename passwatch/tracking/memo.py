import logging
from typing import Optional

from passwatch.base.config import TrackingConfig
from passwatch.base.models import Burst, ObserverLocation

logger = logging.getLogger(__name__)


class BurstMemo:
    """Last burst per satellite. Owned by a TrackingManager, outlives the sessions it serves and is
    never persisted."""

    def __init__(self, config: TrackingConfig = None):
        if config is None:
            config = TrackingConfig()
        self.config = config
        self._bursts: dict[int, Burst] = {}

    def get(self, norad_id: int, observer: ObserverLocation, now: float) -> Optional[Burst]:
        """The memoized burst if it still has samples at or after `now` and was fetched for the same
        observer location, else None."""
        burst = self._bursts.get(norad_id)
        if burst is None:
            return None
        if not burst.covers(now):
            logger.debug(f"Burst memo for {norad_id} expired at {burst.end_time}")
            return None
        if not burst.observer.matches(
            observer, self.config.memo_angle_tolerance, self.config.memo_altitude_tolerance
        ):
            logger.debug(f"Burst memo for {norad_id} was fetched for another observer location")
            return None
        return burst

    def put(self, burst: Burst) -> None:
        self._bursts[burst.norad_id] = burst

    def discard(self, norad_id: int) -> None:
        self._bursts.pop(norad_id, None)

    def clear(self) -> None:
        self._bursts.clear()

    def __contains__(self, norad_id: int) -> bool:
        return norad_id in self._bursts

    def __len__(self) -> int:
        return len(self._bursts)
