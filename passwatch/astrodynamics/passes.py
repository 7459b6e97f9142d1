import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional, Union

from passwatch.astrodynamics.propagator import KeplerPropagator
from passwatch.base.config import AstrodynamicsConfig
from passwatch.base.models import ObserverLocation, OrbitalElements, PassPrediction
from passwatch.common.utils import to_unix

logger = logging.getLogger(__name__)


@dataclass
class _PassTracker:
    """Running state of a pass while the scan is above the horizon."""

    start_time: float
    start_azimuth: float
    max_time: float
    max_elevation: float
    max_azimuth: float

    def update(self, t: float, azimuth: float, elevation: float) -> None:
        if elevation > self.max_elevation:
            self.max_time, self.max_elevation, self.max_azimuth = t, elevation, azimuth


class PassWindowCalculator:
    """Search a time window for passes: horizon-to-horizon intervals whose culmination reaches a
    minimum elevation.

    A coarse scan finds horizon crossings and a fine scan pins down the rise, culmination and set
    instants. Results depend only on the inputs, so repeated calls return identical passes.
    """

    def __init__(self, config: AstrodynamicsConfig = None, propagator: KeplerPropagator = None):
        if config is None:
            config = AstrodynamicsConfig()
        self.config = config
        self.propagator = propagator if propagator is not None else KeplerPropagator(config)

    def _angles(self, elements: OrbitalElements, observer: ObserverLocation, t: float) -> tuple[float, float]:
        azimuth, elevation, _ = self.propagator.look_angles(elements, observer, t)
        return azimuth, elevation

    def _refine_crossing(
        self, elements: OrbitalElements, observer: ObserverLocation, t_low: float, t_high: float, threshold: float, rising: bool
    ) -> tuple[float, float]:
        """Fine scan of [t_low, t_high]. Rising: first instant at/above threshold. Setting: last instant
        at/above threshold. Returns (time, azimuth)."""
        step = self.config.fine_step
        t = t_low
        last_above = None
        while t <= t_high:
            azimuth, elevation = self._angles(elements, observer, t)
            if elevation >= threshold:
                if rising:
                    return t, azimuth
                last_above = (t, azimuth)
            elif not rising and last_above is not None:
                return last_above
            t += step
        if last_above is not None:
            return last_above
        return t_high, self._angles(elements, observer, t_high)[0]

    def _refine_peak(self, elements: OrbitalElements, observer: ObserverLocation, tracker: _PassTracker, end_time: float) -> None:
        t = max(tracker.start_time, tracker.max_time - self.config.coarse_step)
        t_end = min(end_time, tracker.max_time + self.config.coarse_step)
        while t <= t_end:
            azimuth, elevation = self._angles(elements, observer, t)
            tracker.update(t, azimuth, elevation)
            t += self.config.fine_step

    def _backtrack_rise(
        self, elements: OrbitalElements, observer: ObserverLocation, t0: float, threshold: float
    ) -> tuple[float, float]:
        """Find the rise of a pass already in progress at t0, or clip the pass to t0."""
        step = self.config.coarse_step
        t = t0
        while t0 - t < self.config.max_backtrack:
            t_prev = t - step
            _, elevation = self._angles(elements, observer, t_prev)
            if elevation < threshold:
                return self._refine_crossing(elements, observer, t_prev, t, threshold, rising=True)
            t = t_prev
        return t0, self._angles(elements, observer, t0)[0]

    def _finish(
        self, elements, observer, tracker: _PassTracker, end_time: float, end_azimuth: float, min_elevation: float
    ) -> Optional[PassPrediction]:
        duration = end_time - tracker.start_time
        if duration <= self.config.min_pass_duration:
            logger.debug(f"Rejecting graze of {duration:.0f}s for {elements.norad_id}")
            return None
        self._refine_peak(elements, observer, tracker, end_time)
        if tracker.max_elevation < min_elevation:
            logger.debug(f"Rejecting low pass of {elements.norad_id} peaking at {tracker.max_elevation:.1f} deg")
            return None
        return PassPrediction(
            start_time=tracker.start_time,
            end_time=end_time,
            max_elevation=tracker.max_elevation,
            start_azimuth=tracker.start_azimuth,
            end_azimuth=end_azimuth,
            max_azimuth=tracker.max_azimuth,
        )

    def iter_passes(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        start: Union[datetime, float],
        end: Union[datetime, float],
        min_elevation: Optional[float] = None,
    ) -> Iterator[PassPrediction]:
        """Yield passes in time order. Each call returns a new generator."""
        min_elevation = self.config.min_elevation if min_elevation is None else min_elevation
        threshold = self.config.horizon
        t0 = to_unix(start) if isinstance(start, datetime) else float(start)
        t1 = to_unix(end) if isinstance(end, datetime) else float(end)
        if t1 <= t0:
            return

        tracker: Optional[_PassTracker] = None
        t = t0
        azimuth, elevation = self._angles(elements, observer, t)
        if elevation >= threshold:
            rise_time, rise_azimuth = self._backtrack_rise(elements, observer, t0, threshold)
            tracker = _PassTracker(rise_time, rise_azimuth, t, elevation, azimuth)

        while t < t1:
            t_next = min(t + self.config.coarse_step, t1)
            azimuth_next, elevation_next = self._angles(elements, observer, t_next)

            if tracker is None and elevation_next >= threshold:
                rise_time, rise_azimuth = self._refine_crossing(elements, observer, t, t_next, threshold, rising=True)
                tracker = _PassTracker(rise_time, rise_azimuth, t_next, elevation_next, azimuth_next)
            elif tracker is not None and elevation_next >= threshold:
                tracker.update(t_next, azimuth_next, elevation_next)
            elif tracker is not None:
                set_time, set_azimuth = self._refine_crossing(elements, observer, t, t_next, threshold, rising=False)
                prediction = self._finish(elements, observer, tracker, set_time, set_azimuth, min_elevation)
                tracker = None
                if prediction is not None:
                    yield prediction

            t = t_next

        # Still above the horizon at the end of the window: clip
        if tracker is not None:
            end_azimuth = self._angles(elements, observer, t1)[0]
            prediction = self._finish(elements, observer, tracker, t1, end_azimuth, min_elevation)
            if prediction is not None:
                yield prediction

    def compute_passes(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        start: Union[datetime, float],
        end: Union[datetime, float],
        min_elevation: Optional[float] = None,
    ) -> list[PassPrediction]:
        passes = list(self.iter_passes(elements, observer, start, end, min_elevation))
        logger.debug(f"Computed {len(passes)} passes for {elements.norad_id}")
        return passes
