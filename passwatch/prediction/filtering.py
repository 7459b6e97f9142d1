from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Mapping, Optional

from passwatch.base.config import PredictionConfig
from passwatch.base.models import PassPrediction, StationaryPredicate


class PassStatus(Enum):
    UPCOMING = "upcoming"
    PASSING = "passing"
    PASSED = "passed"
    STATIONARY = "stationary"


@dataclass(frozen=True)
class AnnotatedPass:
    norad_id: int
    name: str
    prediction: PassPrediction
    status: PassStatus


class PassFilter:
    """Classifies and orders passes for display. Holds no pass data of its own."""

    def __init__(
        self,
        is_stationary: Callable[[PassPrediction], bool] = None,
        grace: float = PredictionConfig.passed_grace,
    ):
        self.is_stationary = is_stationary if is_stationary is not None else StationaryPredicate()
        self.grace = grace

    def classify(self, pass_prediction: PassPrediction, now: float) -> PassStatus:
        if self.is_stationary(pass_prediction):
            return PassStatus.STATIONARY
        if now < pass_prediction.start_time:
            return PassStatus.UPCOMING
        if now <= pass_prediction.end_time:
            return PassStatus.PASSING
        return PassStatus.PASSED

    def is_visible(self, pass_prediction: PassPrediction, now: float) -> bool:
        """Concluded passes stay listed for `grace` seconds; stationary passes always do."""
        return self.is_stationary(pass_prediction) or pass_prediction.end_time >= now - self.grace

    def sorted_passes(
        self,
        predictions: Mapping[int, Iterable[PassPrediction]],
        now: float,
        names: Optional[Mapping[int, str]] = None,
    ) -> list[AnnotatedPass]:
        names = names or {}
        annotated = [
            AnnotatedPass(
                norad_id=norad_id,
                name=names.get(norad_id) or f"Satellite {norad_id}",
                prediction=p,
                status=self.classify(p, now),
            )
            for norad_id, passes in predictions.items()
            for p in passes
            if self.is_visible(p, now)
        ]
        annotated.sort(key=lambda a: (a.prediction.start_time, a.norad_id))
        return annotated

    def filter_by_status(self, passes: Iterable[AnnotatedPass], *statuses: PassStatus) -> list[AnnotatedPass]:
        return [p for p in passes if p.status in statuses]

    def next_pass_time(self, passes: Iterable[PassPrediction], now: float) -> Optional[float]:
        """Start of the earliest pass that has not started yet, ignoring stationary passes."""
        upcoming = [p.start_time for p in passes if p.start_time > now and not self.is_stationary(p)]
        return min(upcoming) if upcoming else None

    @staticmethod
    def format_time_until(pass_prediction: PassPrediction, now: float) -> str:
        remaining = int(pass_prediction.start_time - now)
        if remaining <= 0:
            return "now"
        hours, rest = divmod(remaining, 3600)
        minutes, seconds = divmod(rest, 60)
        if hours > 0:
            return f"{hours}h {minutes}m"
        if minutes > 0:
            return f"{minutes}m {seconds}s"
        return f"{seconds}s"

    @staticmethod
    def format_duration(seconds: float) -> str:
        minutes, seconds = divmod(int(seconds), 60)
        return f"{minutes}m {seconds}s"
