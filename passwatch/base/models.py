from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from passwatch.base.config import AstrodynamicsConfig


@dataclass(frozen=True)
class OrbitalElements:
    norad_id: int
    epoch: datetime
    inclination: float  # deg
    raan: float  # deg
    eccentricity: float
    arg_perigee: float  # deg
    mean_anomaly: float  # deg
    mean_motion: float  # rev/day
    name: str = ""
    bstar: float = 0.0
    line1: str = ""
    line2: str = ""


@dataclass(frozen=True)
class ObserverLocation:
    latitude: float  # deg
    longitude: float  # deg
    altitude: float = 0.0  # meters

    def key(self, precision: int = 4) -> tuple[float, float]:
        return round(self.latitude, precision), round(self.longitude, precision)

    def matches(self, other: "ObserverLocation", angle_tolerance: float, altitude_tolerance: float) -> bool:
        return (
            abs(self.latitude - other.latitude) <= angle_tolerance
            and abs(self.longitude - other.longitude) <= angle_tolerance
            and abs(self.altitude - other.altitude) <= altitude_tolerance
        )


@dataclass(frozen=True)
class GeodeticPosition:
    latitude: float  # deg
    longitude: float  # deg
    altitude: float  # km
    velocity: float  # km/s


class StationaryPredicate:
    """Heuristic geostationary test: azimuth barely moves over a very long pass."""

    def __init__(
        self,
        azimuth_tolerance: float = AstrodynamicsConfig.stationary_azimuth_tolerance,
        min_duration: float = AstrodynamicsConfig.stationary_min_duration,
    ):
        self.azimuth_tolerance = azimuth_tolerance
        self.min_duration = min_duration

    def __call__(self, pass_prediction: "PassPrediction") -> bool:
        azimuth_diff = abs(pass_prediction.start_azimuth - pass_prediction.end_azimuth)
        return azimuth_diff < self.azimuth_tolerance and pass_prediction.duration > self.min_duration


is_stationary = StationaryPredicate()


@dataclass(frozen=True)
class PassPrediction:
    start_time: float  # unix seconds
    end_time: float  # unix seconds
    max_elevation: float
    start_azimuth: float
    end_azimuth: float
    max_azimuth: float

    def __post_init__(self):
        if not self.start_time < self.end_time:
            raise ValueError(f"Pass must start before it ends: {self.start_time} >= {self.end_time}")

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def contains(self, now: float) -> bool:
        return self.start_time <= now <= self.end_time

    def overlaps(self, other: "PassPrediction") -> bool:
        return self.start_time <= other.end_time and other.start_time <= self.end_time


@dataclass(frozen=True)
class CacheEntry:
    norad_id: int
    observer: ObserverLocation
    passes: tuple[PassPrediction, ...]
    fetched_at: float  # unix seconds

    @property
    def next_pass_time(self) -> Optional[float]:
        return self.passes[0].start_time if self.passes else None


@dataclass(frozen=True)
class PositionSample:
    timestamp: float  # unix seconds
    azimuth: float
    elevation: float
    sat_latitude: float
    sat_longitude: float
    sat_altitude: float  # km
    range: float = 0.0  # km, 0 when unknown


@dataclass(frozen=True)
class Burst:
    norad_id: int
    samples: tuple[PositionSample, ...]
    fetched_at: float
    observer: ObserverLocation

    def covers(self, now: float) -> bool:
        return bool(self.samples) and self.samples[-1].timestamp >= now

    @property
    def end_time(self) -> Optional[float]:
        return self.samples[-1].timestamp if self.samples else None


class SessionStatus(Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"


@dataclass
class TrackingSnapshot:
    norad_id: int
    is_active: bool
    current_position: Optional[PositionSample] = None
    position_history: list[PositionSample] = field(default_factory=list)
    radial_velocity: float = 0.0
    last_fetch_time: Optional[float] = None
    warning: Optional[str] = None
