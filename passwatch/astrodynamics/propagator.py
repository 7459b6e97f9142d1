"""Two-body (Keplerian) propagation on a spherical Earth.

Adequate for pass timing, not reference grade: no drag, no J2 secular terms, no oblateness.
Sidereal time comes from a skyfield time scale so that inertial positions can be rotated into the
Earth-fixed frame.
"""

import logging
import math
from datetime import datetime
from typing import Optional, Union

import numpy as np
from skyfield.api import load

from passwatch.base.config import AstrodynamicsConfig
from passwatch.base.models import GeodeticPosition, ObserverLocation, OrbitalElements
from passwatch.common.utils import from_unix, to_unix

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * math.pi
SECONDS_PER_DAY = 86400.0

Instant = Union[datetime, float]


def solve_kepler(mean_anomaly: float, eccentricity: float, tolerance: float = 1e-10, max_iterations: int = 10) -> float:
    """Solve M = E - e sin(E) for the eccentric anomaly E (radians) by Newton-Raphson."""
    E = mean_anomaly if eccentricity < 0.8 else math.pi
    for _ in range(max_iterations):
        delta = (E - eccentricity * math.sin(E) - mean_anomaly) / (1.0 - eccentricity * math.cos(E))
        E -= delta
        if abs(delta) < tolerance:
            break
    return E


def _unit_vector(latitude: float, longitude: float) -> np.ndarray:
    lat, lon = math.radians(latitude), math.radians(longitude)
    return np.array([math.cos(lat) * math.cos(lon), math.cos(lat) * math.sin(lon), math.sin(lat)])


def look_angles(
    observer: ObserverLocation, position: GeodeticPosition, earth_radius: float = AstrodynamicsConfig.EARTH_RADIUS_KM
) -> tuple[float, float, float]:
    """Topocentric azimuth (deg, 0-360 from north), elevation (deg) and range (km) of a satellite."""
    observer_ecef = (earth_radius + observer.altitude / 1000.0) * _unit_vector(observer.latitude, observer.longitude)
    satellite_ecef = (earth_radius + position.altitude) * _unit_vector(position.latitude, position.longitude)
    dx, dy, dz = satellite_ecef - observer_ecef

    lat, lon = math.radians(observer.latitude), math.radians(observer.longitude)
    sin_lat, cos_lat = math.sin(lat), math.cos(lat)
    sin_lon, cos_lon = math.sin(lon), math.cos(lon)
    east = -sin_lon * dx + cos_lon * dy
    north = -sin_lat * cos_lon * dx - sin_lat * sin_lon * dy + cos_lat * dz
    up = cos_lat * cos_lon * dx + cos_lat * sin_lon * dy + sin_lat * dz

    azimuth = math.degrees(math.atan2(east, north)) % 360.0
    elevation = math.degrees(math.atan2(up, math.hypot(east, north)))
    range_km = math.sqrt(dx * dx + dy * dy + dz * dz)
    return azimuth, elevation, range_km


def slant_range(
    observer: ObserverLocation,
    sat_latitude: float,
    sat_longitude: float,
    sat_altitude: float,
    earth_radius: float = AstrodynamicsConfig.EARTH_RADIUS_KM,
) -> float:
    """Observer to satellite distance (km) from geodetic coordinates, by the law of cosines over the
    great-circle central angle."""
    lat1, lat2 = math.radians(observer.latitude), math.radians(sat_latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(sat_longitude - observer.longitude)
    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    central_angle = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    r_observer = earth_radius + observer.altitude / 1000.0
    r_satellite = earth_radius + sat_altitude
    return math.sqrt(
        r_observer**2 + r_satellite**2 - 2 * r_observer * r_satellite * math.cos(central_angle)
    )


class KeplerPropagator:
    def __init__(self, config: AstrodynamicsConfig = None):
        if config is None:
            config = AstrodynamicsConfig()
        self.config = config
        self._timescale = load.timescale()

    def gmst(self, time: Instant) -> float:
        """Greenwich mean sidereal time in radians."""
        if not isinstance(time, datetime):
            time = from_unix(time)
        return math.radians(self._timescale.from_datetime(time).gmst * 15.0)

    def semi_major_axis(self, elements: OrbitalElements) -> float:
        n = elements.mean_motion * TWO_PI / SECONDS_PER_DAY  # rad/s
        return (self.config.MU_EARTH / n**2) ** (1.0 / 3.0)

    def propagate_eci(self, elements: OrbitalElements, time: Instant) -> tuple[np.ndarray, float, float]:
        """Inertial position (km), orbital radius (km) and semi-major axis (km) at `time`."""
        t = time if not isinstance(time, datetime) else to_unix(time)
        elapsed = t - to_unix(elements.epoch)

        e = elements.eccentricity
        n = elements.mean_motion * TWO_PI / SECONDS_PER_DAY
        a = self.semi_major_axis(elements)
        M = (math.radians(elements.mean_anomaly) + n * elapsed) % TWO_PI

        E = solve_kepler(M, e, self.config.kepler_tolerance, self.config.kepler_max_iterations)
        nu = 2.0 * math.atan2(math.sqrt(1.0 + e) * math.sin(E / 2.0), math.sqrt(1.0 - e) * math.cos(E / 2.0))
        r = a * (1.0 - e * math.cos(E))
        x, y = r * math.cos(nu), r * math.sin(nu)

        raan = math.radians(elements.raan)
        inc = math.radians(elements.inclination)
        argp = math.radians(elements.arg_perigee)
        cos_ra, sin_ra = math.cos(raan), math.sin(raan)
        cos_i, sin_i = math.cos(inc), math.sin(inc)
        cos_ap, sin_ap = math.cos(argp), math.sin(argp)

        # Perifocal -> inertial, R3(-raan) R1(-inc) R3(-argp)
        rotation = np.array(
            [
                [cos_ra * cos_ap - sin_ra * sin_ap * cos_i, -cos_ra * sin_ap - sin_ra * cos_ap * cos_i],
                [sin_ra * cos_ap + cos_ra * sin_ap * cos_i, -sin_ra * sin_ap + cos_ra * cos_ap * cos_i],
                [sin_ap * sin_i, cos_ap * sin_i],
            ]
        )
        return rotation @ np.array([x, y]), r, a

    def propagate(self, elements: OrbitalElements, time: Instant) -> GeodeticPosition:
        """Geodetic position and speed of the satellite at `time` (datetime or unix seconds)."""
        if elements.eccentricity >= 1.0:
            raise ValueError(f"Eccentricity {elements.eccentricity} is not an elliptical orbit")
        eci, r, a = self.propagate_eci(elements, time)

        theta = self.gmst(time)
        cos_t, sin_t = math.cos(theta), math.sin(theta)
        x = eci[0] * cos_t + eci[1] * sin_t
        y = -eci[0] * sin_t + eci[1] * cos_t
        z = eci[2]

        latitude = math.degrees(math.atan2(z, math.hypot(x, y)))
        longitude = math.degrees(math.atan2(y, x))
        altitude = r - self.config.EARTH_RADIUS_KM
        velocity = math.sqrt(self.config.MU_EARTH * (2.0 / r - 1.0 / a))
        return GeodeticPosition(latitude=latitude, longitude=longitude, altitude=altitude, velocity=velocity)

    def look_angles(self, elements: OrbitalElements, observer: ObserverLocation, time: Instant) -> tuple[float, float, float]:
        position = self.propagate(elements, time)
        return look_angles(observer, position, self.config.EARTH_RADIUS_KM)

    def position_or_unknown(self, elements: Optional[OrbitalElements], time: Instant) -> Optional[GeodeticPosition]:
        """Position for rendering; None marks the satellite as unknown so callers skip it rather than
        drawing a made-up position."""
        if elements is None:
            return None
        try:
            return self.propagate(elements, time)
        except (ValueError, ArithmeticError) as e:
            logger.error(f"Failed to propagate {elements.norad_id}: {e}")
            return None
