import dataclasses
import math
from datetime import datetime, timedelta, timezone

import pytest

from passwatch.astrodynamics.propagator import KeplerPropagator, look_angles, slant_range, solve_kepler
from passwatch.astrodynamics.tle import parse_tle
from passwatch.base.models import GeodeticPosition, ObserverLocation, OrbitalElements
from passwatch.common.utils import to_unix

ISS_LINE1 = "1 25544U 98067A   08264.51782528 -.00002182  00000-0 -11606-4 0  2927"
ISS_LINE2 = "2 25544  51.6416 247.4627 0006703 130.5360 325.0288 15.72125391563537"

GEO = OrbitalElements(
    norad_id=90001,
    epoch=datetime(2024, 1, 1, tzinfo=timezone.utc),
    inclination=0.0,
    raan=0.0,
    eccentricity=0.0,
    arg_perigee=0.0,
    mean_anomaly=0.0,
    mean_motion=1.00273791,
)


@pytest.fixture(scope="module")
def propagator():
    return KeplerPropagator()


@pytest.fixture(scope="module")
def iss():
    return parse_tle(ISS_LINE1, ISS_LINE2)


@pytest.mark.parametrize("mean_anomaly, eccentricity", [(0.0, 0.0), (1.0, 0.1), (3.0, 0.7), (0.2, 0.9)])
def test_solve_kepler(mean_anomaly, eccentricity):
    E = solve_kepler(mean_anomaly, eccentricity)
    assert E - eccentricity * math.sin(E) == pytest.approx(mean_anomaly, abs=1e-9)


def test_iss_altitude_at_epoch(propagator, iss):
    position = propagator.propagate(iss, iss.epoch)
    assert 160 <= position.altitude <= 40000
    assert 330 <= position.altitude <= 390
    assert position.velocity == pytest.approx(7.7, abs=0.1)


def test_iss_latitude_bounded_by_inclination(propagator, iss):
    for minutes in range(0, 24 * 60, 7):
        position = propagator.propagate(iss, iss.epoch + timedelta(minutes=minutes))
        assert abs(position.latitude) <= iss.inclination + 0.01
        assert -180 <= position.longitude <= 180


def test_datetime_and_unix_time_agree(propagator, iss):
    when = iss.epoch + timedelta(hours=3)
    from_datetime = propagator.propagate(iss, when)
    from_unix = propagator.propagate(iss, to_unix(when))
    assert from_datetime.latitude == pytest.approx(from_unix.latitude, abs=1e-6)
    assert from_datetime.longitude == pytest.approx(from_unix.longitude, abs=1e-6)


def test_geostationary_stays_put(propagator):
    first = propagator.propagate(GEO, GEO.epoch)
    assert first.altitude == pytest.approx(35793, abs=50)
    assert abs(first.latitude) < 1e-6
    for hours in (3, 6, 12, 23):
        later = propagator.propagate(GEO, GEO.epoch + timedelta(hours=hours))
        assert later.longitude == pytest.approx(first.longitude, abs=0.5)


def test_open_orbit_is_unknown(propagator, iss):
    hyperbolic = dataclasses.replace(iss, eccentricity=1.2)
    with pytest.raises(ValueError):
        propagator.propagate(hyperbolic, iss.epoch)
    assert propagator.position_or_unknown(hyperbolic, iss.epoch) is None
    assert propagator.position_or_unknown(None, iss.epoch) is None
    assert propagator.position_or_unknown(iss, iss.epoch) is not None


def test_look_angles_overhead_and_north():
    observer = ObserverLocation(10.0, 20.0, 0.0)
    azimuth, elevation, range_km = look_angles(observer, GeodeticPosition(10.0, 20.0, 500.0, 7.6))
    assert elevation == pytest.approx(90.0, abs=1e-6)
    assert range_km == pytest.approx(500.0)

    azimuth, elevation, _ = look_angles(ObserverLocation(0.0, 0.0), GeodeticPosition(5.0, 0.0, 500.0, 7.6))
    assert azimuth == pytest.approx(0.0, abs=1e-6)
    assert 0 < elevation < 90

    azimuth, _, _ = look_angles(ObserverLocation(0.0, 0.0), GeodeticPosition(0.0, 5.0, 500.0, 7.6))
    assert azimuth == pytest.approx(90.0, abs=1e-6)


def test_slant_range_matches_look_angle_range():
    observer = ObserverLocation(44.9583, 20.4167, 120.0)
    position = GeodeticPosition(48.0, 25.0, 420.0, 7.6)
    _, _, range_km = look_angles(observer, position)
    assert slant_range(observer, 48.0, 25.0, 420.0) == pytest.approx(range_km, rel=1e-9)
    assert slant_range(observer, observer.latitude, observer.longitude, 420.0) == pytest.approx(419.88)
