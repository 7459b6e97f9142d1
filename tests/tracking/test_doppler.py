import pytest

from passwatch.base.models import PositionSample
from passwatch.tracking.doppler import doppler_shift, format_doppler_shift, radial_velocity


def at(t, range_km):
    return PositionSample(t, 0.0, 20.0, 0.0, 0.0, 420.0, range_km)


def test_radial_velocity_sign():
    assert radial_velocity(at(0, 1500.0), at(2, 1490.0)) == pytest.approx(-5.0)
    assert radial_velocity(at(0, 1500.0), at(1, 1506.5)) == pytest.approx(6.5)


@pytest.mark.parametrize(
    "previous, current",
    [(at(0, 0.0), at(1, 1000.0)), (at(0, 1000.0), at(1, 0.0)), (at(5, 1000.0), at(5, 1001.0)), (at(6, 1000.0), at(5, 1001.0))],
)
def test_radial_velocity_needs_valid_pair(previous, current):
    assert radial_velocity(previous, current) is None


def test_doppler_shift():
    approaching = doppler_shift(437_800_000.0, -7.0)
    assert approaching.frequency > 437_800_000.0
    assert approaching.shift == pytest.approx(437_800_000.0 * 7.0 / 299792.458)
    assert format_doppler_shift(approaching) == "+10.2 kHz"

    receding = doppler_shift(145_800_000.0, 3.0)
    assert receding.shift < 0
    assert format_doppler_shift(receding) == "-1.5 kHz"
    assert doppler_shift(145_800_000.0, 0.0).shift == 0.0
