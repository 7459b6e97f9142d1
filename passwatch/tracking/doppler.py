from typing import NamedTuple, Optional

from passwatch.base.models import PositionSample

SPEED_OF_LIGHT_KMS = 299792.458


class DopplerShift(NamedTuple):
    frequency: float  # Hz, received
    shift: float  # Hz

    @property
    def shift_khz(self) -> float:
        return self.shift / 1000.0


def radial_velocity(previous: PositionSample, current: PositionSample) -> Optional[float]:
    """Range rate in km/s between two samples, positive when receding. None unless both ranges are
    known and time has advanced."""
    dt = current.timestamp - previous.timestamp
    if previous.range <= 0 or current.range <= 0 or dt <= 0:
        return None
    return (current.range - previous.range) / dt


def doppler_shift(frequency_hz: float, radial_velocity: float) -> DopplerShift:
    received = frequency_hz * (1 - radial_velocity / SPEED_OF_LIGHT_KMS)
    return DopplerShift(received, received - frequency_hz)


def format_doppler_shift(shift: DopplerShift) -> str:
    sign = "+" if shift.shift_khz >= 0 else ""
    return f"{sign}{shift.shift_khz:.1f} kHz"
