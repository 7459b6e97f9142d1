"""Two-line element parsing on top of skyfield's EarthSatellite.

The compiled sgp4 parser behind EarthSatellite reads fields without checking them, so records are
first run through sgp4's strict column-layout parser, which rejects misplaced or non-numeric fields
and mismatched catalog numbers.
"""

import logging
import math

from sgp4.earth_gravity import wgs72
from sgp4.io import twoline2rv, verify_checksum as sgp4_verify_checksum
from skyfield.api import EarthSatellite

from passwatch.base.errors import ParseError
from passwatch.base.models import OrbitalElements

logger = logging.getLogger(__name__)

TLE_LINE_LENGTH = 69
MINUTES_PER_DAY = 1440.0


def parse_tle(line1: str, line2: str, name: str = "", verify_checksum: bool = False) -> OrbitalElements:
    """Parse a two-line element record.

    Raises:
        ParseError: lines of the wrong length or line number, mismatched catalog numbers,
            non-numeric fields, a non-positive mean motion or (when requested) a bad checksum
    """
    if line1 is None or line2 is None:
        raise ParseError("Missing TLE line")
    line1 = line1.rstrip()
    line2 = line2.rstrip()
    for index, line in enumerate((line1, line2), start=1):
        if len(line) != TLE_LINE_LENGTH:
            raise ParseError(f"Line {index} has {len(line)} columns, expected {TLE_LINE_LENGTH}")
        if not line.startswith(f"{index} "):
            raise ParseError(f"Line {index} does not start with line number {index}")
    if verify_checksum:
        try:
            sgp4_verify_checksum(line1, line2)
        except ValueError as e:
            raise ParseError(f"Checksum mismatch: {e}")

    try:
        satellite = EarthSatellite(line1, line2, name)
    except ValueError as e:
        raise ParseError(str(e))
    model = satellite.model
    if model.no_kozai <= 0:
        raise ParseError(f"Mean motion must be positive, got {model.no_kozai}")
    try:
        twoline2rv(line1, line2, wgs72)
    except ValueError as e:
        raise ParseError(str(e))

    return OrbitalElements(
        norad_id=model.satnum,
        epoch=satellite.epoch.utc_datetime(),
        inclination=math.degrees(model.inclo),
        raan=math.degrees(model.nodeo),
        eccentricity=model.ecco,
        arg_perigee=math.degrees(model.argpo),
        mean_anomaly=math.degrees(model.mo),
        # rad/min to rev/day
        mean_motion=model.no_kozai * MINUTES_PER_DAY / (2 * math.pi),
        name=name.strip(),
        bstar=model.bstar,
        line1=line1,
        line2=line2,
    )


def parse_tle_catalog(text: str) -> dict[int, OrbitalElements]:
    """Parse a catalog of 2-line or 3-line (name + two lines) records. Malformed records are skipped."""
    catalog = {}
    lines = [line.rstrip() for line in text.splitlines() if line.strip()]
    name = ""
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("1 ") and i + 1 < len(lines) and lines[i + 1].startswith("2 "):
            try:
                elements = parse_tle(line, lines[i + 1], name=name)
                catalog[elements.norad_id] = elements
            except ParseError as e:
                logger.error(f"Skipping malformed TLE record {name or line[:20]!r}: {e}")
            name = ""
            i += 2
        else:
            name = line[2:] if line.startswith("0 ") else line
            i += 1
    return catalog
