from datetime import datetime, timezone

import pytest
from sgp4.io import compute_checksum

from passwatch.astrodynamics.tle import parse_tle, parse_tle_catalog
from passwatch.base.errors import ParseError

ISS_LINE1 = "1 25544U 98067A   08264.51782528 -.00002182  00000-0 -11606-4 0  2927"
ISS_LINE2 = "2 25544  51.6416 247.4627 0006703 130.5360 325.0288 15.72125391563537"


def test_parse_iss():
    elements = parse_tle(ISS_LINE1, ISS_LINE2, name="ISS (ZARYA) ")
    assert elements.norad_id == 25544
    assert elements.name == "ISS (ZARYA)"
    assert elements.inclination == pytest.approx(51.6416)
    assert elements.raan == pytest.approx(247.4627)
    assert elements.eccentricity == pytest.approx(0.0006703)
    assert elements.arg_perigee == pytest.approx(130.5360)
    assert elements.mean_anomaly == pytest.approx(325.0288)
    assert elements.mean_motion == pytest.approx(15.72125391)
    assert elements.bstar == pytest.approx(-0.11606e-4)
    assert elements.epoch.year == 2008
    assert elements.epoch.tzinfo is not None
    start_of_year = datetime(2008, 1, 1, tzinfo=timezone.utc)
    assert (elements.epoch - start_of_year).total_seconds() / 86400 == pytest.approx(263.51782528)


def test_checksum():
    assert compute_checksum(ISS_LINE1) == int(ISS_LINE1[-1])
    assert compute_checksum(ISS_LINE2) == int(ISS_LINE2[-1])
    parse_tle(ISS_LINE1, ISS_LINE2, verify_checksum=True)


def test_checksum_mismatch_only_when_verifying():
    bad_line2 = ISS_LINE2[:-1] + "0"
    parse_tle(ISS_LINE1, bad_line2)
    with pytest.raises(ParseError):
        parse_tle(ISS_LINE1, bad_line2, verify_checksum=True)


def test_trailing_whitespace_is_ignored():
    elements = parse_tle(ISS_LINE1 + "  \r", ISS_LINE2 + "\n")
    assert elements.norad_id == 25544


@pytest.mark.parametrize(
    "line1, line2",
    [
        (ISS_LINE1[:60], ISS_LINE2),
        (ISS_LINE1, ISS_LINE2 + "99"),
        (ISS_LINE2, ISS_LINE1),
        (ISS_LINE1, ISS_LINE2[:8] + "  abc.de" + ISS_LINE2[16:]),
        (ISS_LINE1, ISS_LINE2[:2] + "25545" + ISS_LINE2[7:]),
        (ISS_LINE1, ISS_LINE2[:52] + " 0.00000000" + ISS_LINE2[63:]),
        (None, ISS_LINE2),
    ],
    ids=["short", "long", "swapped", "non-numeric", "catalog-mismatch", "zero-mean-motion", "missing"],
)
def test_parse_errors(line1, line2):
    with pytest.raises(ParseError):
        parse_tle(line1, line2)


def test_parse_catalog_three_and_two_line_records():
    text = "\n".join(
        [
            "ISS (ZARYA)",
            ISS_LINE1,
            ISS_LINE2,
            "BROKEN",
            "1 99999U short line",
            "2 99999 short line",
        ]
    )
    catalog = parse_tle_catalog(text)
    assert list(catalog) == [25544]
    assert catalog[25544].name == "ISS (ZARYA)"

    catalog = parse_tle_catalog(f"{ISS_LINE1}\r\n{ISS_LINE2}\r\n")
    assert catalog[25544].name == ""
