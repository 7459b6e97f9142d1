import pytest

from passwatch.base.models import PassPrediction, StationaryPredicate
from passwatch.prediction.filtering import PassFilter, PassStatus

NOW = 1_700_000_000.0


def make_pass(start, end, start_az=10.0, end_az=170.0):
    return PassPrediction(start, end, 45.0, start_az, end_az, 90.0)


@pytest.fixture
def pass_filter():
    return PassFilter()


def test_classify(pass_filter):
    p = make_pass(NOW, NOW + 600)
    assert pass_filter.classify(p, NOW - 1) is PassStatus.UPCOMING
    assert pass_filter.classify(p, NOW) is PassStatus.PASSING
    assert pass_filter.classify(p, NOW + 600) is PassStatus.PASSING
    assert pass_filter.classify(p, NOW + 601) is PassStatus.PASSED


def test_stationary_never_passed(pass_filter):
    geo = make_pass(NOW - 100000, NOW - 50000, start_az=180.0, end_az=182.0)
    assert pass_filter.classify(geo, NOW) is PassStatus.STATIONARY
    assert pass_filter.is_visible(geo, NOW + 10**7)


def test_injected_predicate():
    pass_filter = PassFilter(is_stationary=StationaryPredicate(azimuth_tolerance=5.0, min_duration=60.0))
    short_fixed = make_pass(NOW, NOW + 120, start_az=90.0, end_az=91.0)
    assert pass_filter.classify(short_fixed, NOW + 5000) is PassStatus.STATIONARY
    assert PassFilter().classify(short_fixed, NOW + 5000) is PassStatus.PASSED


def test_sorted_passes_across_satellites(pass_filter):
    predictions = {
        25544: [make_pass(NOW + 3000, NOW + 3600), make_pass(NOW - 300, NOW + 300)],
        43017: [make_pass(NOW + 1000, NOW + 1500), make_pass(NOW - 900, NOW - 11)],
        40000: [make_pass(NOW - 100000, NOW - 50000, start_az=180.0, end_az=181.0)],
    }
    result = pass_filter.sorted_passes(predictions, NOW, names={25544: "ISS (ZARYA)"})

    assert [(a.norad_id, a.status) for a in result] == [
        (40000, PassStatus.STATIONARY),
        (25544, PassStatus.PASSING),
        (43017, PassStatus.UPCOMING),
        (25544, PassStatus.UPCOMING),
    ]
    assert result[1].name == "ISS (ZARYA)"
    assert result[2].name == "Satellite 43017"

    # inside the grace window a concluded pass is still listed
    result = pass_filter.sorted_passes(predictions, NOW - 2)
    assert (43017, PassStatus.PASSED) in [(a.norad_id, a.status) for a in result]

    passing = pass_filter.filter_by_status(result, PassStatus.PASSING, PassStatus.PASSED)
    assert {a.status for a in passing} == {PassStatus.PASSING, PassStatus.PASSED}


def test_next_pass_time(pass_filter):
    passes = [
        make_pass(NOW - 300, NOW + 300),
        make_pass(NOW + 3000, NOW + 3600),
        make_pass(NOW + 1000, NOW + 1500),
        make_pass(NOW + 10, NOW + 100000, start_az=180.0, end_az=181.0),
    ]
    assert pass_filter.next_pass_time(passes, NOW) == NOW + 1000
    assert pass_filter.next_pass_time(passes[:1], NOW) is None


@pytest.mark.parametrize(
    "offset, expected",
    [(-5, "now"), (0, "now"), (42, "42s"), (125, "2m 5s"), (3 * 3600 + 7 * 60 + 9, "3h 7m")],
)
def test_format_time_until(offset, expected):
    assert PassFilter.format_time_until(make_pass(NOW + offset, NOW + offset + 600), NOW) == expected


def test_format_duration():
    assert PassFilter.format_duration(605.7) == "10m 5s"
    assert PassFilter.format_duration(59) == "0m 59s"
