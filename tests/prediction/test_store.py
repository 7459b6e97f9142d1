import json

from passwatch.astrodynamics.tle import parse_tle
from passwatch.base.models import CacheEntry, ObserverLocation, PassPrediction
from passwatch.prediction.store import PassPredictionStore

ISS_LINE1 = "1 25544U 98067A   08264.51782528 -.00002182  00000-0 -11606-4 0  2927"
ISS_LINE2 = "2 25544  51.6416 247.4627 0006703 130.5360 325.0288 15.72125391563537"


def test_save_and_load(tmp_path):
    store = PassPredictionStore(path=tmp_path / "predictions.json")
    assert store.load() == ([], [])

    entry = CacheEntry(
        norad_id=25544,
        observer=ObserverLocation(44.9583, 20.4167, 117.0),
        passes=(PassPrediction(1_700_000_000.0, 1_700_000_600.0, 45.5, 10.0, 170.0, 90.0),),
        fetched_at=1_699_999_000.0,
    )
    elements = parse_tle(ISS_LINE1, ISS_LINE2, name="ISS")
    store.save([entry], [elements])

    entries, loaded_elements = store.load()
    assert entries == [entry]
    assert loaded_elements == [elements]
    assert not (tmp_path / "predictions.json.tmp").exists()


def test_corrupt_records_are_skipped(tmp_path):
    path = tmp_path / "predictions.json"
    good = {
        "norad_id": 25544,
        "observer": {"latitude": 1.0, "longitude": 2.0, "altitude": 0.0},
        "passes": [],
        "fetched_at": 5.0,
    }
    bad_pass = dict(good, passes=[{"start_time": 10.0, "end_time": 5.0, "max_elevation": 1.0,
                                   "start_azimuth": 0.0, "end_azimuth": 0.0, "max_azimuth": 0.0}])
    path.write_text(json.dumps({"predictions": [good, {"norad_id": 1}, bad_pass], "elements": [{"epoch": "x"}]}))

    entries, elements = PassPredictionStore(path=path).load()
    assert [e.norad_id for e in entries] == [25544]
    assert elements == []


def test_unreadable_file(tmp_path):
    path = tmp_path / "predictions.json"
    path.write_text("{not json")
    assert PassPredictionStore(path=path).load() == ([], [])
