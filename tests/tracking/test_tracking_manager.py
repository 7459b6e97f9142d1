import pytest

from passwatch.base.models import Burst, ObserverLocation, PassPrediction, PositionSample
from passwatch.tracking.api import TrackingManager
from passwatch.tracking.memo import BurstMemo

NOW = 1_700_000_000.0
OBSERVER = ObserverLocation(44.9583, 20.4167, 0.0)
PASS = PassPrediction(NOW - 60, NOW + 540, 55.0, 200.0, 20.0, 110.0)


class Clock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


class CountingBurstSource:
    def __init__(self, clock):
        self.clock = clock
        self.calls = 0

    async def fetch_burst(self, norad_id, observer, seconds, credential):
        self.calls += 1
        t0 = self.clock()
        return [PositionSample(t0 + i, 90.0, 45.0, 45.0, 21.0, 420.0, 800.0 + i) for i in range(seconds)]


def sample(t):
    return PositionSample(t, 0.0, 10.0, 0.0, 0.0, 400.0, 500.0)


@pytest.mark.asyncio
async def test_start_stop_start_uses_memo():
    clock = Clock()
    source = CountingBurstSource(clock)
    manager = TrackingManager(source, clock=clock)
    try:
        assert await manager.start(25544, OBSERVER.latitude, OBSERVER.longitude, OBSERVER.altitude, "key")
        assert not await manager.start(25544, OBSERVER.latitude, OBSERVER.longitude, OBSERVER.altitude, "key")
        await manager.stop(25544)
        assert not manager.poll(25544).is_active

        clock.now += 120
        assert await manager.start(25544, OBSERVER.latitude, OBSERVER.longitude, OBSERVER.altitude, "key")
        assert source.calls == 1
        assert manager.poll(25544).current_position.timestamp == NOW + 120
    finally:
        await manager.stop_all()


@pytest.mark.asyncio
async def test_sessions_are_independent():
    clock = Clock()
    source = CountingBurstSource(clock)
    manager = TrackingManager(source, clock=clock)
    try:
        await manager.start(25544, 44.9583, 20.4167, 0.0, "key")
        await manager.start(43017, 44.9583, 20.4167, 0.0, "key")
        assert source.calls == 2
        await manager.stop(25544)
        assert not manager.poll(25544).is_active
        assert manager.poll(43017).is_active
    finally:
        await manager.stop_all()
    assert not manager.poll(43017).is_active


def test_poll_unknown_satellite():
    snapshot = TrackingManager(CountingBurstSource(Clock())).poll(12345)
    assert snapshot.norad_id == 12345
    assert not snapshot.is_active
    assert snapshot.current_position is None


@pytest.mark.asyncio
async def test_evaluate_gates_activation():
    clock = Clock()
    source = CountingBurstSource(clock)
    manager = TrackingManager(source, clock=clock)
    try:
        assert not await manager.evaluate(25544, PASS, viewing=False, credential="key", observer=OBSERVER)
        assert not await manager.evaluate(25544, None, viewing=True, credential="key", observer=OBSERVER)
        assert source.calls == 0

        assert await manager.evaluate(25544, PASS, viewing=True, credential="key", observer=OBSERVER)
        assert await manager.evaluate(25544, PASS, viewing=True, credential="key", observer=OBSERVER)
        assert source.calls == 1

        # viewer collapses the pass
        assert not await manager.evaluate(25544, PASS, viewing=False, credential="key", observer=OBSERVER)

        assert await manager.evaluate(25544, PASS, viewing=True, credential="key", observer=OBSERVER)
        # pass is over
        assert not await manager.evaluate(
            25544, PASS, viewing=True, credential="key", observer=OBSERVER, now=PASS.end_time + 1
        )

        # credential removed
        assert await manager.evaluate(25544, PASS, viewing=True, credential="key", observer=OBSERVER)
        assert not await manager.evaluate(25544, PASS, viewing=True, credential=None, observer=OBSERVER)
        assert "API key" in manager.poll(25544).warning
        assert source.calls == 1
    finally:
        await manager.stop_all()


@pytest.mark.asyncio
async def test_subscribe_through_manager():
    clock = Clock()
    manager = TrackingManager(CountingBurstSource(clock), clock=clock)
    queue = manager.subscribe(25544)
    try:
        await manager.start(25544, 44.9583, 20.4167, 0.0, "key")
        message = queue.get_nowait()
        assert message["payload"]["telemetryType"] == "position"
        assert message["payload"]["parameters"]["range"] == 800.0
    finally:
        await manager.stop_all()


def test_memo_hit_rules():
    memo = BurstMemo()
    burst = Burst(25544, (sample(NOW), sample(NOW + 1), sample(NOW + 2)), fetched_at=NOW, observer=OBSERVER)
    memo.put(burst)

    assert memo.get(25544, OBSERVER, NOW + 2) is burst
    assert memo.get(25544, OBSERVER, NOW + 2.5) is None
    assert memo.get(43017, OBSERVER, NOW) is None

    nearby = ObserverLocation(OBSERVER.latitude + 5e-5, OBSERVER.longitude - 5e-5, 9.0)
    assert memo.get(25544, nearby, NOW) is burst
    moved = ObserverLocation(OBSERVER.latitude + 2e-4, OBSERVER.longitude, 0.0)
    assert memo.get(25544, moved, NOW) is None
    climbed = ObserverLocation(OBSERVER.latitude, OBSERVER.longitude, 25.0)
    assert memo.get(25544, climbed, NOW) is None

    memo.discard(25544)
    assert 25544 not in memo
    memo.put(burst)
    memo.clear()
    assert len(memo) == 0
