import asyncio
import dataclasses
import logging
from typing import Callable, Optional

from passwatch.astrodynamics.propagator import slant_range
from passwatch.base.config import TrackingConfig
from passwatch.base.errors import CredentialMissing, FetchError
from passwatch.base.messages import Message, MessageGenerator
from passwatch.base.models import (
    Burst,
    ObserverLocation,
    PassPrediction,
    PositionSample,
    SessionStatus,
    TrackingSnapshot,
)
from passwatch.common.utils import unix_now, wait_until_first_completed
from passwatch.tracking.doppler import radial_velocity
from passwatch.tracking.memo import BurstMemo
from passwatch.upstream.sources import BurstSource

logger = logging.getLogger(__name__)


class TrackingSession:
    """Real-time position of one satellite during a pass.

    While active, a frame loop advances the current position through a buffer of 1 Hz samples and a
    timer fetches the next burst shortly before the buffer runs out. Fetch failures are logged and
    the last known position is held until a later fetch succeeds.
    """

    def __init__(
        self,
        norad_id: int,
        source: BurstSource,
        memo: BurstMemo,
        config: TrackingConfig = None,
        clock: Callable[[], float] = unix_now,
    ):
        if config is None:
            config = TrackingConfig()
        self.config = config
        self.norad_id = norad_id
        self.source = source
        self.memo = memo
        self.clock = clock
        self.message_generator = MessageGenerator(config.name, config.message_version)

        self.status = SessionStatus.INACTIVE
        self.observer: Optional[ObserverLocation] = None
        self.credential: Optional[str] = None
        self.future: list[PositionSample] = []
        self.history: list[PositionSample] = []
        self.current_position: Optional[PositionSample] = None
        self.radial_velocity = 0.0
        self.last_fetch_time: Optional[float] = None
        self.warning: Optional[str] = None

        self._generation = 0
        self._stop_event = asyncio.Event()
        self._loop_task: Optional[asyncio.Task] = None
        self._timer_task: Optional[asyncio.Task] = None
        self._fetches: set[asyncio.Task] = set()
        self._subscribers: list[asyncio.Queue] = []

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE

    async def start(self, observer: ObserverLocation, credential: Optional[str]) -> bool:
        """Activate the session. Returns False without side effects when already active, and with a
        warning when the credential is missing."""
        if self.is_active:
            logger.warning(f"Already tracking {self.norad_id}, ignoring duplicate start request")
            return False
        if not credential:
            self.warning = "Cannot start tracking: API key is missing"
            logger.error(f"{self.warning} (satellite {self.norad_id})")
            self._publish_status()
            return False

        logger.info(f"Starting real-time tracking for {self.norad_id} at {observer.latitude:.4f}, {observer.longitude:.4f}")
        self.status = SessionStatus.ACTIVE
        self._generation += 1
        generation = self._generation
        self._stop_event = asyncio.Event()
        self.observer = observer
        self.credential = credential
        self.warning = None
        self._reset_buffers()

        now = self.clock()
        burst = self.memo.get(self.norad_id, observer, now)
        if burst is not None:
            logger.info(f"Reusing memoized burst for {self.norad_id} ({len(burst.samples)} samples)")
            self.last_fetch_time = burst.fetched_at
        else:
            burst = await self._fetch_shielded()
        if generation != self._generation:
            return False
        if burst is not None:
            self._merge(burst.samples)
        self.advance(self.clock())

        self._loop_task = asyncio.create_task(self._run_frames())
        self._timer_task = asyncio.create_task(self._run_refetch_timer())
        self._publish_status()
        return True

    async def stop(self) -> None:
        """Deactivate, cancelling the frame loop and the refetch timer. A fetch already in flight is
        left to finish and only updates the memo."""
        if not self.is_active:
            return
        logger.info(f"Stopping real-time tracking for {self.norad_id}")
        self.status = SessionStatus.INACTIVE
        self._generation += 1
        self._stop_event.set()
        tasks = [task for task in (self._loop_task, self._timer_task) if task is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._loop_task = self._timer_task = None
        self._reset_buffers()
        self.observer = None
        self.credential = None
        self._publish_status()

    def _reset_buffers(self) -> None:
        self.future = []
        self.history = []
        self.current_position = None
        self.radial_velocity = 0.0

    def advance(self, now: float) -> Optional[PositionSample]:
        """Move to the earliest buffered sample at or after `now`. Consumed samples go to the history,
        which keeps `history_seconds` of trail. With an exhausted buffer the last position is held."""
        consumed = [s for s in self.future if s.timestamp < now]
        if consumed:
            self.history.extend(consumed)
            self.future = [s for s in self.future if s.timestamp >= now]
        cutoff = now - self.config.history_seconds
        if self.history and self.history[0].timestamp <= cutoff:
            self.history = [s for s in self.history if s.timestamp > cutoff]

        if not self.future:
            return self.current_position
        candidate = self.future[0]
        if candidate is self.current_position:
            return candidate
        if self.current_position is not None:
            velocity = radial_velocity(self.current_position, candidate)
            if velocity is not None:
                self.radial_velocity = velocity
        self.current_position = candidate
        self._publish_position(candidate)
        return candidate

    def refetch_delay(self, now: float) -> float:
        """Seconds until the next burst is due: end of buffered samples minus the safety margin."""
        if self.future:
            remaining = self.future[-1].timestamp - now
        else:
            remaining = self.config.burst_seconds
        return max(self.config.min_refetch_delay, remaining - self.config.safety_margin)

    async def _run_frames(self) -> None:
        while not self._stop_event.is_set():
            self.advance(self.clock())
            await asyncio.sleep(self.config.frame_interval)

    async def _run_refetch_timer(self) -> None:
        failed = False
        while not self._stop_event.is_set():
            if failed:
                # No retry before a full burst interval has passed
                delay = self.config.burst_seconds - self.config.safety_margin
            else:
                delay = self.refetch_delay(self.clock())
            logger.debug(f"Next burst for {self.norad_id} in {delay:.0f}s")
            await wait_until_first_completed([self._stop_event], [asyncio.sleep(delay)])
            if self._stop_event.is_set():
                break
            burst = await self._fetch_shielded()
            failed = burst is None
            if burst is not None and self.is_active:
                self._merge(burst.samples)

    async def _fetch_shielded(self) -> Optional[Burst]:
        task = asyncio.create_task(self._fetch())
        self._fetches.add(task)
        task.add_done_callback(self._fetches.discard)
        return await asyncio.shield(task)

    async def _fetch(self) -> Optional[Burst]:
        generation = self._generation
        observer = self.observer
        logger.info(f"Fetching positions for {self.norad_id} ({self.config.burst_seconds} seconds)")
        try:
            samples = await asyncio.wait_for(
                self.source.fetch_burst(self.norad_id, observer, self.config.burst_seconds, self.credential),
                timeout=self.config.fetch_timeout,
            )
        except asyncio.TimeoutError:
            return self._fetch_failed(f"Position fetch timed out after {self.config.fetch_timeout}s")
        except (FetchError, CredentialMissing) as e:
            return self._fetch_failed(f"Failed to fetch positions: {e}")

        now = self.clock()
        samples = sorted(
            (self._with_range(sample, observer) for sample in samples), key=lambda s: s.timestamp
        )
        burst = Burst(self.norad_id, tuple(samples), fetched_at=now, observer=observer)
        self.memo.put(burst)
        if generation != self._generation:
            logger.info(f"Late burst for {self.norad_id} arrived after stop, kept in memo only")
            return None
        self.last_fetch_time = now
        self.warning = None
        logger.info(f"Received {len(samples)} position samples for {self.norad_id}")
        return burst

    def _fetch_failed(self, message: str):
        logger.error(f"{message} (satellite {self.norad_id})")
        if self.is_active:
            self.warning = message
        return None

    @staticmethod
    def _with_range(sample: PositionSample, observer: ObserverLocation) -> PositionSample:
        if sample.range > 0:
            return sample
        distance = slant_range(observer, sample.sat_latitude, sample.sat_longitude, sample.sat_altitude)
        return dataclasses.replace(sample, range=distance)

    def _merge(self, samples: tuple[PositionSample, ...]) -> None:
        """Keep buffered samples still ahead of now and append new samples with unseen timestamps."""
        now = self.clock()
        existing = [s for s in self.future if s.timestamp >= now]
        seen = {s.timestamp for s in existing}
        added = [s for s in samples if s.timestamp >= now and s.timestamp not in seen]
        self.future = sorted(existing + added, key=lambda s: s.timestamp)
        logger.debug(
            f"Buffer for {self.norad_id}: {len(existing)} existing + {len(added)} new = {len(self.future)} samples"
        )

    def poll(self) -> TrackingSnapshot:
        return TrackingSnapshot(
            norad_id=self.norad_id,
            is_active=self.is_active,
            current_position=self.current_position,
            position_history=list(self.history),
            radial_velocity=self.radial_velocity,
            last_fetch_time=self.last_fetch_time,
            warning=self.warning,
        )

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.config.queue_size)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def _publish(self, message: Message) -> None:
        for queue in self._subscribers:
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(message)

    def _publish_position(self, sample: PositionSample) -> None:
        if not self._subscribers:
            return
        parameters = {
            "noradId": self.norad_id,
            "timestamp": sample.timestamp,
            "azimuth": sample.azimuth,
            "elevation": sample.elevation,
            "range": sample.range,
            "radialVelocity": self.radial_velocity,
            "satLatitude": sample.sat_latitude,
            "satLongitude": sample.sat_longitude,
            "satAltitude": sample.sat_altitude,
        }
        self._publish(self.message_generator.generate_telemetry("position", parameters))

    def _publish_status(self) -> None:
        if not self._subscribers:
            return
        parameters = {"noradId": self.norad_id, "state": self.status.value, "warning": self.warning}
        self._publish(self.message_generator.generate_status("status", parameters))


class TrackingManager:
    """Owns one TrackingSession per satellite and the burst memo they share."""

    def __init__(
        self,
        source: BurstSource,
        config: TrackingConfig = None,
        memo: BurstMemo = None,
        clock: Callable[[], float] = unix_now,
    ):
        if config is None:
            config = TrackingConfig()
        self.config = config
        self.source = source
        self.memo = memo if memo is not None else BurstMemo(config)
        self.clock = clock
        self.sessions: dict[int, TrackingSession] = {}

    def session(self, norad_id: int) -> TrackingSession:
        if norad_id not in self.sessions:
            self.sessions[norad_id] = TrackingSession(norad_id, self.source, self.memo, self.config, self.clock)
        return self.sessions[norad_id]

    async def start(self, norad_id: int, lat: float, lng: float, alt: float, credential: Optional[str]) -> bool:
        return await self.session(norad_id).start(ObserverLocation(lat, lng, alt), credential)

    async def stop(self, norad_id: int) -> None:
        session = self.sessions.get(norad_id)
        if session is not None:
            await session.stop()

    async def stop_all(self) -> None:
        for session in list(self.sessions.values()):
            await session.stop()

    def poll(self, norad_id: int) -> TrackingSnapshot:
        session = self.sessions.get(norad_id)
        if session is None:
            return TrackingSnapshot(norad_id=norad_id, is_active=False)
        return session.poll()

    def subscribe(self, norad_id: int) -> asyncio.Queue:
        return self.session(norad_id).subscribe()

    async def evaluate(
        self,
        norad_id: int,
        pass_prediction: Optional[PassPrediction],
        viewing: bool,
        credential: Optional[str],
        observer: ObserverLocation,
        now: Optional[float] = None,
    ) -> bool:
        """Activate while the pass is viewed, in progress and a credential is present; deactivate as
        soon as any of these stops holding. Returns whether the session is active."""
        now = self.clock() if now is None else now
        session = self.session(norad_id)
        in_window = pass_prediction is not None and pass_prediction.contains(now)
        if viewing and in_window and credential:
            if not session.is_active:
                await session.start(observer, credential)
        elif viewing and in_window:
            await session.stop()
            await session.start(observer, credential)
        else:
            await session.stop()
        return session.is_active
