import asyncio
import logging
from datetime import timedelta
from typing import Callable, Iterable, Optional, Protocol

from passwatch.astrodynamics.catalog import ElementCatalog
from passwatch.astrodynamics.passes import PassWindowCalculator
from passwatch.astrodynamics.tle import parse_tle_catalog
from passwatch.base.errors import CredentialMissing, FetchError
from passwatch.base.models import ObserverLocation, PassPrediction, PositionSample
from passwatch.common.utils import unix_now
from passwatch.upstream.client import CelestrakClient, N2YOClient

logger = logging.getLogger(__name__)


class PassSource(Protocol):
    async def fetch_passes(
        self, norad_id: int, observer: ObserverLocation, days: int, min_elevation: float, credential: Optional[str]
    ) -> list[PassPrediction]: ...


class BurstSource(Protocol):
    async def fetch_burst(
        self, norad_id: int, observer: ObserverLocation, seconds: int, credential: Optional[str]
    ) -> list[PositionSample]: ...


def pass_from_n2yo(record: dict) -> PassPrediction:
    return PassPrediction(
        start_time=float(record["startUTC"]),
        end_time=float(record["endUTC"]),
        max_elevation=float(record["maxEl"]),
        start_azimuth=float(record["startAz"]),
        end_azimuth=float(record["endAz"]),
        max_azimuth=float(record.get("maxAz", record["startAz"])),
    )


def sample_from_n2yo(record: dict) -> PositionSample:
    return PositionSample(
        timestamp=float(record["timestamp"]),
        azimuth=float(record["azimuth"]),
        elevation=float(record["elevation"]),
        sat_latitude=float(record["satlatitude"]),
        sat_longitude=float(record["satlongitude"]),
        sat_altitude=float(record["sataltitude"]),
    )


class N2YOPassSource:
    def __init__(self, client: N2YOClient = None):
        self.client = client if client is not None else N2YOClient()

    async def fetch_passes(
        self, norad_id: int, observer: ObserverLocation, days: int, min_elevation: float, credential: Optional[str]
    ) -> list[PassPrediction]:
        records = await self.client.radio_passes(
            norad_id, observer.latitude, observer.longitude, observer.altitude, days, min_elevation, credential
        )
        passes = []
        for record in records:
            try:
                passes.append(pass_from_n2yo(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Skipping malformed pass record for {norad_id}: {e}")
        logger.info(f"Got {len(passes)} passes from N2YO for {norad_id}")
        return passes


class N2YOBurstSource:
    def __init__(self, client: N2YOClient = None):
        self.client = client if client is not None else N2YOClient()

    async def fetch_burst(
        self, norad_id: int, observer: ObserverLocation, seconds: int, credential: Optional[str]
    ) -> list[PositionSample]:
        records = await self.client.positions(
            norad_id, observer.latitude, observer.longitude, observer.altitude, seconds, credential
        )
        try:
            return [sample_from_n2yo(record) for record in records]
        except (KeyError, TypeError, ValueError) as e:
            raise FetchError(f"Malformed position record for {norad_id}: {e}") from e


class LocalPassSource:
    """Computes passes from stored orbital elements instead of asking the pass-window provider."""

    def __init__(
        self,
        catalog: ElementCatalog,
        calculator: PassWindowCalculator = None,
        clock: Callable[[], float] = unix_now,
    ):
        self.catalog = catalog
        self.calculator = calculator if calculator is not None else PassWindowCalculator(propagator=catalog.propagator)
        self.clock = clock

    async def fetch_passes(
        self, norad_id: int, observer: ObserverLocation, days: int, min_elevation: float, credential: Optional[str] = None
    ) -> list[PassPrediction]:
        elements = self.catalog.get(norad_id)
        if elements is None:
            raise FetchError(f"No orbital elements for {norad_id}")
        start = self.clock()
        end = start + timedelta(days=days).total_seconds()
        # The scan is CPU bound; keep it off the event loop
        return await asyncio.to_thread(self.calculator.compute_passes, elements, observer, start, end, min_elevation)


class CelestrakElementSource:
    def __init__(self, catalog: ElementCatalog, client: CelestrakClient = None):
        self.catalog = catalog
        self.client = client if client is not None else CelestrakClient()

    async def update(self, norad_ids: Iterable[int]) -> int:
        """Fetch fresh elements for each satellite; failures are logged and the old record kept."""
        updated = 0
        for norad_id in norad_ids:
            try:
                text = await self.client.fetch_tle_text(norad_id)
            except FetchError as e:
                logger.error(f"Failed to fetch elements for {norad_id}: {e}")
                continue
            records = parse_tle_catalog(text)
            if norad_id not in records:
                logger.error(f"Element response for {norad_id} contained no usable record")
                continue
            if self.catalog.update(records[norad_id]):
                updated += 1
        logger.info(f"Updated elements for {updated} satellites")
        return updated


class N2YOElementSource:
    """Element refresh through the pass provider's tle endpoint, for satellites CelesTrak does not serve."""

    def __init__(self, catalog: ElementCatalog, client: N2YOClient = None):
        self.catalog = catalog
        self.client = client if client is not None else N2YOClient()

    async def update(self, norad_ids: Iterable[int], credential: Optional[str]) -> int:
        updated = 0
        for norad_id in norad_ids:
            try:
                name, line1, line2 = await self.client.tle(norad_id, credential)
            except (FetchError, CredentialMissing) as e:
                logger.error(f"Failed to fetch elements for {norad_id}: {e}")
                continue
            if self.catalog.update_from_lines(norad_id, line1, line2, name=name):
                updated += 1
        logger.info(f"Updated elements for {updated} satellites")
        return updated
