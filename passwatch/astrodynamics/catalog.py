import logging
from typing import Iterable, Optional

from passwatch.astrodynamics.propagator import Instant, KeplerPropagator
from passwatch.astrodynamics.tle import parse_tle
from passwatch.base.errors import ParseError
from passwatch.base.models import GeodeticPosition, OrbitalElements

logger = logging.getLogger(__name__)


class ElementCatalog:
    """Latest orbital elements per satellite. A record is only replaced, whole, by one with a newer
    epoch."""

    def __init__(self, propagator: KeplerPropagator = None):
        self.propagator = propagator if propagator is not None else KeplerPropagator()
        self._elements: dict[int, OrbitalElements] = {}
        self._unknown: set[int] = set()

    def update(self, elements: OrbitalElements) -> bool:
        current = self._elements.get(elements.norad_id)
        self._unknown.discard(elements.norad_id)
        if current is not None and current.epoch >= elements.epoch:
            logger.debug(f"Ignoring elements for {elements.norad_id}: epoch {elements.epoch} is not newer")
            return False
        self._elements[elements.norad_id] = elements
        return True

    def update_many(self, records: Iterable[OrbitalElements]) -> int:
        return sum(1 for elements in records if self.update(elements))

    def update_from_lines(self, norad_id: int, line1: str, line2: str, name: str = "") -> bool:
        """Parse and store a record. A record that fails to parse marks the satellite unknown instead of
        raising; the previous elements, if any, are kept."""
        try:
            elements = parse_tle(line1, line2, name=name)
        except ParseError as e:
            logger.error(f"Failed to parse elements for {norad_id}: {e}")
            if norad_id not in self._elements:
                self._unknown.add(norad_id)
            return False
        return self.update(elements)

    def get(self, norad_id: int) -> Optional[OrbitalElements]:
        return self._elements.get(norad_id)

    def is_unknown(self, norad_id: int) -> bool:
        return norad_id in self._unknown or norad_id not in self._elements

    def remove(self, norad_id: int) -> None:
        self._elements.pop(norad_id, None)
        self._unknown.discard(norad_id)

    def all(self) -> list[OrbitalElements]:
        return list(self._elements.values())

    def positions(self, time: Instant) -> dict[int, GeodeticPosition]:
        """Positions of all satellites with usable elements. Unknown satellites are left out."""
        result = {}
        for norad_id, elements in self._elements.items():
            position = self.propagator.position_or_unknown(elements, time)
            if position is not None:
                result[norad_id] = position
        return result
