import json
import logging
from datetime import datetime
from pathlib import Path

from passwatch.base.config import PredictionConfig
from passwatch.base.models import CacheEntry, ObserverLocation, OrbitalElements, PassPrediction
from passwatch.common.utils import CustomJSONDecoder, CustomJSONEncoder

logger = logging.getLogger(__name__)


class PassPredictionStore:
    """JSON file persistence for cache entries and the latest orbital elements."""

    def __init__(self, config: PredictionConfig = None, path: str | Path | None = None):
        if config is None:
            config = PredictionConfig()
        self.config = config
        self.path = Path(path if path is not None else config.store_path).expanduser()

    def save(self, entries: list[CacheEntry], elements: list[OrbitalElements] = None) -> None:
        data = {
            "version": self.config.message_version,
            "predictions": entries,
            "elements": elements or [],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "wt") as f:
            json.dump(data, f, cls=CustomJSONEncoder, indent=2)
        tmp_path.replace(self.path)
        logger.info(f"Saved {len(entries)} prediction entries to {self.path}")

    def load(self) -> tuple[list[CacheEntry], list[OrbitalElements]]:
        if not self.path.exists():
            return [], []
        try:
            with open(self.path, "rt") as f:
                data = json.load(f, cls=CustomJSONDecoder)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read prediction store {self.path}: {e}")
            return [], []

        entries = []
        for record in data.get("predictions", []):
            try:
                entries.append(self._entry_from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Skipping corrupt prediction entry: {e}")

        elements = []
        for record in data.get("elements", []):
            try:
                elements.append(self._elements_from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Skipping corrupt element record: {e}")
        return entries, elements

    @staticmethod
    def _entry_from_dict(record: dict) -> CacheEntry:
        return CacheEntry(
            norad_id=int(record["norad_id"]),
            observer=ObserverLocation(**record["observer"]),
            passes=tuple(PassPrediction(**p) for p in record["passes"]),
            fetched_at=float(record["fetched_at"]),
        )

    @staticmethod
    def _elements_from_dict(record: dict) -> OrbitalElements:
        epoch = record["epoch"]
        if not isinstance(epoch, datetime):
            raise ValueError(f"Invalid epoch: {epoch!r}")
        return OrbitalElements(**record)
