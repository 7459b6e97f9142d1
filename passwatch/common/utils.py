import json
import asyncio
import dataclasses
import time
from datetime import datetime, timezone
from enum import Enum

import numpy as np
import pytz


class CustomJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, np.ndarray):
            # Convert NumPy arrays to lists
            return obj.tolist()
        elif isinstance(obj, np.generic):
            return obj.item()
        elif isinstance(obj, datetime):
            # Format datetime objects as strings
            return obj.isoformat()
        elif isinstance(obj, Enum):
            return obj.value
        elif dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            return dataclasses.asdict(obj)
        # Let the base class default method raise the TypeError
        return json.JSONEncoder.default(self, obj)


class CustomJSONDecoder(json.JSONDecoder):
    def __init__(self, *args, **kwargs):
        super().__init__(object_hook=self.object_hook, *args, **kwargs)

    def object_hook(self, dct):
        # Decode datetime objects
        for key, value in dct.items():
            if isinstance(value, str):
                try:
                    dct[key] = datetime.fromisoformat(value)
                except ValueError:
                    pass
        return dct


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def unix_now() -> float:
    return time.time()


def to_unix(dt: datetime) -> float:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def from_unix(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def utc_to_local(utc_dt: datetime, tz: str = "UTC") -> datetime:
    return utc_dt.replace(tzinfo=pytz.UTC).astimezone(pytz.timezone(tz))


async def wait_until_first_completed(events: list[asyncio.Event], coroutines: list = None):
    """Wait until the first event or coroutine in the list is completed and return the completed task."""
    if coroutines is None:
        coroutines = []
    event_tasks = [asyncio.create_task(event.wait()) for event in events]
    coroutine_tasks = [asyncio.create_task(coro) for coro in coroutines]
    tasks = event_tasks + coroutine_tasks
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        # Also reached when the caller is cancelled
        for task in tasks:
            if not task.done():
                task.cancel()
    return done.pop()
