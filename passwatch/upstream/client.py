"""
Thin aiohttp adapters for the upstream providers:

1) N2YO radio passes (pass-window source), ~100 requests/hour
2) N2YO positions (position-burst source), ~1000 requests/hour, at most 300 s per request
3) N2YO / CelesTrak two-line elements (orbital-element source)

Every failure (connection error, timeout, non-success status, provider error body, spent budget)
surfaces as FetchError so callers can fall back to cached data.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Optional

import aiohttp

from passwatch.base.config import UpstreamConfig
from passwatch.base.errors import CredentialMissing, FetchError
from passwatch.common.utils import unix_now

logger = logging.getLogger(__name__)


class RequestBudget:
    """Hourly request counters per endpoint."""

    def __init__(self, limits: dict[str, int], clock: Callable[[], float] = unix_now, window: float = 3600.0):
        self.limits = dict(limits)
        self.clock = clock
        self.window = window
        self._counts: dict[str, int] = {}
        self._reset_at: dict[str, float] = {}

    def _maybe_reset(self, endpoint: str) -> None:
        now = self.clock()
        if now - self._reset_at.get(endpoint, now) > self.window or endpoint not in self._reset_at:
            self._counts[endpoint] = 0
            self._reset_at[endpoint] = now

    def remaining(self, endpoint: str) -> Optional[int]:
        if endpoint not in self.limits:
            return None
        self._maybe_reset(endpoint)
        return self.limits[endpoint] - self._counts[endpoint]

    def acquire(self, endpoint: str) -> None:
        remaining = self.remaining(endpoint)
        if remaining is None:
            return
        if remaining <= 0:
            raise FetchError(f"Request budget for {endpoint} exhausted ({self.limits[endpoint]}/hour)")
        self._counts[endpoint] += 1


async def http_request(
    method: str, url: str, data: dict = None, timeout: float = 12.0, headers: dict = None, expect_json: bool = True
) -> Any:
    """Perform a request and return the decoded JSON body, or the text body when `expect_json` is False."""
    headers = dict(headers or {})
    if method == "POST":
        headers["Content-Type"] = "application/json"
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    async with aiohttp.ClientSession(timeout=client_timeout, headers=headers) as session:
        try:
            async with session.request(method, url, json=data) as response:
                response.raise_for_status()
                if expect_json:
                    return await response.json(content_type=None)
                return await response.text()
        except aiohttp.ClientResponseError as e:
            raise FetchError(f"HTTP error {e.status} from {_redact(url)}: {e.message}", status=e.status) from e
        except asyncio.TimeoutError as e:
            raise FetchError(f"Timed out after {timeout}s requesting {_redact(url)}") from e
        except aiohttp.ClientError as e:
            raise FetchError(f"Error connecting to {_redact(url)}: {e}") from e
        except json.JSONDecodeError as e:
            raise FetchError(f"Failed to decode JSON from {_redact(url)}: {e}") from e


def _redact(url: str) -> str:
    head, sep, _ = url.partition("apiKey=")
    return f"{head}{sep}***" if sep else url


class N2YOClient:
    def __init__(self, config: UpstreamConfig = None, budget: RequestBudget = None):
        if config is None:
            config = UpstreamConfig()
        self.config = config
        self.budget = budget if budget is not None else RequestBudget(config.budgets)

    async def _get(self, endpoint: str, path: str, api_key: str) -> dict:
        if not api_key:
            raise CredentialMissing("N2YO API key is missing")
        self.budget.acquire(endpoint)
        url = f"{self.config.n2yo_base_url}/{endpoint}/{path}&apiKey={api_key}"
        logger.debug(f"N2YO request: {_redact(url)}")
        response = await http_request(
            "GET", url, timeout=self.config.request_timeout, headers={"User-Agent": self.config.user_agent}
        )
        if not isinstance(response, dict):
            raise FetchError(f"Unexpected N2YO response for {endpoint}: {str(response)[:100]!r}")
        if response.get("error"):
            raise FetchError(f"N2YO API error: {response['error']}")
        info = response.get("info", {})
        logger.debug(f"N2YO {endpoint} ok, transactions count: {info.get('transactionscount')}")
        return response

    async def radio_passes(
        self, norad_id: int, lat: float, lng: float, alt: float, days: int, min_elevation: float, api_key: str
    ) -> list[dict]:
        """Raw pass dicts: startUTC, endUTC (unix s), maxEl, startAz, endAz, maxAz."""
        path = f"{norad_id}/{lat}/{lng}/{alt}/{days}/{int(min_elevation)}"
        response = await self._get("radiopasses", path, api_key)
        return response.get("passes") or []

    async def positions(self, norad_id: int, lat: float, lng: float, alt: float, seconds: int, api_key: str) -> list[dict]:
        """Raw position dicts at 1 Hz: timestamp, azimuth, elevation, satlatitude, satlongitude, sataltitude."""
        seconds = max(1, min(int(seconds), 300))
        path = f"{norad_id}/{lat}/{lng}/{alt}/{seconds}"
        response = await self._get("positions", path, api_key)
        return response.get("positions") or []

    async def tle(self, norad_id: int, api_key: str) -> tuple[str, str, str]:
        """(name, line1, line2)"""
        response = await self._get("tle", str(norad_id), api_key)
        lines = [line for line in (response.get("tle") or "").splitlines() if line.strip()]
        if len(lines) < 2:
            raise FetchError(f"No TLE returned for {norad_id}")
        return response.get("info", {}).get("satname", ""), lines[0], lines[1]


class CelestrakClient:
    def __init__(self, config: UpstreamConfig = None):
        if config is None:
            config = UpstreamConfig()
        self.config = config

    async def fetch_tle_text(self, norad_id: int) -> str:
        url = f"{self.config.celestrak_base_url}?CATNR={norad_id}&FORMAT=TLE"
        headers = {"User-Agent": self.config.user_agent}
        text = await http_request("GET", url, timeout=self.config.request_timeout, headers=headers, expect_json=False)
        if not isinstance(text, str) or "No GP data found" in text:
            raise FetchError(f"No elements found on CelesTrak for {norad_id}")
        return text
