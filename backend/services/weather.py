"""ZIP code -> weather package pipeline.

geocode(zip) -> grid point -> {forecast, hourly, current conditions, alerts,
UV} fetched concurrently, each through its client's cache. Forecast and
hourly forecast are required; the rest degrade to empty values. Sun times
are computed locally from the coordinates.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone

from config import Settings
from services.cache import TTLCache
from services.geocoding import GeocodingClient, normalize_zip
from services.http_client import JSONFetcher
from services.nws import GridPoint, NWSClient
from services.retry import (
    GEOCODER_RETRY_POLICY,
    NWS_RETRY_POLICY,
    UV_RETRY_POLICY,
    RetryExecutor,
    RetryPolicy,
)
from services.sun import sun_times
from services.uv import UVClient

logger = logging.getLogger(__name__)

_OPTIONAL_PARTS = ("currentConditions", "alerts", "uvIndex")


class WeatherService:
    """Long-lived facade over the three upstream clients, built once per process."""

    def __init__(self, geocoder: GeocodingClient, nws: NWSClient, uv: UVClient):
        self.geocoder = geocoder
        self.nws = nws
        self.uv = uv

    @property
    def clients(self) -> list:
        return [self.geocoder, self.nws, self.uv]

    @property
    def caches(self) -> list[TTLCache]:
        return [client.cache for client in self.clients]

    async def _gather_parts(self, lat: float, lon: float, grid: GridPoint) -> dict:
        names = ("forecast", "hourlyForecast") + _OPTIONAL_PARTS
        results = await asyncio.gather(
            self.nws.get_forecast(grid),
            self.nws.get_hourly_forecast(grid),
            self.nws.get_current_conditions(grid),
            self.nws.get_active_alerts(lat, lon),
            self.uv.get_uv_index(lat, lon),
            return_exceptions=True,
        )
        return dict(zip(names, results))

    async def get_weather(self, zip_code: str) -> dict:
        """Full weather package for a ZIP code."""
        zip_code = normalize_zip(zip_code)
        coords = await self.geocoder.geocode(zip_code)
        grid = await self.nws.get_grid_point(coords.lat, coords.lon)
        parts = await self._gather_parts(coords.lat, coords.lon, grid)

        for required in ("forecast", "hourlyForecast"):
            if isinstance(parts[required], BaseException):
                logger.error("Failed to fetch %s for ZIP %s: %s", required, zip_code, parts[required])
                raise parts[required]

        for name in _OPTIONAL_PARTS:
            if isinstance(parts[name], BaseException):
                logger.warning("Failed to fetch %s for ZIP %s: %s", name, zip_code, parts[name])
                parts[name] = None

        conditions = parts["currentConditions"]
        alerts = parts["alerts"] or {}
        uv_index = parts["uvIndex"]
        sun = sun_times(coords.lat, coords.lon, time_zone=grid.time_zone)

        return {
            "zipCode": zip_code,
            "coordinates": {"latitude": coords.lat, "longitude": coords.lon},
            "gridPoint": {
                "gridId": grid.office,
                "gridX": grid.grid_x,
                "gridY": grid.grid_y,
                "timeZone": grid.time_zone,
            },
            "forecast": _periods(parts["forecast"]),
            "hourlyForecast": _periods(parts["hourlyForecast"]),
            "currentObservation": (conditions or {}).get("properties"),
            "alerts": [f.get("properties") or {} for f in alerts.get("features") or []],
            "uvIndex": uv_index.as_dict() if uv_index is not None else None,
            "sunTimes": sun.as_dict() if sun is not None else None,
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
        }

    async def refresh(self, zip_code: str) -> dict:
        """Drop cached entries for a ZIP code and fetch everything again."""
        await self.clear_for_zip(zip_code)
        return await self.get_weather(zip_code)

    async def prefetch(self, zip_code: str) -> int:
        """Warm every cache for a ZIP code. Returns the number of parts that failed.

        Geocoding and grid lookup failures propagate, since nothing else can
        be fetched without them.
        """
        coords = await self.geocoder.geocode(zip_code)
        grid = await self.nws.get_grid_point(coords.lat, coords.lon)
        parts = await self._gather_parts(coords.lat, coords.lon, grid)

        failed = 0
        for name, result in parts.items():
            if isinstance(result, BaseException):
                failed += 1
                logger.warning("Prefetch of %s for ZIP %s failed: %s", name, zip_code, result)
        return failed

    def clear_all(self) -> None:
        for client in self.clients:
            client.clear()

    async def clear_for_zip(self, zip_code: str) -> int:
        coords = await self.geocoder.geocode(zip_code)
        removed = self.nws.clear_location(coords.lat, coords.lon)
        if self.uv.clear_location(coords.lat, coords.lon):
            removed += 1
        return removed

    def stats(self) -> dict:
        per_client = {client.name: client.stats() for client in self.clients}
        total = {
            "keys": sum(s.key_count for s in per_client.values()),
            "hits": sum(s.hits for s in per_client.values()),
            "misses": sum(s.misses for s in per_client.values()),
        }
        return {"total": total, **{name: s.as_dict() for name, s in per_client.items()}}

    async def aclose(self) -> None:
        for client in self.clients:
            fetcher = getattr(client, "fetcher", None)
            if fetcher is not None and hasattr(fetcher, "aclose"):
                await fetcher.aclose()


def _periods(doc: dict) -> list[dict]:
    return (doc.get("properties") or {}).get("periods", [])


def _with_deadline(policy: RetryPolicy, deadline: float | None) -> RetryPolicy:
    return policy if deadline is None else replace(policy, deadline=deadline)


def build_weather_service(settings: Settings) -> WeatherService:
    """Construct the process-wide clients from settings."""
    deadline = settings.retry_deadline_seconds
    timeout = settings.http_timeout_seconds

    nws_fetcher = JSONFetcher(
        settings.nws_base_url,
        headers={"User-Agent": settings.nws_user_agent, "Accept": "application/geo+json"},
        timeout=timeout,
    )
    geocoder_fetcher = JSONFetcher(
        settings.geocoder_base_url,
        headers={"User-Agent": settings.nws_user_agent},
        timeout=timeout,
    )
    uv_fetcher = None
    if settings.openweather_api_key:
        uv_fetcher = JSONFetcher(
            settings.uv_base_url,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )

    return WeatherService(
        geocoder=GeocodingClient(
            geocoder_fetcher,
            RetryExecutor(_with_deadline(GEOCODER_RETRY_POLICY, deadline), name="geocoder"),
        ),
        nws=NWSClient(
            nws_fetcher,
            RetryExecutor(_with_deadline(NWS_RETRY_POLICY, deadline), name="nws"),
        ),
        uv=UVClient(
            uv_fetcher,
            RetryExecutor(_with_deadline(UV_RETRY_POLICY, deadline), name="uv"),
            api_key=settings.openweather_api_key,
        ),
    )
