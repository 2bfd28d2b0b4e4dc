"""National Weather Service (api.weather.gov) client.

Free API, requires a descriptive User-Agent. A forecast lookup is two hops:

    /points/{lat},{lon}                      -> gridId, gridX, gridY
    /gridpoints/{office}/{x},{y}/forecast    -> 7-day periods
    /gridpoints/{office}/{x},{y}/forecast/hourly
    /gridpoints/{office}/{x},{y}/stations    -> nearby stations
    /stations/{id}/observations/latest
    /alerts/active?point={lat},{lon}         -> never cached
"""

import logging
from dataclasses import dataclass

from errors import InvalidUpstreamData
from services.cached_client import (
    DAY,
    HOUR,
    MINUTE,
    NEVER_CACHE,
    CachedClient,
    Ttl,
    coord_key,
    request_coord,
)
from services.http_client import Fetcher
from services.retry import RetryExecutor

logger = logging.getLogger(__name__)

POINTS_TTL = Ttl(1 * DAY)
FORECAST_TTL = Ttl(1 * HOUR)
HOURLY_FORECAST_TTL = Ttl(1 * HOUR)
STATIONS_TTL = Ttl(7 * DAY)
OBSERVATION_TTL = Ttl(10 * MINUTE)
ALERTS_TTL = NEVER_CACHE


@dataclass(frozen=True)
class GridPoint:
    office: str
    grid_x: int
    grid_y: int
    time_zone: str | None = None

    @property
    def path(self) -> str:
        return f"{self.office}/{self.grid_x},{self.grid_y}"


def points_key(lat: float, lon: float) -> str:
    return f"points:{coord_key(lat, lon)}"


def forecast_key(grid: GridPoint) -> str:
    return f"forecast:{grid.path}"


def hourly_key(grid: GridPoint) -> str:
    return f"hourly:{grid.path}"


def stations_key(grid: GridPoint) -> str:
    return f"stations:{grid.path}"


def observation_key(station_id: str) -> str:
    return f"observation:{station_id}"


def grid_point_from(points: dict) -> GridPoint:
    """Extract the grid address from a /points response."""
    try:
        props = points["properties"]
        return GridPoint(
            office=props["gridId"],
            grid_x=int(props["gridX"]),
            grid_y=int(props["gridY"]),
            time_zone=props.get("timeZone"),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidUpstreamData("Point response is missing grid coordinates") from e


def first_station_id(stations: dict) -> str | None:
    features = stations.get("features") or []
    if not features:
        return None
    return (features[0].get("properties") or {}).get("stationIdentifier")


class NWSClient(CachedClient):
    def __init__(self, fetcher: Fetcher, executor: RetryExecutor, **kwargs):
        super().__init__("nws", executor, **kwargs)
        self.fetcher = fetcher

    async def get_point(self, lat: float, lon: float) -> dict:
        coords = request_coord(lat, lon)
        return await self.get_or_fetch(
            points_key(lat, lon),
            POINTS_TTL,
            lambda: self.fetcher.get_json(f"/points/{coords}"),
        )

    async def get_grid_point(self, lat: float, lon: float) -> GridPoint:
        return grid_point_from(await self.get_point(lat, lon))

    async def get_forecast(self, grid: GridPoint) -> dict:
        return await self.get_or_fetch(
            forecast_key(grid),
            FORECAST_TTL,
            lambda: self.fetcher.get_json(f"/gridpoints/{grid.path}/forecast"),
        )

    async def get_hourly_forecast(self, grid: GridPoint) -> dict:
        return await self.get_or_fetch(
            hourly_key(grid),
            HOURLY_FORECAST_TTL,
            lambda: self.fetcher.get_json(f"/gridpoints/{grid.path}/forecast/hourly"),
        )

    async def get_stations(self, grid: GridPoint) -> dict:
        return await self.get_or_fetch(
            stations_key(grid),
            STATIONS_TTL,
            lambda: self.fetcher.get_json(f"/gridpoints/{grid.path}/stations"),
        )

    async def get_latest_observation(self, station_id: str) -> dict:
        return await self.get_or_fetch(
            observation_key(station_id),
            OBSERVATION_TTL,
            lambda: self.fetcher.get_json(f"/stations/{station_id}/observations/latest"),
        )

    async def get_current_conditions(self, grid: GridPoint) -> dict | None:
        """Latest observation from the grid's nearest station, or None if it has none."""
        station_id = first_station_id(await self.get_stations(grid))
        if station_id is None:
            logger.warning("No observation stations for grid %s", grid.path)
            return None
        return await self.get_latest_observation(station_id)

    async def get_active_alerts(self, lat: float, lon: float) -> dict:
        return await self.get_or_fetch(
            f"alerts:{coord_key(lat, lon)}",
            ALERTS_TTL,
            lambda: self.fetcher.get_json("/alerts/active", params={"point": request_coord(lat, lon)}),
        )

    def clear_location(self, lat: float, lon: float) -> int:
        """Drop the grid point entry for a location and everything keyed off it."""
        p_key = points_key(lat, lon)
        doomed = {p_key}
        points = self.cache.peek(p_key)
        if points is not None:
            try:
                grid = grid_point_from(points)
            except InvalidUpstreamData:
                grid = None
            if grid is not None:
                doomed.update({forecast_key(grid), hourly_key(grid), stations_key(grid)})
                stations = self.cache.peek(stations_key(grid))
                station_id = first_station_id(stations) if stations is not None else None
                if station_id:
                    doomed.add(observation_key(station_id))
        removed = self.cache.delete_where(lambda key: key in doomed)
        logger.info("Cleared %d NWS cache entries for %s", removed, coord_key(lat, lon))
        return removed
