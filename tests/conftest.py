"""Shared pytest fixtures for the weather API tests.

All upstream traffic goes through StubFetcher (canned JSON per path) or an
httpx.MockTransport, and every retry sleep is recorded instead of awaited,
so nothing here touches the network or waits on a real timer.
"""

import copy

import pytest

from errors import UpstreamHTTPError
from services.cache import TTLCache
from services.geocoding import GeocodingClient
from services.nws import NWSClient
from services.retry import (
    GEOCODER_RETRY_POLICY,
    NWS_RETRY_POLICY,
    UV_RETRY_POLICY,
    RetryExecutor,
)
from services.uv import UVClient
from services.weather import WeatherService
from services.zip_store import TrackedZipStore

ZIP = "75454"
LAT, LON = 33.2841, -96.574
POINT_PATH = "/points/33.2841,-96.574"
GRID_PATH = "/gridpoints/FWD/80,110"
STATION = "KTKI"


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep stand-in that records requested delays and returns at once."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class StubFetcher:
    """Serves canned JSON by path. Unknown paths answer with HTTP 404.

    A value may be an exception instance, which is raised. `queue` sets a
    sequence of responses consumed one per call; the last one repeats.
    """

    def __init__(self, routes: dict | None = None):
        self.routes: dict = dict(routes or {})
        self._queues: dict[str, list] = {}
        self.calls: list[tuple[str, dict | None]] = []

    def queue(self, path: str, *responses) -> None:
        self._queues[path] = list(responses)

    async def get_json(self, path: str, params: dict | None = None):
        self.calls.append((path, params))
        if path in self._queues:
            pending = self._queues[path]
            response = pending.pop(0) if len(pending) > 1 else pending[0]
        elif path in self.routes:
            response = self.routes[path]
        else:
            raise UpstreamHTTPError(f"HTTP 404 for {path}", status=404, body={"title": "Not Found"})
        if isinstance(response, BaseException):
            raise response
        return copy.deepcopy(response)

    def count(self, path: str) -> int:
        return sum(1 for p, _ in self.calls if p == path)


def zippopotam_response(lat: str = "33.2841", lon: str = "-96.574") -> dict:
    return {
        "post code": ZIP,
        "country": "United States",
        "places": [
            {
                "place name": "Farmersville",
                "state": "Texas",
                "state abbreviation": "TX",
                "latitude": lat,
                "longitude": lon,
            }
        ],
    }


def nws_routes() -> dict:
    period = {
        "number": 1,
        "name": "Tonight",
        "startTime": "2026-01-15T18:00:00-06:00",
        "endTime": "2026-01-16T06:00:00-06:00",
        "isDaytime": False,
        "temperature": 41,
        "temperatureUnit": "F",
        "windSpeed": "5 mph",
        "windDirection": "S",
        "shortForecast": "Mostly Clear",
    }
    return {
        POINT_PATH: {
            "properties": {
                "gridId": "FWD",
                "gridX": 80,
                "gridY": 110,
                "timeZone": "America/Chicago",
            }
        },
        f"{GRID_PATH}/forecast": {"properties": {"periods": [period]}},
        f"{GRID_PATH}/forecast/hourly": {"properties": {"periods": [period, {**period, "number": 2}]}},
        f"{GRID_PATH}/stations": {
            "features": [
                {"properties": {"stationIdentifier": STATION, "name": "McKinney"}},
                {"properties": {"stationIdentifier": "KDFW", "name": "Dallas/Fort Worth"}},
            ]
        },
        f"/stations/{STATION}/observations/latest": {
            "properties": {
                "timestamp": "2026-01-15T17:53:00+00:00",
                "textDescription": "Clear",
                "temperature": {"unitCode": "wmoUnit:degC", "value": 8.3},
            }
        },
        "/alerts/active": {
            "type": "FeatureCollection",
            "features": [
                {"properties": {"id": "urn:alert:1", "event": "Wind Advisory", "severity": "Moderate"}}
            ],
        },
    }


def uv_response() -> dict:
    return {"lat": LAT, "lon": LON, "current": {"dt": 1768500000, "uvi": 3.42}}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def geo_fetcher() -> StubFetcher:
    return StubFetcher({f"/{ZIP}": zippopotam_response()})


@pytest.fixture
def nws_fetcher() -> StubFetcher:
    return StubFetcher(nws_routes())


@pytest.fixture
def uv_fetcher() -> StubFetcher:
    return StubFetcher({"/onecall": uv_response()})


@pytest.fixture
def weather_service(geo_fetcher, nws_fetcher, uv_fetcher, sleep, clock) -> WeatherService:
    """WeatherService over stub fetchers, UV enabled, sharing one fake clock."""
    return WeatherService(
        geocoder=GeocodingClient(
            geo_fetcher,
            RetryExecutor(GEOCODER_RETRY_POLICY, sleep=sleep, name="geocoder"),
            cache=TTLCache(clock=clock),
        ),
        nws=NWSClient(
            nws_fetcher,
            RetryExecutor(NWS_RETRY_POLICY, sleep=sleep, name="nws"),
            cache=TTLCache(clock=clock),
        ),
        uv=UVClient(
            uv_fetcher,
            RetryExecutor(UV_RETRY_POLICY, sleep=sleep, name="uv"),
            api_key="test-key",
            cache=TTLCache(clock=clock),
        ),
    )


@pytest.fixture
def zip_store(tmp_path) -> TrackedZipStore:
    return TrackedZipStore(tmp_path / "zip-codes.json")
