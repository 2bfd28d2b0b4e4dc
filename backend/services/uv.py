"""UV index from the OpenWeatherMap One Call API.

Optional: without OPENWEATHER_API_KEY the client is disabled and every
lookup returns None without a network call.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

from errors import InvalidUpstreamData
from services.cached_client import HOUR, CachedClient, Ttl, coord_key
from services.http_client import Fetcher
from services.retry import RetryExecutor

logger = logging.getLogger(__name__)

UV_TTL = Ttl(1 * HOUR)


@dataclass(frozen=True)
class UVIndex:
    value: float
    timestamp: str
    latitude: float
    longitude: float

    def as_dict(self) -> dict:
        return asdict(self)


def uv_key(lat: float, lon: float) -> str:
    return f"uv:{coord_key(lat, lon)}"


class UVClient(CachedClient):
    def __init__(self, fetcher: Fetcher | None, executor: RetryExecutor, api_key: str | None = None, **kwargs):
        super().__init__("uv", executor, **kwargs)
        self.fetcher = fetcher
        self.api_key = api_key
        if not self.enabled:
            logger.warning("UV index disabled: OPENWEATHER_API_KEY not configured")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key) and self.fetcher is not None

    async def get_uv_index(self, lat: float, lon: float) -> UVIndex | None:
        if not self.enabled:
            return None
        return await self.get_or_fetch(uv_key(lat, lon), UV_TTL, lambda: self._fetch(lat, lon))

    async def _fetch(self, lat: float, lon: float) -> UVIndex:
        data = await self.fetcher.get_json(
            "/onecall",
            params={
                "lat": f"{lat:.4f}",
                "lon": f"{lon:.4f}",
                "appid": self.api_key,
                "exclude": "minutely,hourly,daily,alerts",
            },
        )
        try:
            current = data["current"]
            observed = datetime.fromtimestamp(current["dt"], tz=timezone.utc)
            return UVIndex(
                value=float(current["uvi"]),
                timestamp=observed.isoformat(),
                latitude=lat,
                longitude=lon,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidUpstreamData("UV response is missing current.uvi") from e

    def clear_location(self, lat: float, lon: float) -> bool:
        return self.invalidate(uv_key(lat, lon))
