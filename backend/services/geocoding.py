"""ZIP code geocoding via Zippopotam.us.

Free API, no key required. Returns the ZIP centroid:

    GET https://api.zippopotam.us/us/{zip}
    {"places": [{"latitude": "33.2841", "longitude": "-96.574", ...}], ...}
"""

import logging
import re
from dataclasses import dataclass

from errors import InvalidInput, InvalidUpstreamData, NotFound
from services.cached_client import DAY, CachedClient, Ttl
from services.http_client import Fetcher
from services.retry import RetryExecutor

logger = logging.getLogger(__name__)

GEOCODE_TTL = Ttl(1 * DAY)

ZIP_RE = re.compile(r"^\d{5}$")

# Sanity box for US coordinates (Key West to northern Alaska, Aleutians to Maine)
MIN_LAT, MAX_LAT = 24.0, 72.0
MIN_LON, MAX_LON = -180.0, -65.0


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float


def normalize_zip(zip_code: str) -> str:
    """Trim and validate a 5-digit ZIP code."""
    normalized = zip_code.strip() if isinstance(zip_code, str) else ""
    if not ZIP_RE.match(normalized):
        raise InvalidInput(f"Invalid ZIP code format. Must be 5 digits. Received: {zip_code!r}")
    return normalized


def geocode_key(zip_code: str) -> str:
    return f"geocode:{zip_code}"


class GeocodingClient(CachedClient):
    def __init__(self, fetcher: Fetcher, executor: RetryExecutor, **kwargs):
        super().__init__("geocoder", executor, **kwargs)
        self.fetcher = fetcher

    async def geocode(self, zip_code: str) -> Coordinates:
        """Resolve a ZIP code to coordinates, cached for 24h."""
        normalized = normalize_zip(zip_code)
        return await self.get_or_fetch(
            geocode_key(normalized),
            GEOCODE_TTL,
            lambda: self._fetch(normalized),
        )

    async def _fetch(self, zip_code: str) -> Coordinates:
        data = await self.fetcher.get_json(f"/{zip_code}")
        places = data.get("places") if isinstance(data, dict) else None
        if not places:
            raise NotFound(f"ZIP code {zip_code} not found")

        place = places[0]
        try:
            lat = float(place["latitude"])
            lon = float(place["longitude"])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidUpstreamData(f"Unparseable coordinates for ZIP {zip_code}: {place!r}") from e

        if not (MIN_LAT <= lat <= MAX_LAT and MIN_LON <= lon <= MAX_LON):
            raise InvalidUpstreamData(
                f"Invalid coordinates returned for ZIP {zip_code} (lat: {lat}, lon: {lon})"
            )

        logger.debug("Geocoded %s to %.4f,%.4f", zip_code, lat, lon)
        return Coordinates(lat=lat, lon=lon)
