"""Sunrise, sunset and twilight times, computed locally with astral.

No upstream call and nothing to cache. Times are reported in the grid
point's time zone when it is known, UTC otherwise.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from astral import Observer
from astral.sun import sun

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SunTimes:
    sunrise: datetime
    sunset: datetime
    solar_noon: datetime
    civil_dawn: datetime
    civil_dusk: datetime

    def as_dict(self) -> dict:
        return {
            "sunrise": self.sunrise.isoformat(),
            "sunset": self.sunset.isoformat(),
            "solarNoon": self.solar_noon.isoformat(),
            "civilDawn": self.civil_dawn.isoformat(),
            "civilDusk": self.civil_dusk.isoformat(),
        }


def _zone(time_zone: str | None) -> tzinfo:
    if not time_zone:
        return timezone.utc
    try:
        return ZoneInfo(time_zone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r, reporting sun times in UTC", time_zone)
        return timezone.utc


def sun_times(
    lat: float,
    lon: float,
    on: date | None = None,
    time_zone: str | None = None,
) -> SunTimes | None:
    """Sun events for the local date at a point.

    Returns None when the sun never rises or never sets that day (polar
    day/night in northern Alaska).
    """
    zone = _zone(time_zone)
    on = on or datetime.now(zone).date()
    try:
        # astral's default dawn/dusk depression is civil twilight (6 degrees)
        events = sun(Observer(latitude=lat, longitude=lon), date=on, tzinfo=zone)
    except ValueError as e:
        logger.info("No sunrise/sunset at %.4f,%.4f on %s: %s", lat, lon, on, e)
        return None
    return SunTimes(
        sunrise=events["sunrise"],
        sunset=events["sunset"],
        solar_noon=events["noon"],
        civil_dawn=events["dawn"],
        civil_dusk=events["dusk"],
    )
