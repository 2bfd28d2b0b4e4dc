"""Weather routes: ZIP code lookups, cache admin and background job status.

GET  /api/weather/{zipcode}               full weather package
POST /api/weather/{zipcode}/refresh       drop cached entries, fetch fresh
GET  /api/weather/cache/stats             per-client cache statistics
POST /api/weather/cache/clear             clear every cache
POST /api/weather/cache/clear/{zipcode}   clear one location
GET  /api/background/status               refresh scheduler status
"""

import asyncio
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from services.geocoding import normalize_zip
from services.scheduler import RefreshScheduler
from services.weather import WeatherService
from services.zip_store import TrackedZipStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def get_weather_service(request: Request) -> WeatherService:
    return request.app.state.weather


def get_zip_store(request: Request) -> TrackedZipStore:
    return request.app.state.zip_store


def get_scheduler(request: Request) -> RefreshScheduler:
    return request.app.state.scheduler


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/weather/cache/stats")
async def cache_stats(weather: WeatherService = Depends(get_weather_service)) -> dict:
    return {"cache": weather.stats(), "timestamp": _now()}


@router.post("/weather/cache/clear")
async def clear_cache(weather: WeatherService = Depends(get_weather_service)) -> dict:
    weather.clear_all()
    logger.info("Weather cache cleared")
    return {"message": "Cache cleared successfully", "timestamp": _now()}


@router.post("/weather/cache/clear/{zipcode}")
async def clear_location_cache(
    zipcode: str,
    weather: WeatherService = Depends(get_weather_service),
) -> dict:
    zipcode = normalize_zip(zipcode)
    removed = await weather.clear_for_zip(zipcode)
    logger.info("Location cache cleared for %s (%d entries)", zipcode, removed)
    return {"message": f"Cache cleared for ZIP code {zipcode}", "removed": removed, "timestamp": _now()}


@router.get("/weather/{zipcode}")
async def get_weather(
    zipcode: str,
    weather: WeatherService = Depends(get_weather_service),
    store: TrackedZipStore = Depends(get_zip_store),
) -> dict:
    """Complete weather package for a 5-digit ZIP code."""
    zipcode = normalize_zip(zipcode)
    logger.info("Fetching weather data for ZIP %s", zipcode)
    # Only ZIPs that geocode get tracked for background refresh
    await weather.geocoder.geocode(zipcode)
    await asyncio.to_thread(store.add, zipcode)
    return await weather.get_weather(zipcode)


@router.post("/weather/{zipcode}/refresh")
async def refresh_weather(
    zipcode: str,
    weather: WeatherService = Depends(get_weather_service),
    store: TrackedZipStore = Depends(get_zip_store),
) -> dict:
    """Clear cached data for a ZIP code and return a fresh package."""
    zipcode = normalize_zip(zipcode)
    await weather.geocoder.geocode(zipcode)
    await asyncio.to_thread(store.add, zipcode)
    return await weather.refresh(zipcode)


@router.get("/background/status")
async def background_status(scheduler: RefreshScheduler = Depends(get_scheduler)) -> dict:
    return scheduler.status()
