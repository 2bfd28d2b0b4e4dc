"""FastAPI application entry point for the ZIP weather API."""

import asyncio
import logging
import sys

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from errors import register_error_handlers
from services.cache import sweep_forever
from services.scheduler import RefreshScheduler
from services.weather import WeatherService, build_weather_service
from services.zip_store import TrackedZipStore

# Structured logging: JSON for production, human-readable for local
if settings.is_production:
    logging.basicConfig(
        level=settings.log_level,
        format='{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}',
        stream=sys.stdout,
    )
else:
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

logger = logging.getLogger(__name__)


def create_app(
    weather: WeatherService | None = None,
    zip_store: TrackedZipStore | None = None,
    background_jobs: bool | None = None,
) -> FastAPI:
    app = FastAPI(title="ZIP Weather API", version="1.0.0")

    # One long-lived instance per process, shared by routes and the scheduler
    app.state.weather = weather if weather is not None else build_weather_service(settings)
    app.state.zip_store = zip_store if zip_store is not None else TrackedZipStore(
        settings.zip_storage_file, seed=settings.cached_zip_codes
    )
    app.state.scheduler = RefreshScheduler(
        app.state.weather,
        app.state.zip_store,
        interval=settings.refresh_interval_seconds,
    )
    app.state.sweeper = None
    if background_jobs is None:
        background_jobs = settings.background_jobs_enabled

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Security headers
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # Centralized error handlers
    register_error_handlers(app)

    from routes.health import router as health_router
    from routes.weather import router as weather_router

    app.include_router(health_router)
    app.include_router(weather_router)

    @app.on_event("startup")
    async def _startup() -> None:
        missing = settings.validate()
        if missing:
            logger.warning("Missing env vars (optional features disabled): %s", ", ".join(missing))

        if background_jobs:
            app.state.scheduler.start()
            app.state.sweeper = asyncio.create_task(
                sweep_forever(app.state.weather.caches, settings.cache_sweep_interval_seconds)
            )

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        app.state.scheduler.stop()
        if app.state.sweeper is not None:
            app.state.sweeper.cancel()
            app.state.sweeper = None
        await app.state.scheduler.wait_idle()
        await app.state.weather.aclose()

    return app


app = create_app()
