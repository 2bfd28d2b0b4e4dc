"""Health and readiness check routes."""

import logging
import os
import platform
import sys
import time

from fastapi import APIRouter, Request

from config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

_started_at = time.monotonic()


@router.get("/ready")
async def ready() -> dict:
    """Lightweight readiness check — no external calls."""
    return {"status": "ok", "service": "zipweather-api", "commit": settings.git_sha}


@router.get("/health")
async def health(request: Request) -> dict:
    """Liveness plus cache and background job summary. No upstream calls."""
    result = {
        "status": "ok",
        "service": "zipweather-api",
        "commit": settings.git_sha,
        "uptimeSeconds": round(time.monotonic() - _started_at, 1),
    }

    weather = getattr(request.app.state, "weather", None)
    if weather is not None:
        result["cache"] = weather.stats()["total"]
        result["uvIndexEnabled"] = weather.uv.enabled

    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        result["backgroundRefresh"] = "running" if scheduler.running else "stopped"

    return result


@router.get("/health/detailed")
async def health_detailed(request: Request) -> dict:
    """Health plus process info, per-client cache stats and scheduler status."""
    result = await health(request)
    result["system"] = {
        "pythonVersion": platform.python_version(),
        "platform": sys.platform,
        "arch": platform.machine(),
        "pid": os.getpid(),
    }

    weather = getattr(request.app.state, "weather", None)
    if weather is not None:
        result["cache"] = weather.stats()

    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        result["backgroundRefresh"] = scheduler.status()

    return result
