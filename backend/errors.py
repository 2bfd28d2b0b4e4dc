"""Exception taxonomy and centralized FastAPI error handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = (
    "An unexpected error occurred while fetching weather data. Please try again later."
)


class WeatherAppError(Exception):
    """Base exception with HTTP status code."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class InvalidInput(WeatherAppError):
    """Malformed request key, rejected before any cache or upstream access."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class NotFound(WeatherAppError):
    """The upstream confirmed the resource does not exist."""

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class UpstreamError(WeatherAppError):
    """Failure talking to an upstream provider."""

    def __init__(self, message: str, status: int | None = None, body: object = None):
        super().__init__(message, status_code=500)
        self.status = status
        self.body = body


class UpstreamHTTPError(UpstreamError):
    """Non-2xx response from the fetch layer, not yet classified by a retry policy."""


class RateLimitExceeded(UpstreamError):
    pass


class UpstreamServerError(UpstreamError):
    pass


class UpstreamClientError(UpstreamError):
    pass


class NetworkError(UpstreamError):
    pass


class InvalidUpstreamData(UpstreamError):
    pass


def register_error_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers on the FastAPI app."""

    @app.exception_handler(WeatherAppError)
    async def handle_weather_error(request: Request, exc: WeatherAppError):
        if exc.status_code < 500:
            return JSONResponse({"error": str(exc)}, status_code=exc.status_code)
        logger.error("Upstream failure on %s: %s", request.url.path, exc)
        return JSONResponse({"error": GENERIC_ERROR_MESSAGE}, status_code=500)

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            {"error": "Internal server error"},
            status_code=500,
        )
