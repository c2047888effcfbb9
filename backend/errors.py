"""Custom exceptions and centralized FastAPI error handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class GardenAPIError(Exception):
    """Base exception with HTTP status code."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class WeatherLookupError(GardenAPIError):
    """The weather provider could not produce a result for a city."""

    def __init__(self, city: str, reason: str):
        super().__init__("Weather data not found", status_code=404)
        self.city = city
        self.reason = reason


class RemoteUnavailableError(WeatherLookupError):
    """Non-200 answer, timeout or transport failure from the provider."""


class MalformedResponseError(WeatherLookupError):
    """200 answer whose body has no usable weather description."""


class UnauthenticatedError(GardenAPIError):
    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message, status_code=401)


class InvalidTokenError(GardenAPIError):
    def __init__(self, message: str = "Invalid or expired JWT token"):
        super().__init__(message, status_code=401)


class ForbiddenError(GardenAPIError):
    def __init__(self, role: str):
        super().__init__(f"Missing required role: {role}", status_code=403)


def register_error_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers on the FastAPI app."""

    @app.exception_handler(GardenAPIError)
    async def handle_garden_error(_request: Request, exc: GardenAPIError):
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

    @app.exception_handler(ValueError)
    async def handle_value_error(_request: Request, exc: ValueError):
        return JSONResponse({"error": str(exc)}, status_code=400)

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            {"error": "Internal server error"},
            status_code=500,
        )
