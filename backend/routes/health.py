"""Health and readiness check routes."""

import logging

from fastapi import APIRouter, Request

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/ready")
async def ready(request: Request) -> dict:
    """Lightweight readiness check — no external calls."""
    settings = request.app.state.settings
    return {"status": "ok", "service": "garden-advice-api", "commit": settings.git_sha}


@router.get("/health")
async def health(request: Request) -> dict:
    """Deep health check that probes the cache store."""
    settings = request.app.state.settings
    result = {
        "status": "ok",
        "service": "garden-advice-api",
        "commit": settings.git_sha,
        "cache": settings.cache_backend,
        "weather_api_key": "configured" if settings.openweather_api_key else "missing",
    }

    if not await request.app.state.cache.ping():
        logger.warning("Cache store %s did not answer ping", settings.cache_backend)
        result["status"] = "degraded"
        result["cache_error"] = "ping failed"

    return result
