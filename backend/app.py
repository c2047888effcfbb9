"""FastAPI application entry point for the garden advice weather API."""

import logging
import sys
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from config import Settings, settings as default_settings
from errors import register_error_handlers
from services.cache import build_cache
from services.weather import WeatherService

# Structured logging: JSON for production, human-readable for local
if default_settings.is_production:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}',
        stream=sys.stdout,
    )
else:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the cache store, the provider client and the weather service."""
    settings: Settings = app.state.settings

    missing = settings.validate()
    if missing:
        logger.warning("Missing env vars (weather/auth features may fail): %s", ", ".join(missing))

    cache = build_cache(settings)
    http_client = httpx.AsyncClient(timeout=settings.weather_api_timeout_s)
    app.state.cache = cache
    app.state.weather_service = WeatherService(
        http_client,
        cache,
        api_key=settings.openweather_api_key,
        base_url=settings.openweather_base_url,
        lang=settings.weather_lang,
        ttl_seconds=settings.weather_cache_ttl_s,
    )
    logger.info("Weather service ready (cache=%s)", settings.cache_backend)

    yield

    await http_client.aclose()
    if hasattr(cache, "close"):
        await cache.close()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    app = FastAPI(title="Garden Advice API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings

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

    return app


app = create_app()
