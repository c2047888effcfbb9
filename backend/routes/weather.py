"""Weather routes: city lookup, the user's own town, and admin cache busting."""

import logging

from fastapi import APIRouter, Depends

from routes.dependencies import get_current_user, get_weather_service, require_role
from services.auth import CurrentUser
from services.weather import WeatherInfo, WeatherService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/meteo", tags=["Weather"])


@router.get("", response_model=WeatherInfo)
async def weather_for_my_town(
    user: CurrentUser | None = Depends(get_current_user),
    service: WeatherService = Depends(get_weather_service),
) -> WeatherInfo:
    """Current weather in the authenticated user's town."""
    return await service.get_weather_for_user(user)


@router.delete("/cache")
async def bust_weather_cache(
    admin: CurrentUser = Depends(require_role("ROLE_ADMIN")),
    service: WeatherService = Depends(get_weather_service),
) -> dict:
    evicted = await service.invalidate_cache()
    logger.info("Weather cache busted by %s", admin.username)
    return {"invalidated": evicted}


@router.get("/{city}", response_model=WeatherInfo)
async def weather_for_city(
    city: str,
    service: WeatherService = Depends(get_weather_service),
) -> WeatherInfo:
    """Current weather for a city, cached for 10 minutes."""
    return await service.get_weather_for_city(city)
