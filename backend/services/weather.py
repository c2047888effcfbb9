"""OpenWeather client with tag-aware cache-aside lookups.

One cache entry per city (key ``weather_{city}``), kept for 10 minutes and
tagged ``weatherCache`` so every cached city can be evicted in one call.
Failures are never cached: the next request for that city hits the provider
again.

OpenWeather /data/2.5/weather returns:
  {
    "weather": [{"id": 800, "main": "Clear", "description": "clear sky"}],
    "name":    "Paris",
    ...
  }
"""

import asyncio
import logging
import re
from typing import Any

import httpx
from pydantic import BaseModel

from errors import MalformedResponseError, RemoteUnavailableError, UnauthenticatedError
from services.auth import CurrentUser
from services.cache import CacheStore

logger = logging.getLogger(__name__)

CACHE_TAG = "weatherCache"
CACHE_TTL_SECONDS = 600
WEATHER_PATH = "/data/2.5/weather"


class WeatherInfo(BaseModel):
    city: str
    weather: str


def cache_key(city: str) -> str:
    """Build the cache key for a city: case and spacing do not matter."""
    normalized = re.sub(r"\s+", " ", city.strip()).casefold()
    return f"weather_{normalized}"


def _parse_description(city: str, resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError as e:
        raise MalformedResponseError(city, f"invalid JSON body: {e}") from e

    weather_list = payload.get("weather") if isinstance(payload, dict) else None
    if not isinstance(weather_list, list) or not weather_list:
        raise MalformedResponseError(city, "missing or empty 'weather' list")

    primary = weather_list[0]
    description = primary.get("description") if isinstance(primary, dict) else None
    if not isinstance(description, str) or not description:
        raise MalformedResponseError(city, "first 'weather' entry has no description")
    return description


class _Flight:
    """A fetch in progress and the number of callers awaiting it."""

    def __init__(self, task: asyncio.Task):
        self.task = task
        self.waiters = 0


class WeatherService:
    """
    Cached weather lookups against OpenWeather.

    Usage:
        service = WeatherService(http_client, cache, api_key="...")
        info = await service.get_weather_for_city("Lyon")
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        cache: CacheStore,
        api_key: str | None,
        base_url: str = "https://api.openweathermap.org",
        lang: str | None = None,
        ttl_seconds: int = CACHE_TTL_SECONDS,
    ) -> None:
        """
        Args:
            http_client: Shared AsyncClient; its timeout bounds every provider call.
            cache:       Store shared by every caller of this service.
            api_key:     OpenWeather API key (OPENWEATHER_API_KEY env var).
            base_url:    Provider root, without the /data/2.5 path.
            lang:        Optional language for descriptions, e.g. "fr".
            ttl_seconds: Freshness of a cached city.
        """
        self._http = http_client
        self._cache = cache
        self._api_key = api_key
        self._url = base_url.rstrip("/") + WEATHER_PATH
        self._lang = lang
        self._ttl_seconds = ttl_seconds
        self._inflight: dict[str, _Flight] = {}

    async def get_weather_for_city(self, city: str) -> WeatherInfo:
        """
        Return the weather description for a city.

        Served from the cache while the entry is fresh; otherwise fetched from
        the provider and cached. Concurrent misses for the same city share a
        single provider call.

        Raises:
            ValueError: city is empty.
            RemoteUnavailableError: non-200 answer, timeout or transport error.
            MalformedResponseError: 200 answer without a weather description.
        """
        city = city.strip() if city else ""
        if not city:
            raise ValueError("City name must not be empty")

        key = cache_key(city)
        cached = await self._cache.get(key)
        if cached is not None:
            logger.debug("Weather cache hit: %s", key)
            return WeatherInfo(city=city, weather=cached["weather"])

        logger.debug("Weather cache miss: %s", key)
        return await self._join_flight(key, city)

    async def get_weather_for_user(self, user: CurrentUser | None) -> WeatherInfo:
        """Return the weather for the authenticated user's town."""
        if user is None:
            raise UnauthenticatedError()
        if not user.town:
            raise ValueError(f"User {user.username} has no town configured")
        return await self.get_weather_for_city(user.town)

    async def invalidate_cache(self) -> int:
        """Evict every cached city. Returns the number of evicted entries."""
        evicted = await self._cache.invalidate_tags(CACHE_TAG)
        logger.info("Weather cache invalidated: %d entries", evicted)
        return evicted

    async def _join_flight(self, key: str, city: str) -> WeatherInfo:
        flight = self._inflight.get(key)
        if flight is None:
            flight = _Flight(asyncio.ensure_future(self._fetch_and_store(key, city)))
            self._inflight[key] = flight
            flight.task.add_done_callback(lambda _t, f=flight: self._land(key, f))

        flight.waiters += 1
        try:
            info = await asyncio.shield(flight.task)
            return WeatherInfo(city=city, weather=info.weather)
        finally:
            flight.waiters -= 1
            # Last waiter gone before the answer: abandon the provider call.
            if flight.waiters == 0 and not flight.task.done():
                self._land(key, flight)
                flight.task.cancel()

    def _land(self, key: str, flight: _Flight) -> None:
        if self._inflight.get(key) is flight:
            del self._inflight[key]

    async def _fetch_and_store(self, key: str, city: str) -> WeatherInfo:
        info = await self._fetch(city)
        await self._cache.set(
            key, info.model_dump(), ttl_seconds=self._ttl_seconds, tags=[CACHE_TAG]
        )
        return info

    async def _fetch(self, city: str) -> WeatherInfo:
        params: dict[str, Any] = {"q": city, "appid": self._api_key or ""}
        if self._lang:
            params["lang"] = self._lang

        try:
            resp = await self._http.get(self._url, params=params)
        except httpx.TimeoutException as e:
            logger.warning("OpenWeather timed out for city=%r", city)
            raise RemoteUnavailableError(city, "timeout") from e
        except httpx.HTTPError as e:
            logger.warning("OpenWeather fetch failed for city=%r: %s", city, e)
            raise RemoteUnavailableError(city, str(e)) from e

        if resp.status_code != 200:
            logger.warning(
                "OpenWeather returned %d for city=%r: %s",
                resp.status_code,
                city,
                resp.text[:200],
            )
            raise RemoteUnavailableError(city, f"status {resp.status_code}")

        try:
            description = _parse_description(city, resp)
        except MalformedResponseError as e:
            logger.warning("OpenWeather payload unusable for city=%r: %s", city, e.reason)
            raise

        return WeatherInfo(city=city, weather=description)
