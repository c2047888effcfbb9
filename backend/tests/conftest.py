"""
Shared fixtures for the weather API tests.

Provides:
- a controllable clock for cache expiry
- an OpenWeather stand-in served through httpx.MockTransport
- a WeatherService wired to both
- an async client bound to the FastAPI app with the same service injected
"""

import os
from datetime import timedelta

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

# Ensure test env vars before any app imports
os.environ.setdefault("ENVIRONMENT", "local")
os.environ.setdefault("OPENWEATHER_API_KEY", "test-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("CACHE_BACKEND", "memory")

from config import Settings  # noqa: E402
from services.auth import create_access_token  # noqa: E402
from services.cache import TTLCache  # noqa: E402
from services.weather import WeatherService  # noqa: E402

JWT_SECRET = "test-secret"


def owm_payload(description: str = "clear sky", name: str = "Paris") -> dict:
    return {
        "weather": [{"id": 800, "main": "Clear", "description": description, "icon": "01d"}],
        "main": {"temp": 291.35, "humidity": 60},
        "name": name,
        "cod": 200,
    }


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ProviderStub:
    """Answers OpenWeather requests from a per-city table and records them."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: dict[str, tuple[int, dict]] = {}

    def respond(self, city: str, status_code: int = 200, json=None, text: str | None = None) -> None:
        body = {"text": text} if text is not None else {"json": json}
        self.responses[city] = (status_code, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        city = request.url.params.get("q")
        if city in self.responses:
            status_code, body = self.responses[city]
            return httpx.Response(status_code, **body)
        return httpx.Response(200, json=owm_payload(name=city))

    @property
    def calls(self) -> int:
        return len(self.requests)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return ProviderStub()


@pytest.fixture
def cache(clock):
    return TTLCache(clock=clock)


@pytest.fixture
async def http_client(provider):
    async with httpx.AsyncClient(transport=httpx.MockTransport(provider.handler)) as client:
        yield client


@pytest.fixture
def weather_service(http_client, cache):
    return WeatherService(
        http_client,
        cache,
        api_key="test-key",
        base_url="https://owm.test",
    )


@pytest.fixture
def settings():
    test_settings = Settings()
    test_settings.openweather_api_key = "test-key"
    test_settings.openweather_base_url = "https://owm.test"
    test_settings.jwt_secret_key = JWT_SECRET
    test_settings.jwt_algorithm = "HS256"
    test_settings.cache_backend = "memory"
    return test_settings


@pytest.fixture
def app(settings, cache, weather_service):
    """FastAPI app with the test cache and service injected (lifespan not run)."""
    from app import create_app

    _app = create_app(settings)
    _app.state.cache = cache
    _app.state.weather_service = weather_service
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP client bound to the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def make_token(
    username: str = "jardinier@example.com",
    town: str | None = "Lyon",
    roles: list[str] | None = None,
    secret: str = JWT_SECRET,
    expires_delta: timedelta = timedelta(hours=1),
) -> str:
    claims: dict = {"sub": username, "roles": roles or ["ROLE_USER"]}
    if town is not None:
        claims["town"] = town
    return create_access_token(claims, secret, expires_delta=expires_delta)


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
