"""JWT user context, settings validation and the health routes."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from config import Settings
from conftest import JWT_SECRET, make_token
from errors import InvalidTokenError
from services.auth import CurrentUser, create_access_token, decode_access_token


def test_decode_reads_town_and_roles():
    token = make_token(username="admin@example.com", town="Nice", roles=["ROLE_USER", "ROLE_ADMIN"])

    user = decode_access_token(token, JWT_SECRET, algorithms=["HS256"])

    assert user == CurrentUser(username="admin@example.com", town="Nice", roles=["ROLE_USER", "ROLE_ADMIN"])
    assert user.has_role("ROLE_ADMIN")


def test_decode_defaults_roles():
    token = create_access_token({"sub": "a@b.c"}, JWT_SECRET)

    user = decode_access_token(token, JWT_SECRET, algorithms=["HS256"])

    assert user.roles == ["ROLE_USER"]
    assert user.town is None


def test_decode_rejects_wrong_secret():
    with pytest.raises(InvalidTokenError):
        decode_access_token(make_token(secret="other"), JWT_SECRET, algorithms=["HS256"])


def test_decode_rejects_expired():
    token = make_token(expires_delta=timedelta(minutes=-1))

    with pytest.raises(InvalidTokenError):
        decode_access_token(token, JWT_SECRET, algorithms=["HS256"])


def test_decode_rejects_missing_subject():
    token = create_access_token({"town": "Lyon"}, JWT_SECRET)

    with pytest.raises(InvalidTokenError):
        decode_access_token(token, JWT_SECRET, algorithms=["HS256"])


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("OPENWEATHER_API_KEY", "abc")
    monkeypatch.setenv("WEATHER_LANG", "fr")
    monkeypatch.setenv("WEATHER_CACHE_TTL_S", "120")
    monkeypatch.setenv("OPENWEATHER_BASE_URL", "https://owm.example/")

    s = Settings()

    assert s.openweather_api_key == "abc"
    assert s.weather_lang == "fr"
    assert s.weather_cache_ttl_s == 120
    assert s.openweather_base_url == "https://owm.example"


def test_settings_validate_lists_missing(monkeypatch):
    monkeypatch.delenv("OPENWEATHER_API_KEY", raising=False)
    monkeypatch.delenv("JWT_SECRET_KEY", raising=False)

    assert Settings().validate() == ["OPENWEATHER_API_KEY", "JWT_SECRET_KEY"]


async def test_ready(client):
    resp = await client.get("/ready")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


async def test_health_reports_cache(client):
    resp = await client.get("/health")

    body = resp.json()
    assert body["status"] == "ok"
    assert body["cache"] == "memory"
    assert body["weather_api_key"] == "configured"


async def test_health_degraded_when_cache_down(app, client):
    app.state.cache = AsyncMock()
    app.state.cache.ping.return_value = False

    resp = await client.get("/health")

    assert resp.json()["status"] == "degraded"


async def test_security_headers(client):
    resp = await client.get("/ready")

    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
