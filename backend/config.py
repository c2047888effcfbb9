"""Centralized configuration — all env vars in one place."""

import os


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        self.cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
        self.git_sha: str = os.getenv("GIT_SHA", "unknown")
        self.environment: str = os.getenv("ENVIRONMENT", "local")

        # OpenWeather
        self.openweather_api_key: str | None = os.getenv("OPENWEATHER_API_KEY")
        self.openweather_base_url: str = os.getenv(
            "OPENWEATHER_BASE_URL", "https://api.openweathermap.org"
        ).rstrip("/")
        self.weather_lang: str | None = os.getenv("WEATHER_LANG") or None
        self.weather_api_timeout_s: float = float(os.getenv("WEATHER_API_TIMEOUT_S", "8"))
        self.weather_cache_ttl_s: int = int(os.getenv("WEATHER_CACHE_TTL_S", "600"))

        # Cache store
        self.cache_backend: str = os.getenv("CACHE_BACKEND", "memory").lower()
        self.redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

        # JWT issued by the accounts service
        self.jwt_secret_key: str | None = os.getenv("JWT_SECRET_KEY")
        self.jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def validate(self) -> list[str]:
        """Return list of missing required env vars for weather and auth features."""
        required = ["OPENWEATHER_API_KEY", "JWT_SECRET_KEY"]
        return [var for var in required if not getattr(self, _attr_for(var))]


settings = Settings()


def _attr_for(env_var: str) -> str:
    """Map env var name to Settings attribute name."""
    mapping = {
        "OPENWEATHER_API_KEY": "openweather_api_key",
        "JWT_SECRET_KEY": "jwt_secret_key",
    }
    return mapping.get(env_var, env_var.lower())
