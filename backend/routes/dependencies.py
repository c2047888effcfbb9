"""Request-scoped dependencies shared by the routes."""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import Settings
from errors import ForbiddenError, UnauthenticatedError
from services.auth import CurrentUser, decode_access_token
from services.weather import WeatherService

_bearer = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_weather_service(request: Request) -> WeatherService:
    return request.app.state.weather_service


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(get_settings),
) -> CurrentUser | None:
    """Decode the bearer token if one was sent. No header means no user."""
    if credentials is None:
        return None
    return decode_access_token(
        credentials.credentials,
        settings.jwt_secret_key or "",
        algorithms=[settings.jwt_algorithm],
    )


def require_role(role: str):
    """Dependency factory: the authenticated user must hold ``role``."""

    def _check(user: CurrentUser | None = Depends(get_current_user)) -> CurrentUser:
        if user is None:
            raise UnauthenticatedError("JWT token is missing. You must authenticate.")
        if not user.has_role(role):
            raise ForbiddenError(role)
        return user

    return _check
