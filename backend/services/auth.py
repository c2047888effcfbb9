"""JWT user context.

Tokens are issued by the accounts service; this API only verifies them and
reads the claims it needs:

    sub    username (the account email)
    town   the user's town, used by the "my town" weather lookup
    roles  e.g. ["ROLE_USER"], ["ROLE_USER", "ROLE_ADMIN"]
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from pydantic import BaseModel, Field

from errors import InvalidTokenError

logger = logging.getLogger(__name__)

DEFAULT_ROLES = ["ROLE_USER"]


class CurrentUser(BaseModel):
    username: str
    town: str | None = None
    roles: list[str] = Field(default_factory=lambda: list(DEFAULT_ROLES))

    def has_role(self, role: str) -> bool:
        return role in self.roles


def decode_access_token(token: str, secret_key: str, algorithms: list[str]) -> CurrentUser:
    """Verify a bearer token and build the user context from its claims."""
    try:
        payload = jwt.decode(token, secret_key, algorithms=algorithms)
    except JWTError as e:
        logger.info("Rejected JWT: %s", e)
        raise InvalidTokenError() from e

    username = payload.get("sub") or payload.get("username")
    if not username:
        raise InvalidTokenError("JWT token has no subject")

    return CurrentUser(
        username=username,
        town=payload.get("town"),
        roles=payload.get("roles") or list(DEFAULT_ROLES),
    )


def create_access_token(
    claims: dict[str, Any],
    secret_key: str,
    algorithm: str = "HS256",
    expires_delta: timedelta = timedelta(hours=1),
) -> str:
    """Mint a token shaped like the accounts service's (tooling and tests)."""
    now = datetime.now(timezone.utc)
    to_encode = {**claims, "iat": now, "exp": now + expires_delta}
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)
