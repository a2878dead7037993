"""SSO API endpoint paths."""

from __future__ import annotations

from typing import Final
from urllib.parse import quote

# Authentication
AUTH_REGISTER: Final[str] = "/v1/auth/register"
AUTH_LOGIN: Final[str] = "/v1/auth/login"
AUTH_VERIFY_EMAIL: Final[str] = "/v1/auth/verify-email"
AUTH_RESET_PASSWORD: Final[str] = "/v1/auth/reset-password"
AUTH_CHANGE_PASSWORD: Final[str] = "/v1/auth/change-password"
AUTH_REFRESH: Final[str] = "/v1/auth/refresh"
AUTH_LOGOUT: Final[str] = "/v1/auth/logout"
AUTH_JWKS: Final[str] = "/v1/auth/.well-known/jwks.json"

# Users
USER: Final[str] = "/v1/user"
USERS_SEARCH: Final[str] = "/v1/users/search"

# Client applications
CLIENT_REGISTER: Final[str] = "/v1/clients/register"


def user_by_id(user_id: str) -> str:
    return f"{USER}/{quote(user_id, safe='')}"
