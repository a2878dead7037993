"""Authentication endpoints: register, login, email flows, refresh, logout."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx

from ..errors import SSOError, SSOErrorKind
from ..models import RegisterResult, TokenPair
from ..utils import validate_public_url
from . import routes
from .base import BaseAPIClient

if TYPE_CHECKING:
    from ..config import SSOClientConfig
    from ..models import DeviceContext

logger = logging.getLogger(__name__)


class AuthAPI(BaseAPIClient):
    """Authentication operations of the SSO API.

    Satisfies ``TokenRefresher`` through ``refresh_tokens``, so it can back a
    ``TokenLifecycle`` directly.
    """

    def __init__(
        self,
        config: SSOClientConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(config, http_client=http_client, transport=transport)

        validate_public_url(
            config.public_urls.email_verification, "public_urls.email_verification"
        )
        validate_public_url(config.public_urls.password_reset, "public_urls.password_reset")
        self._public_urls = config.public_urls

    async def register(
        self, email: str, password: str, name: str, device: DeviceContext
    ) -> RegisterResult:
        """Create an account. The server emails a verification link."""
        body = await self._post(
            routes.AUTH_REGISTER,
            json={
                "email": email,
                "password": password,
                "name": name,
                "verification_url": self._public_urls.email_verification,
                "confirm_password_url": self._public_urls.password_reset,
                "user_device_data": device.to_payload(),
            },
        )
        token_data = body.get("tokenData")
        return RegisterResult(
            user_id=str(body.get("userId", "")),
            message=str(body.get("message", "")),
            tokens=_token_pair(token_data) if token_data else None,
        )

    async def login(self, email: str, password: str, device: DeviceContext) -> TokenPair:
        body = await self._post(
            routes.AUTH_LOGIN,
            json={
                "email": email,
                "password": password,
                "user_device_data": device.to_payload(),
            },
        )
        return _token_pair(body.get("tokenData"))

    async def verify_email(self, token: str) -> str:
        """Confirm an email address with the token from the verification link."""
        body = await self._get(routes.AUTH_VERIFY_EMAIL, params={"token": token})
        return str(body.get("message", ""))

    async def reset_password(self, email: str) -> str:
        """Ask the server to email a password reset link."""
        body = await self._post(
            routes.AUTH_RESET_PASSWORD,
            json={"email": email, "confirm_url": self._public_urls.password_reset},
        )
        return str(body.get("message", ""))

    async def change_password(self, token: str, updated_password: str) -> str:
        """Set a new password using the token from the reset link.

        Password confirmation is the frontend's job; only the new password is
        sent.
        """
        body = await self._post(
            routes.AUTH_CHANGE_PASSWORD,
            json={"token": token, "updated_password": updated_password},
        )
        return str(body.get("message", ""))

    async def refresh_tokens(self, refresh_token: str, device: DeviceContext) -> TokenPair:
        """Exchange a refresh token for a new pair; the old one stops working."""
        body = await self._post(
            routes.AUTH_REFRESH,
            json={
                "refresh_token": refresh_token,
                "user_device_data": device.to_payload(),
            },
        )
        return _token_pair(body.get("tokenData"))

    async def logout(self, access_token: str, device: DeviceContext) -> str:
        body = await self._post(
            routes.AUTH_LOGOUT,
            json={"user_device_data": device.to_payload()},
            access_token=access_token,
        )
        return str(body.get("message", ""))


def _token_pair(data: Any) -> TokenPair:
    if not isinstance(data, Mapping):
        raise SSOError(SSOErrorKind.API, "Response is missing tokenData")
    try:
        return TokenPair.from_payload(data)
    except ValueError as e:
        raise SSOError(SSOErrorKind.API, f"Invalid tokenData in response: {e}") from e
