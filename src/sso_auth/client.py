"""Stateless SDK facade over the SSO API.

Create one ``SSOClient`` at application startup and share it across
requests. It keeps no tokens: each call receives the caller's tokens and
the ``*_with_refresh`` variants return the pair to persist afterwards.

Example:
    ```python
    sso = SSOClient(SSOClientConfig.from_env())

    @app.get("/api/profile")
    async def profile():
        device = DeviceContext(Platform.WEB, request.remote_addr, request.user_agent.string)
        result = await sso.get_profile_with_refresh(session_tokens(), device)
        save_session_tokens(result.tokens)
        return {"email": result.data.email}
    ```
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import httpx

from .api import AppAPI, AuthAPI, UserAPI
from .lifecycle import DEFAULT_BUFFER_SECONDS, TokenLifecycle, WithTokens, is_token_expired

if TYPE_CHECKING:
    from .config import SSOClientConfig
    from .models import (
        DeviceContext,
        RegisterResult,
        TokenPair,
        User,
        UserSearchResult,
        UserUpdate,
        UserUpdateResult,
    )


class SSOClient:
    """Entry point for SSO API calls.

    Attributes:
        auth: Authentication endpoints.
        user: Profile endpoints.
        app: Client application endpoints.
        lifecycle: Refresh-before-expiry orchestration backed by ``auth``.
    """

    def __init__(
        self,
        config: SSOClientConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        refresh_buffer_seconds: float = DEFAULT_BUFFER_SECONDS,
    ) -> None:
        self._config = config
        self.auth = AuthAPI(config, http_client=http_client, transport=transport)
        self.user = UserAPI(config, http_client=http_client, transport=transport)
        self.app = AppAPI(config, http_client=http_client, transport=transport)
        self.lifecycle = TokenLifecycle(self.auth, buffer_seconds=refresh_buffer_seconds)

    @property
    def jwks_url(self) -> str:
        """JWKS endpoint of the same server, for wiring an ``AuthGate``."""
        return self._config.jwks_url

    def is_token_expired(self, expires_at: datetime) -> bool:
        return is_token_expired(expires_at, self.lifecycle.buffer_seconds)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def register(
        self, email: str, password: str, name: str, device: DeviceContext
    ) -> RegisterResult:
        return await self.auth.register(email, password, name, device)

    async def login(self, email: str, password: str, device: DeviceContext) -> TokenPair:
        return await self.auth.login(email, password, device)

    async def verify_email(self, token: str) -> str:
        return await self.auth.verify_email(token)

    async def reset_password(self, email: str) -> str:
        return await self.auth.reset_password(email)

    async def change_password(self, token: str, updated_password: str) -> str:
        return await self.auth.change_password(token, updated_password)

    async def refresh_tokens(self, refresh_token: str, device: DeviceContext) -> TokenPair:
        return await self.auth.refresh_tokens(refresh_token, device)

    async def logout(self, access_token: str, device: DeviceContext) -> str:
        return await self.auth.logout(access_token, device)

    # ------------------------------------------------------------------
    # Profile (caller handles refresh)
    # ------------------------------------------------------------------

    async def get_profile(self, access_token: str) -> User:
        return await self.user.get_user(access_token)

    async def get_profile_by_id(self, access_token: str, user_id: str) -> User:
        return await self.user.get_user_by_id(access_token, user_id)

    async def update_profile(self, access_token: str, updates: UserUpdate) -> UserUpdateResult:
        return await self.user.update_user(access_token, updates)

    async def delete_account(self, access_token: str) -> bool:
        return await self.user.delete_user(access_token)

    async def delete_account_by_id(self, access_token: str, user_id: str) -> bool:
        return await self.user.delete_user_by_id(access_token, user_id)

    async def search_users(
        self,
        access_token: str,
        query: str,
        page_size: int | None = None,
        page_token: str | None = None,
    ) -> UserSearchResult:
        return await self.user.search_users(access_token, query, page_size, page_token)

    # ------------------------------------------------------------------
    # Profile with automatic refresh
    # ------------------------------------------------------------------

    async def get_profile_with_refresh(
        self, tokens: TokenPair, device: DeviceContext
    ) -> WithTokens[User]:
        """Like ``get_profile``; always persist ``result.tokens``."""
        return await self.lifecycle.with_valid_access_token(tokens, device, self.user.get_user)

    async def get_profile_by_id_with_refresh(
        self, tokens: TokenPair, user_id: str, device: DeviceContext
    ) -> WithTokens[User]:
        async def op(access_token: str) -> User:
            return await self.user.get_user_by_id(access_token, user_id)

        return await self.lifecycle.with_valid_access_token(tokens, device, op)

    async def update_profile_with_refresh(
        self, tokens: TokenPair, updates: UserUpdate, device: DeviceContext
    ) -> WithTokens[UserUpdateResult]:
        async def op(access_token: str) -> UserUpdateResult:
            return await self.user.update_user(access_token, updates)

        return await self.lifecycle.with_valid_access_token(tokens, device, op)

    async def delete_account_with_refresh(
        self, tokens: TokenPair, device: DeviceContext
    ) -> WithTokens[bool]:
        return await self.lifecycle.with_valid_access_token(
            tokens, device, self.user.delete_user
        )

    async def delete_account_by_id_with_refresh(
        self, tokens: TokenPair, user_id: str, device: DeviceContext
    ) -> WithTokens[bool]:
        async def op(access_token: str) -> bool:
            return await self.user.delete_user_by_id(access_token, user_id)

        return await self.lifecycle.with_valid_access_token(tokens, device, op)

    async def search_users_with_refresh(
        self,
        tokens: TokenPair,
        query: str,
        device: DeviceContext,
        page_size: int | None = None,
        page_token: str | None = None,
    ) -> WithTokens[UserSearchResult]:
        async def op(access_token: str) -> UserSearchResult:
            return await self.user.search_users(access_token, query, page_size, page_token)

        return await self.lifecycle.with_valid_access_token(tokens, device, op)

    # ------------------------------------------------------------------
    # Client applications
    # ------------------------------------------------------------------

    async def register_client(self, client_name: str) -> None:
        await self.app.register_client(client_name)
