"""User profile endpoints."""

from __future__ import annotations

from typing import Any

from ..errors import SSOError, SSOErrorKind
from ..models import User, UserSearchResult, UserUpdate, UserUpdateResult, parse_timestamp
from . import routes
from .base import BaseAPIClient


class UserAPI(BaseAPIClient):
    """Profile operations; every call needs a valid access token."""

    async def get_user(self, access_token: str) -> User:
        body = await self._get(routes.USER, access_token=access_token)
        return _user(body.get("user"))

    async def get_user_by_id(self, access_token: str, user_id: str) -> User:
        body = await self._get(routes.user_by_id(user_id), access_token=access_token)
        return _user(body.get("user"))

    async def update_user(self, access_token: str, updates: UserUpdate) -> UserUpdateResult:
        """Change profile fields. Changing the password needs ``current_password``."""
        body = await self._patch(routes.USER, json=updates.to_payload(), access_token=access_token)
        updated = body.get("updatedAt")
        return UserUpdateResult(
            email=str(body.get("email", "")),
            name=str(body.get("name", "")),
            updated_at=parse_timestamp(updated) if updated else None,
        )

    async def delete_user(self, access_token: str) -> bool:
        body = await self._delete(routes.USER, access_token=access_token)
        return bool(body.get("success", False))

    async def delete_user_by_id(self, access_token: str, user_id: str) -> bool:
        body = await self._delete(routes.user_by_id(user_id), access_token=access_token)
        return bool(body.get("success", False))

    async def search_users(
        self,
        access_token: str,
        query: str,
        page_size: int | None = None,
        page_token: str | None = None,
    ) -> UserSearchResult:
        """Search users by email or name.

        Args:
            page_size: Results per page (server default 50, max 100).
            page_token: Cursor from a previous page's ``next_page_token``.
        """
        params: dict[str, Any] = {"query": query}
        if page_size:
            params["page_size"] = page_size
        if page_token:
            params["page_token"] = page_token

        body = await self._get(routes.USERS_SEARCH, params=params, access_token=access_token)
        users = body.get("users") or []
        return UserSearchResult(
            users=tuple(_user(u) for u in users),
            total_count=int(body.get("totalCount", 0)),
            next_page_token=str(body.get("nextPageToken", "")),
            has_more=bool(body.get("hasMore", False)),
        )


def _user(data: Any) -> User:
    if not isinstance(data, dict):
        raise SSOError(SSOErrorKind.API, "Response is missing user")
    return User.from_payload(data)
