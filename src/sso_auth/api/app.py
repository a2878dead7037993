"""Client application registration."""

from __future__ import annotations

from . import routes
from .base import BaseAPIClient


class AppAPI(BaseAPIClient):
    async def register_client(self, client_name: str) -> None:
        """Register a new client application with the SSO server."""
        await self._post(routes.CLIENT_REGISTER, json={"client_name": client_name})
