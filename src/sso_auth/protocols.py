"""Protocol definitions for the SSO auth SDK.

Structural interfaces (PEP 544) for the seams between components:

- Token verification (``JWTVerifier`` is the real one)
- Signing-key resolution (``KeyStore`` is the real one)
- Token refresh (``AuthAPI`` is the real one)

Any object with matching methods satisfies a protocol, so tests can pass
small duck-typed doubles without inheriting from anything.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol, TypeAlias, TypeVar

if TYPE_CHECKING:
    from .models import Claims, DeviceContext, Jwk, JwkSet, TokenPair

# ============================================================================
# Type Aliases
# ============================================================================

T = TypeVar("T")

Operation: TypeAlias = Callable[[str], Awaitable[T]]
"""An authenticated SDK call: receives a valid access token, returns a result."""


# ============================================================================
# Core Protocols
# ============================================================================


class TokenVerifier(Protocol):
    """Verifies a compact token and returns its trusted claims."""

    async def verify(self, token: str) -> Claims:
        """Verify a token.

        Raises:
            AuthError: For every verification failure; ``kind`` says which.
        """
        ...


class KeyResolver(Protocol):
    """Resolves public verification keys published at a JWKS URL.

    Implementations are expected to cache; ``get_key`` is called for every
    request that carries a token.
    """

    async def get_keys(self, source_url: str) -> JwkSet: ...

    async def get_key(self, source_url: str, kid: str) -> Jwk:
        """Return the key whose ``kid`` matches.

        Raises:
            AuthError: ``KEY_NOT_FOUND`` if absent, ``KEY_FETCH_FAILED`` if
                the key set could not be retrieved.
        """
        ...

    async def get_first_key(self, source_url: str) -> Jwk:
        """Return the first published key (single-key providers only)."""
        ...


class TokenRefresher(Protocol):
    """The SSO API's refresh endpoint, as consumed by ``TokenLifecycle``."""

    async def refresh_tokens(self, refresh_token: str, device: DeviceContext) -> TokenPair:
        """Exchange a refresh token for a new pair.

        The consumed refresh token is invalidated server-side.

        Raises:
            SSOError: ``AUTHENTICATION`` for an invalid, expired or reused
                refresh token; ``NETWORK``/``TIMEOUT`` when unreachable.
        """
        ...
