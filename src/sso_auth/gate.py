"""Framework-agnostic request authentication.

``AuthGate`` turns the raw ``Authorization`` and ``Cookie`` header values of
a request into verified claims, or an ``AuthError``. Web framework adapters
(see ``flask_extension``) only translate their request object into those
two strings and the error into a response.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import AuthError, AuthErrorKind
from .extractors import extract_from_cookie, extract_from_header
from .key_store import KeyStore
from .verifier import JWTVerifier, JWTVerifyOptions

if TYPE_CHECKING:
    from .config import AuthConfig
    from .models import Claims
    from .protocols import TokenVerifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AuthResult:
    """Verified claims plus the raw token they came from.

    The raw token is kept so handlers can forward it to downstream services.
    """

    claims: Claims
    token: str

    def __repr__(self) -> str:
        return f"AuthResult(user_id={self.claims.user_id!r})"


class AuthGate:
    """Authenticates requests from their header values.

    Token lookup order: ``Authorization: Bearer`` first, then the configured
    cookie when ``config.cookie_auth`` is on.

    Example:
        ```python
        gate = AuthGate(AuthConfig.from_env())

        result = await gate.authenticate(
            request.headers.get("Authorization"),
            request.headers.get("Cookie"),
        )
        print(result.claims.user_id)
        ```

    Attributes:
        _config: Gate settings.
        _keys: Key store shared with the default verifier.
        _verifier: Token verifier (``JWTVerifier`` unless injected).
    """

    def __init__(
        self,
        config: AuthConfig,
        *,
        key_store: KeyStore | None = None,
        verifier: TokenVerifier | None = None,
    ) -> None:
        """Wire a gate from config.

        Args:
            config: Issuer, audience, JWKS location and token sources.
            key_store: Shared key store. A new one is built from ``config``
                when omitted. Pass one explicitly to share a cache between
                several gates.
            verifier: Replaces the default ``JWTVerifier`` (tests, custom
                verification).
        """
        self._config = config
        self._keys = key_store or KeyStore(
            ttl_seconds=config.jwks_cache_ttl,
            client_id=config.client_id,
            timeout=config.timeout,
        )
        self._verifier: TokenVerifier = verifier or JWTVerifier(
            self._keys,
            JWTVerifyOptions(
                jwks_url=config.jwks_url,
                issuer=config.issuer,
                audience=config.audience,
                leeway=config.leeway,
                allow_kid_fallback=config.allow_kid_fallback,
            ),
        )

    @property
    def config(self) -> AuthConfig:
        return self._config

    @property
    def key_store(self) -> KeyStore:
        return self._keys

    def extract_token(self, authorization: str | None, cookie: str | None) -> str | None:
        """Find the candidate token without verifying it."""
        token = extract_from_header(authorization)
        if token is None and self._config.cookie_auth:
            token = extract_from_cookie(cookie, self._config.cookie_name)
        return token

    async def authenticate(self, authorization: str | None, cookie: str | None) -> AuthResult:
        """Verify the request's token and return its claims.

        Raises:
            AuthError: ``TOKEN_NOT_FOUND`` when neither source has a token,
                otherwise whatever the verifier raised.
        """
        token = self.extract_token(authorization, cookie)
        if token is None:
            raise AuthError(
                AuthErrorKind.TOKEN_NOT_FOUND, "No authentication token found in request"
            )

        claims = await self._verifier.verify(token)
        return AuthResult(claims=claims, token=token)

    async def can_activate(self, authorization: str | None, cookie: str | None) -> bool:
        """Guard-style check: ``True`` if the request authenticates."""
        try:
            await self.authenticate(authorization, cookie)
        except AuthError as e:
            logger.debug("Request not authenticated: %s", e.kind.value)
            return False
        return True
