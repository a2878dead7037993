"""Stateless access-token lifecycle for SDK calls.

The SDK never stores tokens. A caller hands in the current ``TokenPair``;
``TokenLifecycle`` decides whether the access token is about to expire,
refreshes it at most once, runs the operation with a usable access token and
returns the result together with whichever pair is now current. The caller
must persist that pair: after a refresh the old refresh token is dead.

Nothing about a particular user is kept on the instance, so one
``TokenLifecycle`` serves concurrent requests for different users.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Final, Generic, TypeVar

from .errors import SSOError, SSOErrorKind

if TYPE_CHECKING:
    from .models import DeviceContext, TokenPair
    from .protocols import Operation, TokenRefresher

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BUFFER_SECONDS: Final[int] = 60
"""Refresh when the access token expires within this many seconds."""


def is_token_expired(
    expires_at: datetime,
    buffer_seconds: float = DEFAULT_BUFFER_SECONDS,
    *,
    now: datetime | None = None,
) -> bool:
    """True if ``expires_at`` is less than ``buffer_seconds`` away.

    Naive datetimes are taken as UTC.
    """
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    current = now or datetime.now(UTC)
    if current.tzinfo is None:
        current = current.replace(tzinfo=UTC)
    return expires_at - current < timedelta(seconds=buffer_seconds)


@dataclass(frozen=True)
class WithTokens(Generic[T]):
    """An operation's result plus the token pair to persist afterwards."""

    data: T
    tokens: TokenPair


class TokenLifecycle:
    """Runs authenticated operations with refresh-before-expiry.

    Example:
        ```python
        lifecycle = TokenLifecycle(auth_api)
        result = await lifecycle.with_valid_access_token(
            session_tokens, device, user_api.get_user
        )
        session["tokens"] = result.tokens
        return result.data
        ```

    Attributes:
        _refresher: The SSO refresh endpoint.
        _buffer: Seconds before expiry at which a token counts as expired.
    """

    def __init__(
        self,
        refresher: TokenRefresher,
        *,
        buffer_seconds: float = DEFAULT_BUFFER_SECONDS,
    ) -> None:
        if buffer_seconds < 0:
            raise ValueError(f"buffer_seconds must not be negative, got {buffer_seconds}")
        self._refresher = refresher
        self._buffer = buffer_seconds

    @property
    def buffer_seconds(self) -> float:
        return self._buffer

    async def ensure_valid_tokens(self, tokens: TokenPair, device: DeviceContext) -> TokenPair:
        """Return ``tokens`` or, if they are about to expire, a refreshed pair.

        Raises:
            SSOError: ``NETWORK``/``TIMEOUT`` unchanged when the SSO service
                is unreachable; ``AUTHENTICATION`` for any other refresh
                failure (the user has to log in again).
        """
        if not is_token_expired(tokens.expires_at, self._buffer):
            return tokens

        try:
            refreshed = await self._refresher.refresh_tokens(tokens.refresh_token, device)
        except SSOError as e:
            if e.is_network_error:
                raise
            logger.info("Token refresh rejected: %s", e.kind.value)
            raise SSOError(
                SSOErrorKind.AUTHENTICATION,
                f"Token refresh failed: {e.message}",
                code=e.code,
                details=e.details,
            ) from e
        except Exception as e:
            logger.warning("Token refresh failed: %s", type(e).__name__)
            raise SSOError(
                SSOErrorKind.AUTHENTICATION, f"Token refresh failed: {e}"
            ) from e

        logger.info(
            "Access token refreshed (new expiry %s)", refreshed.expires_at.isoformat()
        )
        return refreshed

    async def with_valid_access_token(
        self,
        tokens: TokenPair,
        device: DeviceContext,
        operation: Operation[T],
    ) -> WithTokens[T]:
        """Run ``operation`` with a usable access token.

        At most one refresh happens per call, before the operation; the
        operation itself is never retried.
        """
        current = await self.ensure_valid_tokens(tokens, device)
        data = await operation(current.access_token)
        return WithTokens(data=data, tokens=current)
