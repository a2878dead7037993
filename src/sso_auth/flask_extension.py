"""Flask integration for request authentication.

Protects routes with a decorator that runs ``AuthGate`` on the current
request. Requires Flask's async support (``pip install "flask[async]"``)
because verification awaits the key store.

Security Model:
1. Read ``Authorization`` and ``Cookie`` headers from the request
2. Extract and verify the token (signature, expiry, issuer, audience)
3. Store verified claims in ``flask.g.sso_user`` and the raw token in
   ``flask.g.sso_token``
4. Convert auth errors to ``{"error": message}`` with the error's status
"""

from __future__ import annotations

import inspect
from functools import wraps
from typing import TYPE_CHECKING, Any, Final

from flask import Flask, current_app, g, jsonify, request

from .errors import AuthError, AuthErrorKind, SSOError
from .gate import AuthGate
from .http_mapper import map_error_to_http

if TYPE_CHECKING:
    from collections.abc import Callable

    from flask.typing import ResponseReturnValue

    from .models import Claims

_EXT_KEY: Final[str] = "sso_auth"
"""Flask extensions registry key for AuthExtension."""


class AuthExtension:
    """
    Flask decorator glue for SSO authentication.

    Responsibilities:
    - Pass the request's auth headers to ``AuthGate``
    - Store verified claims in ``flask.g.sso_user``
    - Convert ``AuthError`` into a JSON 401 response
    - Optionally render ``SSOError``/``AuthError`` raised anywhere in a view

    Pattern:
        auth = AuthExtension()
        auth.init_app(app, gate=AuthGate(AuthConfig.from_env()))

    Usage:
        @app.get("/me")
        @auth.require()
        async def me():
            return {"user_id": g.sso_user.user_id}
    """

    def __init__(self, gate: AuthGate | None = None) -> None:
        self._gate: AuthGate | None = gate

    @property
    def gate(self) -> AuthGate:
        if self._gate is None:
            raise RuntimeError("AuthExtension has no AuthGate; call init_app(app, gate=...)")
        return self._gate

    def init_app(
        self,
        app: Flask,
        *,
        gate: AuthGate | None = None,
        register_error_handlers: bool = True,
    ) -> None:
        """Initialize the Flask app with the AuthExtension.

        Args:
            app: The Flask application instance.
            gate: AuthGate to use. Replaces the one given to the constructor.
            register_error_handlers: Render ``AuthError`` and ``SSOError``
                raised by views as JSON via ``map_error_to_http``.
        """
        if gate is not None:
            self._gate = gate
        app.extensions[_EXT_KEY] = self

        if register_error_handlers:
            app.register_error_handler(AuthError, _render_error)
            app.register_error_handler(SSOError, _render_error)

    def require(self) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator that only lets authenticated requests through.

        Behavior:
        - Token from ``Authorization: Bearer`` first, then the configured
          cookie (when cookie auth is enabled)
        - On success: claims in ``g.sso_user``, raw token in ``g.sso_token``,
          then the view runs (sync or async)
        - On ``AuthError``: ``{"error": message}`` with the error's status
          code; the view never runs
        """

        def decorator(view: Callable[..., Any]) -> Callable[..., Any]:
            @wraps(view)
            async def wrapper(*args: Any, **kwargs: Any) -> Any:
                try:
                    result = await self.gate.authenticate(
                        request.headers.get("Authorization"),
                        request.headers.get("Cookie"),
                    )
                except AuthError as e:
                    return jsonify({"error": e.message}), e.status_code

                g.sso_user = result.claims
                g.sso_token = result.token

                rv = view(*args, **kwargs)
                if inspect.isawaitable(rv):
                    rv = await rv
                return rv

            return wrapper

        return decorator


def _render_error(error: AuthError | SSOError) -> ResponseReturnValue:
    err = map_error_to_http(error)
    current_app.logger.info("Request failed with %s: %s", err.status_code, err.message)
    return jsonify(err.to_dict()), err.status_code


def get_current_claims() -> Claims:
    """Claims of the authenticated user of the current request.

    Raises:
        AuthError: ``TOKEN_NOT_FOUND`` outside a route protected by
            ``AuthExtension.require()``.
    """
    claims = g.get("sso_user")
    if claims is None:
        raise AuthError(AuthErrorKind.TOKEN_NOT_FOUND, "Request is not authenticated")
    return claims


def get_current_token() -> str:
    """Raw access token of the current request, for forwarding downstream."""
    token = g.get("sso_token")
    if token is None:
        raise AuthError(AuthErrorKind.TOKEN_NOT_FOUND, "Request is not authenticated")
    return token
