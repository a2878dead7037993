"""
SSO client SDK and request authentication.

High-level flow (per request)
-----------------------------
1. `AuthExtension.require()` (or any adapter) hands the request's
   `Authorization` and `Cookie` header values to `AuthGate.authenticate`.
2. `extract_from_header` / `extract_from_cookie` locate the raw token.
3. `JWTVerifier.verify(token)`:
   - Checks structure, algorithm, expiry, issuer and audience
   - Asks the `KeyStore` for the key named by the header's `kid`
   - Verifies the RSA signature, then returns `Claims`
4. On success: claims are stored in `flask.g.sso_user`.

Client side, `SSOClient` wraps the SSO REST API. Its `*_with_refresh`
methods run through `TokenLifecycle`, which refreshes an access token that
is about to expire before the call and returns the pair to persist.

Security notes
--------------
- Never trust claims until signature verification succeeds.
- Only RS256/RS384/RS512 are accepted (no `none`, no HMAC).
- Validate `iss` and `aud` so the token was minted for *your* service.
- Unknown `kid`s never force a JWKS refetch.

Example usage
-------------

.. code-block:: python

    from flask import Flask, g

    from sso_auth import AuthConfig, AuthExtension, AuthGate

    app = Flask(__name__)
    auth = AuthExtension()
    auth.init_app(app, gate=AuthGate(AuthConfig.from_env()))

    @app.get("/me")
    @auth.require()
    async def me():
        return {"user_id": g.sso_user.user_id}
"""

# API
from .api import AppAPI, AuthAPI, BaseAPIClient, UserAPI, parse_api_error

# Client
from .client import SSOClient

# Config
from .config import AuthConfig, PublicUrls, SSOClientConfig

# Errors
from .errors import (
    AuthError,
    AuthErrorKind,
    SSOError,
    SSOErrorKind,
    auth_status_code,
    sso_status_code,
)

# Extractors
from .extractors import extract_from_cookie, extract_from_header

# Flask extension
from .flask_extension import AuthExtension, get_current_claims, get_current_token

# Gate
from .gate import AuthGate, AuthResult

# HTTP mapping
from .http_mapper import (
    USER_FRIENDLY_MESSAGES,
    HttpErrorResponse,
    get_user_friendly_message,
    map_error_to_http,
)

# Key store
from .key_store import KeyStore

# Lifecycle
from .lifecycle import TokenLifecycle, WithTokens, is_token_expired

# Models
from .models import (
    Claims,
    DeviceContext,
    Jwk,
    JwkSet,
    Platform,
    RegisterResult,
    TokenPair,
    User,
    UserSearchResult,
    UserUpdate,
    UserUpdateResult,
)

# Protocols
from .protocols import KeyResolver, Operation, TokenRefresher, TokenVerifier

# Verifier
from .verifier import JWTVerifier, JWTVerifyOptions

__all__ = [
    # Errors
    "AuthError",
    "AuthErrorKind",
    "SSOError",
    "SSOErrorKind",
    "auth_status_code",
    "sso_status_code",
    # HTTP mapping
    "HttpErrorResponse",
    "USER_FRIENDLY_MESSAGES",
    "get_user_friendly_message",
    "map_error_to_http",
    # Models
    "Claims",
    "DeviceContext",
    "Jwk",
    "JwkSet",
    "Platform",
    "RegisterResult",
    "TokenPair",
    "User",
    "UserSearchResult",
    "UserUpdate",
    "UserUpdateResult",
    # Protocols
    "KeyResolver",
    "Operation",
    "TokenRefresher",
    "TokenVerifier",
    # Config
    "AuthConfig",
    "PublicUrls",
    "SSOClientConfig",
    # Extractors
    "extract_from_cookie",
    "extract_from_header",
    # Key store
    "KeyStore",
    # Verifier
    "JWTVerifier",
    "JWTVerifyOptions",
    # Gate
    "AuthGate",
    "AuthResult",
    # Flask extension
    "AuthExtension",
    "get_current_claims",
    "get_current_token",
    # Lifecycle
    "TokenLifecycle",
    "WithTokens",
    "is_token_expired",
    # API
    "AppAPI",
    "AuthAPI",
    "BaseAPIClient",
    "UserAPI",
    "parse_api_error",
    # Client
    "SSOClient",
]
