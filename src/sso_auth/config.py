"""Configuration for request authentication and the SSO API client.

Both configs are plain frozen dataclasses and can be built directly. The
``from_env`` constructors read the process environment after loading a
``.env`` file with python-dotenv, so the same application code runs locally
and in a container.

Environment variables:

=============================  ==========================================
``SSO_JWKS_URL``               JWKS endpoint (required for ``AuthConfig``)
``SSO_ISSUER``                 Expected ``iss`` (required)
``SSO_AUDIENCE``               Expected audience (required)
``SSO_CLIENT_ID``              Sent as ``X-Client-Id``
``SSO_JWKS_CACHE_TTL``         Key cache lifetime, seconds (3600)
``SSO_COOKIE_AUTH``            Accept tokens from cookies (true)
``SSO_COOKIE_NAME``            Cookie holding the token (access_token)
``SSO_TIMEOUT``                Request timeout, seconds
``SSO_ALLOW_KID_FALLBACK``     Accept tokens without ``kid`` (false)
``SSO_BASE_URL``               SSO API base URL (required for the client)
``SSO_EMAIL_VERIFICATION_URL`` Public page that handles verification links
``SSO_PASSWORD_RESET_URL``     Public page that handles reset links
=============================  ==========================================
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

from dotenv import load_dotenv

from .api.routes import AUTH_JWKS

DEFAULT_COOKIE_NAME: Final[str] = "access_token"

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True, slots=True)
class AuthConfig:
    """Settings for ``AuthGate``: where keys live and what a valid token is.

    Attributes:
        jwks_url: JWKS endpoint of the SSO server.
        issuer: Expected ``iss`` claim.
        audience: Expected audience (``aud`` or ``client_id`` claim).
        client_id: Sent as ``X-Client-Id`` when fetching keys.
        jwks_cache_ttl: Seconds a fetched key set is reused.
        cookie_auth: Fall back to the ``cookie_name`` cookie when there is no
            ``Authorization`` header.
        cookie_name: Cookie that carries the access token.
        timeout: Seconds before a JWKS request is abandoned.
        leeway: Seconds of clock skew tolerated on ``exp``.
        allow_kid_fallback: Verify tokens without ``kid`` against the first
            published key.
    """

    jwks_url: str
    issuer: str
    audience: str
    client_id: str | None = None
    jwks_cache_ttl: float = 3600.0
    cookie_auth: bool = True
    cookie_name: str = DEFAULT_COOKIE_NAME
    timeout: float = 10.0
    leeway: int = 0
    allow_kid_fallback: bool = False

    def __post_init__(self) -> None:
        for name in ("jwks_url", "issuer", "audience"):
            if not getattr(self, name):
                raise ValueError(f"{name} is required")
        if self.cookie_auth and not self.cookie_name:
            raise ValueError("cookie_name cannot be empty when cookie_auth is enabled")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AuthConfig:
        """Build from ``SSO_*`` environment variables.

        Raises:
            ValueError: If a required variable is missing or a value does
                not parse.
        """
        env = _environ(environ)
        _require(env, "SSO_JWKS_URL", "SSO_ISSUER", "SSO_AUDIENCE")
        return cls(
            jwks_url=env["SSO_JWKS_URL"],
            issuer=env["SSO_ISSUER"],
            audience=env["SSO_AUDIENCE"],
            client_id=env.get("SSO_CLIENT_ID") or None,
            jwks_cache_ttl=_float(env, "SSO_JWKS_CACHE_TTL", 3600.0),
            cookie_auth=_bool(env, "SSO_COOKIE_AUTH", True),
            cookie_name=env.get("SSO_COOKIE_NAME") or DEFAULT_COOKIE_NAME,
            timeout=_float(env, "SSO_TIMEOUT", 10.0),
            allow_kid_fallback=_bool(env, "SSO_ALLOW_KID_FALLBACK", False),
        )


@dataclass(frozen=True, slots=True)
class PublicUrls:
    """Pages end users reach from links in verification and reset emails."""

    email_verification: str
    password_reset: str


@dataclass(frozen=True, slots=True)
class SSOClientConfig:
    """Settings for ``SSOClient`` and the API classes.

    Attributes:
        base_url: SSO API root, without trailing slash.
        client_id: This application's client id (``X-Client-Id``).
        public_urls: Links embedded in emails sent by the SSO server.
        timeout: Seconds before an API request is abandoned.
    """

    base_url: str
    client_id: str
    public_urls: PublicUrls
    timeout: float = 30.0

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("base_url is required")
        if not self.client_id:
            raise ValueError("client_id is required")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @property
    def jwks_url(self) -> str:
        return f"{self.base_url}{AUTH_JWKS}"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SSOClientConfig:
        env = _environ(environ)
        _require(
            env,
            "SSO_BASE_URL",
            "SSO_CLIENT_ID",
            "SSO_EMAIL_VERIFICATION_URL",
            "SSO_PASSWORD_RESET_URL",
        )
        return cls(
            base_url=env["SSO_BASE_URL"],
            client_id=env["SSO_CLIENT_ID"],
            public_urls=PublicUrls(
                email_verification=env["SSO_EMAIL_VERIFICATION_URL"],
                password_reset=env["SSO_PASSWORD_RESET_URL"],
            ),
            timeout=_float(env, "SSO_TIMEOUT", 30.0),
        )


def _environ(environ: Mapping[str, str] | None) -> Mapping[str, str]:
    if environ is not None:
        return environ
    load_dotenv()
    return os.environ


def _require(env: Mapping[str, str], *names: str) -> None:
    missing = [n for n in names if not env.get(n)]
    if missing:
        raise ValueError(f"Missing required environment variables: {', '.join(missing)}")


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if not raw:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")
