"""Value objects shared by the verifier, the token lifecycle and the API client.

Every type here is a frozen dataclass. Nested mappings are wrapped in
``MappingProxyType`` so a constructed value cannot be changed afterwards;
refreshed tokens or re-verified claims always produce a new object.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Any

_EMPTY: Mapping[str, Any] = MappingProxyType({})


# ============================================================================
# JWKS
# ============================================================================


@dataclass(frozen=True, slots=True)
class Jwk:
    """One public key record from a JWKS response.

    Attributes:
        kid: Key ID, matched against the token header's ``kid``.
        kty: Key type (``"RSA"`` for the SSO server).
        alg: Declared algorithm, if published.
        use: Declared key use (``"sig"``), if published.
        params: The complete JWK object as received (``n``, ``e``, ...).
    """

    kid: str
    kty: str
    alg: str | None = None
    use: str | None = None
    params: Mapping[str, Any] = field(default_factory=lambda: _EMPTY, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Jwk:
        kid = data.get("kid")
        kty = data.get("kty")
        if not isinstance(kid, str) or not kid:
            raise ValueError("JWK is missing a string 'kid'")
        if not isinstance(kty, str) or not kty:
            raise ValueError(f"JWK {kid!r} is missing a string 'kty'")
        alg = data.get("alg")
        use = data.get("use")
        return cls(
            kid=kid,
            kty=kty,
            alg=alg if isinstance(alg, str) else None,
            use=use if isinstance(use, str) else None,
            params=MappingProxyType(dict(data)),
        )


@dataclass(frozen=True, slots=True)
class JwkSet:
    """An ordered, immutable set of keys from one JWKS fetch."""

    keys: tuple[Jwk, ...]

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for key in self.keys:
            if key.kid in seen:
                raise ValueError(f"Duplicate kid {key.kid!r} in JWKS")
            seen.add(key.kid)

    def __len__(self) -> int:
        return len(self.keys)

    def __iter__(self) -> Iterator[Jwk]:
        return iter(self.keys)

    def find(self, kid: str) -> Jwk | None:
        for key in self.keys:
            if key.kid == kid:
                return key
        return None

    def first(self) -> Jwk | None:
        return self.keys[0] if self.keys else None


# ============================================================================
# Verified claims
# ============================================================================


@dataclass(frozen=True, slots=True)
class Claims:
    """Trusted claims of a verified access token.

    Only ``JWTVerifier`` builds these, and only after the signature check
    passed. The well-known fields are typed attributes; every payload field
    (including custom ones) stays available through ``raw`` and mapping-style
    access (``claims["tenant"]``, ``claims.get("tenant")``).
    """

    sub: str
    user_id: str
    iss: str | None = None
    aud: str | tuple[str, ...] | None = None
    exp: int | float | None = None
    iat: int | float | None = None
    nbf: int | float | None = None
    email: str | None = None
    client_id: str | None = None
    device_id: str | None = None
    roles: tuple[str, ...] = ()
    raw: Mapping[str, Any] = field(default_factory=lambda: _EMPTY, repr=False)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Claims:
        """Build claims from a decoded payload.

        Raises:
            ValueError: neither ``user_id`` nor ``sub`` is a non-empty string.
        """
        sub = payload.get("sub")
        user_id = payload.get("user_id")
        if not isinstance(user_id, str) or not user_id:
            user_id = sub
        if not isinstance(user_id, str) or not user_id:
            raise ValueError("Missing required claim: user_id")

        aud = payload.get("aud")
        if isinstance(aud, list):
            aud = tuple(a for a in aud if isinstance(a, str))
        elif not isinstance(aud, str):
            aud = None

        roles = payload.get("roles")
        if isinstance(roles, str):
            roles_t: tuple[str, ...] = (roles,)
        elif isinstance(roles, list):
            roles_t = tuple(r for r in roles if isinstance(r, str))
        else:
            roles_t = ()

        return cls(
            sub=sub if isinstance(sub, str) and sub else user_id,
            user_id=user_id,
            iss=_opt_str(payload.get("iss")),
            aud=aud,
            exp=_opt_number(payload.get("exp")),
            iat=_opt_number(payload.get("iat")),
            nbf=_opt_number(payload.get("nbf")),
            email=_opt_str(payload.get("email")),
            client_id=_opt_str(payload.get("client_id")),
            device_id=_opt_str(payload.get("device_id")),
            roles=roles_t,
            raw=MappingProxyType(dict(payload)),
        )

    def __getitem__(self, key: str) -> Any:
        return self.raw[key]

    def __contains__(self, key: object) -> bool:
        return key in self.raw

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)


def _opt_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _opt_number(value: Any) -> int | float | None:
    if isinstance(value, bool):
        return None
    return value if isinstance(value, (int, float)) else None


# ============================================================================
# Tokens and device context
# ============================================================================


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO 8601 timestamp from the API into an aware datetime.

    Naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


@dataclass(frozen=True, slots=True)
class TokenPair:
    """Access/refresh token pair as issued by login, register or refresh.

    The SDK never stores these: every method that needs one takes it as a
    parameter and returns whichever pair is current afterwards. After a
    successful refresh the old refresh token is dead server-side (rotation),
    so callers must persist the returned pair.

    Attributes:
        access_token: Short-lived bearer token.
        refresh_token: Long-lived, single-use refresh token.
        expires_at: When ``access_token`` expires (timezone-aware).
        domain, path, http_only: Cookie-delivery hints for web clients.
        additional_fields: Application-specific extras from the server.
    """

    access_token: str
    refresh_token: str
    expires_at: datetime
    domain: str | None = None
    path: str | None = None
    http_only: bool | None = None
    additional_fields: Mapping[str, str] = field(default_factory=lambda: _EMPTY, repr=False)

    def __repr__(self) -> str:
        return f"TokenPair(expires_at={self.expires_at.isoformat()})"

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> TokenPair:
        """Parse the API's ``tokenData`` object (camelCase or snake_case keys)."""

        def pick(camel: str, snake: str) -> Any:
            return data.get(camel, data.get(snake))

        access = pick("accessToken", "access_token")
        refresh = pick("refreshToken", "refresh_token")
        expires = pick("expiresAt", "expires_at")
        if not isinstance(access, str) or not isinstance(refresh, str) or expires is None:
            raise ValueError("tokenData is missing accessToken, refreshToken or expiresAt")

        extra = pick("additionalFields", "additional_fields") or {}
        if not isinstance(extra, Mapping):
            raise ValueError("additionalFields must be an object")
        http_only = pick("httpOnly", "http_only")
        return cls(
            access_token=access,
            refresh_token=refresh,
            expires_at=parse_timestamp(expires),
            domain=data.get("domain"),
            path=data.get("path"),
            http_only=http_only if isinstance(http_only, bool) else None,
            additional_fields=MappingProxyType({str(k): str(v) for k, v in extra.items()}),
        )


class Platform(StrEnum):
    """Client platform, as named by the SSO API."""

    UNSPECIFIED = "PLATFORM_UNSPECIFIED"
    WEB = "PLATFORM_WEB"
    IOS = "PLATFORM_IOS"
    ANDROID = "PLATFORM_ANDROID"


@dataclass(frozen=True, slots=True)
class DeviceContext:
    """Where a request comes from; sent with every auth-affecting call.

    Build one per incoming HTTP request from the client's IP and User-Agent.
    ``version`` is the browser version on the web and the app version on
    mobile.
    """

    platform: Platform
    client_ip: str
    user_agent: str
    version: str | None = None

    def __post_init__(self) -> None:
        if not self.client_ip:
            raise ValueError("client_ip is required")
        if not self.user_agent:
            raise ValueError("user_agent is required")

    def to_payload(self) -> dict[str, str]:
        """Render the API's ``user_device_data`` object."""
        data = {
            "userAgent": self.user_agent,
            "ip": self.client_ip,
            "platform": self.platform.value,
        }
        if self.version:
            if self.platform is Platform.WEB:
                data["browserVersion"] = self.version
            elif self.platform in (Platform.IOS, Platform.ANDROID):
                data["appVersion"] = self.version
        return data


# ============================================================================
# API payloads
# ============================================================================


@dataclass(frozen=True, slots=True)
class User:
    id: str
    email: str
    name: str
    verified: bool
    updated_at: datetime | None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> User:
        updated = data.get("updatedAt", data.get("updated_at"))
        return cls(
            id=str(data.get("id", "")),
            email=str(data.get("email", "")),
            name=str(data.get("name", "")),
            verified=bool(data.get("verified", False)),
            updated_at=parse_timestamp(updated) if updated else None,
        )


@dataclass(frozen=True, slots=True)
class RegisterResult:
    user_id: str
    message: str
    tokens: TokenPair | None


@dataclass(frozen=True, slots=True)
class UserUpdate:
    """Profile fields to change; ``None`` fields are left untouched."""

    email: str | None = None
    name: str | None = None
    current_password: str | None = None
    updated_password: str | None = None

    def to_payload(self) -> dict[str, str]:
        body: dict[str, str] = {}
        if self.email:
            body["email"] = self.email
        if self.name:
            body["name"] = self.name
        if self.current_password:
            body["current_password"] = self.current_password
        if self.updated_password:
            body["updated_password"] = self.updated_password
        return body


@dataclass(frozen=True, slots=True)
class UserUpdateResult:
    email: str
    name: str
    updated_at: datetime | None


@dataclass(frozen=True, slots=True)
class UserSearchResult:
    users: tuple[User, ...]
    total_count: int
    next_page_token: str
    has_more: bool
