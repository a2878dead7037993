"""JWT verification against keys from a JWKS endpoint.

``JWTVerifier`` decides whether a compact token is authentic and currently
valid. The checks run in a fixed order and stop at the first failure:

1. structure (three non-empty segments)
2. header, including the algorithm allowlist
3. payload (decoded but not yet trusted)
4. expiry
5. issuer
6. audience (``aud`` or ``client_id``)
7. signing key lookup via ``KeyResolver``
8. RSA signature over ``header.payload``
9. required user identifier
10. ``Claims`` returned

Expiry is checked before the signature, so an expired token is reported as
``TOKEN_EXPIRED`` whether or not its signature is valid. None of the payload
is exposed to callers until step 8 has passed.

Cryptographic primitives come from PyJWT (``jwt.algorithms.RSAAlgorithm``)
and, under it, ``cryptography``.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey
from jwt.algorithms import RSAAlgorithm
from jwt.utils import base64url_decode

from .errors import AuthError, AuthErrorKind
from .models import Claims

if TYPE_CHECKING:
    from .models import Jwk
    from .protocols import KeyResolver

logger = logging.getLogger(__name__)

_RSA_HASHES: Final[Mapping[str, Any]] = {
    "RS256": RSAAlgorithm.SHA256,
    "RS384": RSAAlgorithm.SHA384,
    "RS512": RSAAlgorithm.SHA512,
}
"""Algorithms this verifier can check: RSA PKCS#1 v1.5 only."""


@dataclass(frozen=True, slots=True)
class JWTVerifyOptions:
    """What counts as a valid token for this resource server.

    Attributes:
        jwks_url: Where the issuer publishes its signing keys.
        issuer: Expected ``iss``. ``None`` skips the check (not recommended).
        audience: Expected audience, matched against ``aud`` (string or list)
            or ``client_id``. ``None`` skips the check (not recommended).
        algorithms: Allowed ``alg`` header values. Must be a subset of
            RS256/RS384/RS512. Default: ``("RS256",)``.
        leeway: Seconds of clock skew tolerated on ``exp``. Default 0, which
            makes the expiry check an exact comparison.
        allow_kid_fallback: Verify tokens without a ``kid`` header against the
            first published key. Only safe for providers that publish a
            single key; off by default.

    Security Invariants:
        - Never allow ``none`` or HMAC algorithms for tokens signed by a
          remote identity provider.
        - Always set issuer and audience in production.
    """

    jwks_url: str
    issuer: str | None
    audience: str | None
    algorithms: tuple[str, ...] = ("RS256",)
    leeway: int = 0
    allow_kid_fallback: bool = False

    def __post_init__(self) -> None:
        if not self.algorithms:
            raise ValueError("algorithms must not be empty")
        unsupported = [a for a in self.algorithms if a not in _RSA_HASHES]
        if unsupported:
            raise ValueError(f"Unsupported algorithms: {', '.join(unsupported)}")
        if self.leeway < 0:
            raise ValueError(f"leeway must not be negative, got {self.leeway}")


class JWTVerifier:
    """Verifies RSA-signed tokens using keys resolved from a JWKS URL.

    Implements the ``TokenVerifier`` protocol. Key retrieval and caching are
    delegated to an injected ``KeyResolver`` (normally a ``KeyStore``), so
    one store can serve several verifiers.

    Example:
        ```python
        verifier = JWTVerifier(
            KeyStore(client_id="my-api"),
            JWTVerifyOptions(
                jwks_url="https://sso.example.com/v1/auth/.well-known/jwks.json",
                issuer="https://sso.example.com",
                audience="my-api",
            ),
        )

        try:
            claims = await verifier.verify(raw_token)
        except AuthError as e:
            if e.kind is AuthErrorKind.TOKEN_EXPIRED:
                ...  # ask the client to refresh
            raise
        ```

    Attributes:
        _keys: Resolver for signing keys.
        _opt: Immutable verification options.
    """

    def __init__(self, key_resolver: KeyResolver, options: JWTVerifyOptions) -> None:
        self._keys = key_resolver
        self._opt = options

    @property
    def options(self) -> JWTVerifyOptions:
        return self._opt

    async def verify(self, token: str) -> Claims:
        """Verify a compact token and return its claims.

        Raises:
            AuthError: ``TOKEN_MALFORMED``, ``TOKEN_INVALID``,
                ``TOKEN_EXPIRED``, ``CLAIMS_INVALID``, ``KEY_NOT_FOUND``,
                ``KEY_FETCH_FAILED`` or ``SIGNATURE_INVALID``. Unexpected
                failures are reported as ``TOKEN_INVALID`` with the original
                exception chained.
        """
        try:
            return await self._verify(token)
        except AuthError as e:
            logger.debug("Token rejected: %s (%s)", e.kind.value, e.message)
            raise
        except Exception as e:
            logger.debug("Token rejected: unexpected %s", type(e).__name__)
            raise AuthError(
                AuthErrorKind.TOKEN_INVALID, f"Token validation failed: {e}"
            ) from e

    async def _verify(self, token: str) -> Claims:
        # 1. Structure
        parts = token.split(".") if isinstance(token, str) else []
        if len(parts) != 3 or not all(parts):
            raise AuthError(AuthErrorKind.TOKEN_MALFORMED, "Invalid JWT format")
        header_b64, payload_b64, signature_b64 = parts

        # 2. Header
        header = _decode_segment(header_b64, "header")
        alg = header.get("alg")
        if alg not in self._opt.algorithms:
            raise AuthError(AuthErrorKind.TOKEN_INVALID, f"Unsupported algorithm: {alg}")

        # 3. Payload (untrusted until step 8)
        payload = _decode_segment(payload_b64, "payload")

        # 4. Expiry
        self._check_expiry(payload)

        # 5. Issuer
        if self._opt.issuer and payload.get("iss") != self._opt.issuer:
            raise AuthError(
                AuthErrorKind.CLAIMS_INVALID,
                f"Invalid issuer. Expected: {self._opt.issuer}, got: {payload.get('iss')}",
            )

        # 6. Audience
        if self._opt.audience and self._opt.audience not in _audiences(payload):
            raise AuthError(
                AuthErrorKind.CLAIMS_INVALID,
                f"Invalid audience. Expected: {self._opt.audience}",
            )

        # 7. Signing key
        jwk = await self._resolve_key(header)

        # 8. Signature
        signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
        signature = base64url_decode(signature_b64)
        hash_alg = RSAAlgorithm(_RSA_HASHES[alg])
        if not hash_alg.verify(signing_input, _public_key(jwk), signature):
            raise AuthError(AuthErrorKind.SIGNATURE_INVALID, "Invalid token signature")

        # 9. Claims
        try:
            return Claims.from_payload(payload)
        except ValueError as e:
            raise AuthError(AuthErrorKind.CLAIMS_INVALID, str(e)) from e

    def _check_expiry(self, payload: Mapping[str, Any]) -> None:
        exp = payload.get("exp")
        if exp is None:
            return
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise AuthError(AuthErrorKind.CLAIMS_INVALID, "Claim 'exp' must be a number")
        if exp + self._opt.leeway < time.time():
            raise AuthError(AuthErrorKind.TOKEN_EXPIRED, "Token has expired")

    async def _resolve_key(self, header: Mapping[str, Any]) -> Jwk:
        kid = header.get("kid")
        if kid is None:
            if not self._opt.allow_kid_fallback:
                raise AuthError(
                    AuthErrorKind.TOKEN_INVALID, "Token header missing required 'kid'"
                )
            return await self._keys.get_first_key(self._opt.jwks_url)
        if not isinstance(kid, str) or not kid:
            raise AuthError(AuthErrorKind.TOKEN_INVALID, "Token header 'kid' is not a string")
        return await self._keys.get_key(self._opt.jwks_url, kid)


def _decode_segment(segment: str, name: str) -> dict[str, Any]:
    """Base64url-decode and parse one JSON segment of a compact token."""
    data = json.loads(base64url_decode(segment))
    if not isinstance(data, dict):
        raise AuthError(AuthErrorKind.TOKEN_MALFORMED, f"Token {name} is not a JSON object")
    return data


def _audiences(payload: Mapping[str, Any]) -> set[str]:
    """Every value the token offers as its audience."""
    found: set[str] = set()
    aud = payload.get("aud")
    if isinstance(aud, str):
        found.add(aud)
    elif isinstance(aud, list):
        found.update(a for a in aud if isinstance(a, str))
    client_id = payload.get("client_id")
    if isinstance(client_id, str):
        found.add(client_id)
    return found


def _public_key(jwk: Jwk) -> RSAPublicKey:
    """Build an RSA public key from the JWK's modulus and exponent.

    Only ``kty``/``n``/``e`` are used, so a JWK that accidentally carries
    private parameters still yields a public key.
    """
    if jwk.kty != "RSA":
        raise AuthError(AuthErrorKind.TOKEN_INVALID, f"Unsupported key type: {jwk.kty}")
    key = RSAAlgorithm.from_jwk(
        {"kty": "RSA", "n": jwk.params.get("n"), "e": jwk.params.get("e")}
    )
    if isinstance(key, RSAPrivateKey):
        return key.public_key()
    return key
