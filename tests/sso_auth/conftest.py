import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from flask import Flask
from jwt.algorithms import RSAAlgorithm

from sso_auth import AuthConfig, DeviceContext, Platform, TokenPair

JWKS_URL = "https://sso.test/v1/auth/.well-known/jwks.json"
ISSUER = "https://issuer"
AUDIENCE = "client-a"


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key() -> rsa.RSAPrivateKey:
    """A key that is never published at the JWKS URL."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def public_jwk(private_key: rsa.RSAPrivateKey, kid: str) -> dict[str, Any]:
    jwk = RSAAlgorithm.to_jwk(private_key.public_key(), as_dict=True)
    jwk.update({"kid": kid, "alg": "RS256", "use": "sig"})
    return jwk


@pytest.fixture
def make_jwk():
    return public_jwk


@pytest.fixture
def make_token(rsa_key: rsa.RSAPrivateKey):
    """
    Factory fixture that returns a function.

    Usage in tests:
        token = make_token(aud="client-b")
        token = make_token(key=other_rsa_key)
        token = make_token(kid=None)  # no kid header
    """

    def _make(
        *,
        key: rsa.RSAPrivateKey | None = None,
        kid: str | None = "k1",
        algorithm: str = "RS256",
        **overrides: Any,
    ) -> str:
        payload: dict[str, Any] = {
            "sub": "u1",
            "iss": ISSUER,
            "aud": AUDIENCE,
            "user_id": "u1",
            "exp": int(time.time()) + 3600,
        }
        payload.update(overrides)
        payload = {k: v for k, v in payload.items() if v is not None}
        headers = {"kid": kid} if kid is not None else None
        return jwt.encode(payload, key or rsa_key, algorithm=algorithm, headers=headers)

    return _make


class FakeJwksServer:
    """
    Serves a JWKS document through httpx.MockTransport.
    Counts requests and records the last request's headers.
    """

    def __init__(self, keys: list[dict[str, Any]]):
        self.keys = keys
        self.status_code = 200
        self.body: Any = None
        self.error: Exception | None = None
        self.calls = 0
        self.last_headers: httpx.Headers | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        self.last_headers = request.headers
        if self.error is not None:
            raise self.error
        body = self.body if self.body is not None else {"keys": self.keys}
        return httpx.Response(self.status_code, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def jwks_server(rsa_key: rsa.RSAPrivateKey) -> FakeJwksServer:
    return FakeJwksServer([public_jwk(rsa_key, "k1")])


@pytest.fixture
def auth_config() -> AuthConfig:
    return AuthConfig(jwks_url=JWKS_URL, issuer=ISSUER, audience=AUDIENCE, client_id="my-api")


@pytest.fixture()
def app():
    app = Flask(__name__)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def device() -> DeviceContext:
    return DeviceContext(Platform.WEB, "203.0.113.7", "pytest-agent/1.0", "Chrome/120.0")


@pytest.fixture
def make_pair() -> Callable[..., TokenPair]:
    def _make(*, expires_in: float = 3600, access: str = "access-1", refresh: str = "refresh-1"):
        return TokenPair(
            access_token=access,
            refresh_token=refresh,
            expires_at=datetime.now(UTC) + timedelta(seconds=expires_in),
        )

    return _make
