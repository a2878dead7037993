"""
Tests for AuthGate: token source policy and end-to-end authentication.
"""

from dataclasses import replace

import pytest

import sso_auth as m


@pytest.fixture
def gate(auth_config, jwks_server) -> m.AuthGate:
    store = m.KeyStore(client_id=auth_config.client_id, transport=jwks_server.transport)
    return m.AuthGate(auth_config, key_store=store)


class RecordingVerifier:
    """Duck-typed TokenVerifier that accepts any token."""

    def __init__(self):
        self.tokens: list[str] = []

    async def verify(self, token: str) -> m.Claims:
        self.tokens.append(token)
        return m.Claims.from_payload({"sub": "u1", "user_id": "u1"})


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_valid_token_authenticates(self, gate, make_token):
        token = make_token()

        result = await gate.authenticate(f"Bearer {token}", None)

        assert result.claims.user_id == "u1"
        assert result.token == token

    @pytest.mark.asyncio
    async def test_unpublished_signing_key_is_rejected(self, gate, make_token, other_rsa_key):
        token = make_token(key=other_rsa_key)

        with pytest.raises(m.AuthError) as exc:
            await gate.authenticate(f"Bearer {token}", None)

        assert exc.value.kind is m.AuthErrorKind.SIGNATURE_INVALID

    @pytest.mark.asyncio
    async def test_foreign_audience_is_rejected(self, gate, make_token):
        token = make_token(aud="client-b")

        with pytest.raises(m.AuthError) as exc:
            await gate.authenticate(f"Bearer {token}", None)

        assert exc.value.kind is m.AuthErrorKind.CLAIMS_INVALID

    @pytest.mark.asyncio
    async def test_client_id_sent_on_jwks_fetch(self, gate, make_token, jwks_server):
        await gate.authenticate(f"Bearer {make_token()}", None)

        assert jwks_server.last_headers["X-Client-Id"] == "my-api"


class TestTokenSources:
    @pytest.mark.asyncio
    async def test_header_wins_over_cookie(self, auth_config):
        verifier = RecordingVerifier()
        gate = m.AuthGate(auth_config, verifier=verifier)

        await gate.authenticate("Bearer from-header", "access_token=from-cookie")

        assert verifier.tokens == ["from-header"]

    @pytest.mark.asyncio
    async def test_cookie_fallback(self, auth_config):
        verifier = RecordingVerifier()
        gate = m.AuthGate(auth_config, verifier=verifier)

        result = await gate.authenticate(None, "a=1; access_token=from-cookie")

        assert result.token == "from-cookie"

    @pytest.mark.asyncio
    async def test_custom_cookie_name(self, auth_config):
        verifier = RecordingVerifier()
        gate = m.AuthGate(replace(auth_config, cookie_name="sso"), verifier=verifier)

        result = await gate.authenticate("Basic xyz", "access_token=nope; sso=yes")

        assert result.token == "yes"

    @pytest.mark.asyncio
    async def test_cookie_ignored_when_disabled(self, auth_config):
        gate = m.AuthGate(replace(auth_config, cookie_auth=False), verifier=RecordingVerifier())

        with pytest.raises(m.AuthError) as exc:
            await gate.authenticate(None, "access_token=from-cookie")

        assert exc.value.kind is m.AuthErrorKind.TOKEN_NOT_FOUND

    @pytest.mark.asyncio
    async def test_no_token(self, auth_config):
        gate = m.AuthGate(auth_config, verifier=RecordingVerifier())

        with pytest.raises(m.AuthError) as exc:
            await gate.authenticate(None, None)

        assert exc.value.kind is m.AuthErrorKind.TOKEN_NOT_FOUND
        assert exc.value.status_code == 401


class TestCanActivate:
    @pytest.mark.asyncio
    async def test_true_for_valid_token(self, gate, make_token):
        assert await gate.can_activate(f"Bearer {make_token()}", None) is True

    @pytest.mark.asyncio
    async def test_false_for_auth_errors(self, gate, make_token):
        assert await gate.can_activate(None, None) is False
        assert await gate.can_activate(f"Bearer {make_token(aud='client-b')}", None) is False

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self, auth_config):
        class Broken:
            async def verify(self, token: str) -> m.Claims:
                raise RuntimeError("boom")

        gate = m.AuthGate(auth_config, verifier=Broken())

        with pytest.raises(RuntimeError):
            await gate.can_activate("Bearer x", None)


def test_gate_builds_key_store_from_config(auth_config):
    gate = m.AuthGate(replace(auth_config, jwks_cache_ttl=120.0))

    assert gate.key_store.ttl_seconds == 120.0
