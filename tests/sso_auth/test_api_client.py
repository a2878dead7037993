"""
Tests for the SSO API wrappers and the SSOClient facade.
"""

import json
import logging
from datetime import UTC, datetime

import httpx
import pytest

import sso_auth as m

BASE_URL = "https://sso.test"


def _token_data(n: int = 1) -> dict:
    return {
        "accessToken": f"access-{n}",
        "refreshToken": f"refresh-{n}",
        "expiresAt": "2030-01-01T00:00:00Z",
        "domain": "example.com",
        "path": "/",
        "httpOnly": True,
    }


class FakeSSOServer:
    """Routes requests by (method, path) and records them."""

    def __init__(self):
        self.routes: dict[tuple[str, str], tuple[int, object]] = {}
        self.requests: list[httpx.Request] = []
        self.error: Exception | None = None

    def on(self, method: str, path: str, status: int = 200, body=None) -> None:
        self.routes[(method, path)] = (status, body if body is not None else {})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        status, body = self.routes.get(
            (request.method, request.url.path), (404, {"message": "no route"})
        )
        return httpx.Response(status, json=body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> dict:
        return json.loads(self.last.content)


@pytest.fixture
def server() -> FakeSSOServer:
    return FakeSSOServer()


@pytest.fixture
def config() -> m.SSOClientConfig:
    return m.SSOClientConfig(
        base_url=f"{BASE_URL}/",
        client_id="my-app",
        public_urls=m.PublicUrls(
            email_verification="https://myapp.com/verify-email",
            password_reset="https://myapp.com/reset-password",
        ),
    )


@pytest.fixture
def sso(config, server) -> m.SSOClient:
    return m.SSOClient(config, transport=httpx.MockTransport(server.handler))


class TestRequests:
    @pytest.mark.asyncio
    async def test_login_sends_device_data_and_client_id(self, sso, server, device):
        server.on("POST", "/v1/auth/login", body={"tokenData": _token_data()})

        tokens = await sso.login("u@example.com", "pw", device)

        assert tokens.access_token == "access-1"
        assert tokens.expires_at == datetime(2030, 1, 1, tzinfo=UTC)
        assert tokens.http_only is True
        assert server.last.headers["X-Client-Id"] == "my-app"
        assert server.last.headers["Content-Type"] == "application/json"
        assert "Authorization" not in server.last.headers
        assert server.last_json() == {
            "email": "u@example.com",
            "password": "pw",
            "user_device_data": {
                "userAgent": "pytest-agent/1.0",
                "ip": "203.0.113.7",
                "platform": "PLATFORM_WEB",
                "browserVersion": "Chrome/120.0",
            },
        }

    @pytest.mark.asyncio
    async def test_register_sends_public_urls(self, sso, server, device):
        server.on(
            "POST",
            "/v1/auth/register",
            body={"userId": "u1", "message": "ok", "tokenData": _token_data()},
        )

        result = await sso.register("u@example.com", "pw", "User", device)

        assert result.user_id == "u1"
        assert result.tokens.refresh_token == "refresh-1"
        body = server.last_json()
        assert body["verification_url"] == "https://myapp.com/verify-email"
        assert body["confirm_password_url"] == "https://myapp.com/reset-password"

    @pytest.mark.asyncio
    async def test_register_without_tokens(self, sso, server, device):
        server.on("POST", "/v1/auth/register", body={"userId": "u1", "message": "verify email"})

        result = await sso.register("u@example.com", "pw", "User", device)

        assert result.tokens is None

    @pytest.mark.asyncio
    async def test_verify_email_uses_query(self, sso, server):
        server.on("GET", "/v1/auth/verify-email", body={"message": "verified"})

        assert await sso.verify_email("a1b2") == "verified"
        assert server.last.url.params["token"] == "a1b2"

    @pytest.mark.asyncio
    async def test_reset_and_change_password(self, sso, server):
        server.on("POST", "/v1/auth/reset-password", body={"message": "sent"})
        server.on("POST", "/v1/auth/change-password", body={"message": "changed"})

        assert await sso.reset_password("u@example.com") == "sent"
        assert server.last_json() == {
            "email": "u@example.com",
            "confirm_url": "https://myapp.com/reset-password",
        }
        assert await sso.change_password("tok", "new-pw") == "changed"
        assert server.last_json() == {"token": "tok", "updated_password": "new-pw"}

    @pytest.mark.asyncio
    async def test_logout_sends_bearer(self, sso, server, device):
        server.on("POST", "/v1/auth/logout", body={"message": "bye"})

        assert await sso.logout("access-1", device) == "bye"
        assert server.last.headers["Authorization"] == "Bearer access-1"

    @pytest.mark.asyncio
    async def test_refresh(self, sso, server, device):
        server.on("POST", "/v1/auth/refresh", body={"tokenData": _token_data(2)})

        tokens = await sso.refresh_tokens("refresh-1", device)

        assert tokens.refresh_token == "refresh-2"
        assert server.last_json()["refresh_token"] == "refresh-1"

    @pytest.mark.asyncio
    async def test_profile_calls(self, sso, server):
        user = {"id": "u1", "email": "u@example.com", "name": "U", "verified": True}
        server.on("GET", "/v1/user", body={"user": user})
        server.on("GET", "/v1/user/u2", body={"user": {**user, "id": "u2"}})
        server.on(
            "PATCH",
            "/v1/user",
            body={"email": "new@example.com", "name": "U", "updatedAt": "2025-01-01T00:00:00Z"},
        )
        server.on("DELETE", "/v1/user", body={"success": True})
        server.on("DELETE", "/v1/user/u2", body={"success": True})

        assert (await sso.get_profile("a")).verified is True
        assert (await sso.get_profile_by_id("a", "u2")).id == "u2"

        updated = await sso.update_profile("a", m.UserUpdate(email="new@example.com"))
        assert updated.email == "new@example.com"
        assert server.last_json() == {"email": "new@example.com"}
        assert server.last.headers["Authorization"] == "Bearer a"

        assert await sso.delete_account("a") is True
        assert await sso.delete_account_by_id("a", "u2") is True

    @pytest.mark.asyncio
    async def test_search_users(self, sso, server):
        server.on(
            "GET",
            "/v1/users/search",
            body={
                "users": [{"id": "u1", "email": "a@example.com", "name": "A", "verified": False}],
                "totalCount": 1,
                "nextPageToken": "",
                "hasMore": False,
            },
        )

        result = await sso.search_users("a", "a@", page_size=10)

        assert result.total_count == 1
        assert result.users[0].email == "a@example.com"
        assert server.last.url.params["query"] == "a@"
        assert server.last.url.params["page_size"] == "10"
        assert "page_token" not in server.last.url.params

    @pytest.mark.asyncio
    async def test_register_client(self, sso, server):
        server.on("POST", "/v1/clients/register", body={})

        await sso.register_client("MyBackendService")

        assert server.last_json() == {"client_name": "MyBackendService"}


class TestErrors:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code, kind, status",
        [
            (1205, m.SSOErrorKind.VALIDATION, 400),
            (1302, m.SSOErrorKind.VALIDATION, 400),
            (1000, m.SSOErrorKind.AUTHENTICATION, 401),
            (1100, m.SSOErrorKind.AUTHENTICATION, 401),
            (1002, m.SSOErrorKind.NOT_FOUND, 404),
            (1300, m.SSOErrorKind.NOT_FOUND, 404),
            (1001, m.SSOErrorKind.CONFLICT, 409),
            (1301, m.SSOErrorKind.CONFLICT, 409),
        ],
    )
    async def test_codes_map_to_kinds(self, sso, server, device, code, kind, status):
        server.on("POST", "/v1/auth/login", status=400, body={"code": code, "message": "nope"})

        with pytest.raises(m.SSOError) as exc:
            await sso.login("u@example.com", "pw", device)

        assert exc.value.kind is kind
        assert exc.value.status_code == status
        assert exc.value.code == str(code)

    @pytest.mark.asyncio
    async def test_validation_details(self, sso, server, device):
        server.on(
            "POST",
            "/v1/auth/register",
            status=400,
            body={"code": 1205, "message": "Validation error", "details": {"email": ["bad"]}},
        )

        with pytest.raises(m.SSOError) as exc:
            await sso.register("bad", "pw", "U", device)

        assert exc.value.field_errors("email") == ["bad"]

    @pytest.mark.asyncio
    async def test_unmapped_code_keeps_status(self, sso, server):
        server.on("GET", "/v1/user", status=403, body={"code": 1999, "message": "forbidden"})

        with pytest.raises(m.SSOError) as exc:
            await sso.get_profile("a")

        assert exc.value.kind is m.SSOErrorKind.API
        assert exc.value.status_code == 403

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, config):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="<html>Bad Gateway</html>")

        sso = m.SSOClient(config, transport=httpx.MockTransport(handler))

        with pytest.raises(m.SSOError) as exc:
            await sso.get_profile("a")

        assert exc.value.kind is m.SSOErrorKind.API
        assert exc.value.status_code == 502

    @pytest.mark.asyncio
    async def test_timeout(self, sso, server):
        server.error = httpx.ConnectTimeout("Simulated timeout")

        with pytest.raises(m.SSOError) as exc:
            await sso.get_profile("a")

        assert exc.value.kind is m.SSOErrorKind.TIMEOUT
        assert exc.value.is_network_error

    @pytest.mark.asyncio
    async def test_network_error(self, sso, server):
        server.error = httpx.ConnectError("connection refused")

        with pytest.raises(m.SSOError) as exc:
            await sso.get_profile("a")

        assert exc.value.kind is m.SSOErrorKind.NETWORK

    @pytest.mark.asyncio
    async def test_missing_token_data(self, sso, server, device):
        server.on("POST", "/v1/auth/login", body={})

        with pytest.raises(m.SSOError) as exc:
            await sso.login("u@example.com", "pw", device)

        assert exc.value.kind is m.SSOErrorKind.API

    @pytest.mark.asyncio
    async def test_malformed_additional_fields(self, sso, server, device):
        server.on(
            "POST",
            "/v1/auth/login",
            body={"tokenData": {**_token_data(), "additionalFields": ["tenant"]}},
        )

        with pytest.raises(m.SSOError) as exc:
            await sso.login("u@example.com", "pw", device)

        assert exc.value.kind is m.SSOErrorKind.API


class TestWithRefresh:
    @pytest.mark.asyncio
    async def test_refreshes_expiring_tokens_before_call(self, sso, server, device, make_pair):
        server.on("POST", "/v1/auth/refresh", body={"tokenData": _token_data(2)})
        server.on("GET", "/v1/user", body={"user": {"id": "u1", "email": "e", "name": "n"}})

        result = await sso.get_profile_with_refresh(make_pair(expires_in=30), device)

        assert result.data.id == "u1"
        assert result.tokens.access_token == "access-2"
        assert [r.url.path for r in server.requests] == ["/v1/auth/refresh", "/v1/user"]
        assert server.last.headers["Authorization"] == "Bearer access-2"

    @pytest.mark.asyncio
    async def test_fresh_tokens_skip_refresh(self, sso, server, device, make_pair):
        server.on("GET", "/v1/users/search", body={"users": [], "totalCount": 0})
        tokens = make_pair(expires_in=3600)

        result = await sso.search_users_with_refresh(tokens, "x", device)

        assert result.tokens is tokens
        assert [r.url.path for r in server.requests] == ["/v1/users/search"]

    @pytest.mark.asyncio
    async def test_rejected_refresh_token(self, sso, server, device, make_pair):
        server.on("POST", "/v1/auth/refresh", status=401, body={"code": 1003, "message": "x"})

        with pytest.raises(m.SSOError) as exc:
            await sso.delete_account_with_refresh(make_pair(expires_in=0), device)

        assert exc.value.kind is m.SSOErrorKind.AUTHENTICATION
        assert [r.url.path for r in server.requests] == ["/v1/auth/refresh"]

    @pytest.mark.asyncio
    async def test_by_id_variants(self, sso, server, device, make_pair):
        server.on("GET", "/v1/user/u2", body={"user": {"id": "u2"}})
        server.on("DELETE", "/v1/user/u2", body={"success": True})
        server.on("PATCH", "/v1/user", body={"email": "e", "name": "N"})
        tokens = make_pair()

        assert (await sso.get_profile_by_id_with_refresh(tokens, "u2", device)).data.id == "u2"
        assert (await sso.delete_account_by_id_with_refresh(tokens, "u2", device)).data is True
        updated = await sso.update_profile_with_refresh(tokens, m.UserUpdate(name="N"), device)
        assert updated.data.name == "N"
        assert updated.data.updated_at is None


class TestConfig:
    def test_base_url_trailing_slash_removed(self, config):
        assert config.base_url == BASE_URL

    def test_jwks_url(self, sso):
        assert sso.jwks_url == f"{BASE_URL}/v1/auth/.well-known/jwks.json"

    def test_invalid_public_url_rejected(self, config):
        bad = m.SSOClientConfig(
            base_url=BASE_URL,
            client_id="my-app",
            public_urls=m.PublicUrls(email_verification="not a url", password_reset="x"),
        )
        with pytest.raises(ValueError):
            m.SSOClient(bad)

    def test_localhost_public_url_warns(self, caplog):
        cfg = m.SSOClientConfig(
            base_url=BASE_URL,
            client_id="my-app",
            public_urls=m.PublicUrls(
                email_verification="http://localhost:3000/verify",
                password_reset="http://10.0.0.5/reset",
            ),
        )
        with caplog.at_level(logging.WARNING, logger="sso_auth.utils"):
            m.SSOClient(cfg)

        assert "localhost" in caplog.text
        assert "private IP" in caplog.text

    def test_is_token_expired(self, sso):
        assert sso.is_token_expired(datetime(2000, 1, 1, tzinfo=UTC)) is True
