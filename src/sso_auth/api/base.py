"""HTTP transport for the SSO API.

``BaseAPIClient`` owns every outbound request: base URL, the
``X-Client-Id`` header, bearer authentication, the timeout, and the
translation of failures into ``SSOError``. ``AuthAPI``, ``UserAPI`` and
``AppAPI`` only build request bodies and parse responses.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Final

import httpx

from ..errors import SSOError, SSOErrorKind

if TYPE_CHECKING:
    from ..config import SSOClientConfig

logger = logging.getLogger(__name__)

_VALIDATION_CODES: Final[frozenset[int]] = frozenset({1200, 1201, 1202, 1203, 1204, 1205, 1206, 1302})
_AUTHENTICATION_CODES: Final[frozenset[int]] = frozenset({1000, 1003, 1004, 1100})
_NOT_FOUND_CODES: Final[frozenset[int]] = frozenset({1002, 1006, 1101, 1300})
_CONFLICT_CODES: Final[frozenset[int]] = frozenset({1001, 1005, 1301})


def parse_api_error(status_code: int, body: Any) -> SSOError:
    """Build an ``SSOError`` from an error response.

    The SSO API answers errors with ``{"code": 1000-1599, "message": ...,
    "details": {...}}``. Known codes pick the error kind; anything else is
    an ``API`` error carrying the HTTP status.
    """
    if not isinstance(body, Mapping):
        body = {}

    raw_code = body.get("code")
    try:
        numeric = int(raw_code) if raw_code is not None else None
    except (TypeError, ValueError):
        numeric = None
    code = str(raw_code) if raw_code is not None else None

    message = body.get("message")
    if not isinstance(message, str) or not message:
        message = f"Request failed with status {status_code}"

    details = body.get("details")
    if not isinstance(details, Mapping):
        details = {}

    if numeric in _VALIDATION_CODES:
        kind = SSOErrorKind.VALIDATION
    elif numeric in _AUTHENTICATION_CODES:
        kind = SSOErrorKind.AUTHENTICATION
    elif numeric in _NOT_FOUND_CODES:
        kind = SSOErrorKind.NOT_FOUND
    elif numeric in _CONFLICT_CODES:
        kind = SSOErrorKind.CONFLICT
    else:
        return SSOError(
            SSOErrorKind.API, message, code=code, status_code=status_code, details=details
        )
    return SSOError(kind, message, code=code, details=details)


class BaseAPIClient:
    """Sends JSON requests to the SSO API.

    Attributes:
        _base_url: API root without trailing slash.
        _client_id: Sent as ``X-Client-Id``.
        _timeout: Seconds before a request is abandoned.
        _http: Shared ``httpx.AsyncClient``, if one was injected.
        _transport: Transport for per-request clients (tests).
    """

    def __init__(
        self,
        config: SSOClientConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = config.base_url.rstrip("/")
        self._client_id = config.client_id
        self._timeout = config.timeout
        self._http = http_client
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
        access_token: str | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        headers = {
            "Content-Type": "application/json",
            "X-Client-Id": self._client_id,
        }
        if access_token is not None:
            headers["Authorization"] = f"Bearer {access_token}"

        try:
            if self._http is not None:
                response = await self._http.request(
                    method, url, json=json, params=params, headers=headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(
                    timeout=self._timeout, transport=self._transport
                ) as client:
                    response = await client.request(
                        method, url, json=json, params=params, headers=headers
                    )
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out after %ss", method, path, self._timeout)
            raise SSOError(
                SSOErrorKind.TIMEOUT, f"Request timeout after {self._timeout}s"
            ) from e
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise SSOError(SSOErrorKind.NETWORK, f"Network error: {e}") from e

        body = _json_body(response)
        if not response.is_success:
            error = parse_api_error(response.status_code, body)
            logger.debug(
                "%s %s answered %d (%s)", method, path, response.status_code, error.kind.value
            )
            raise error
        return body

    async def _get(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self._request("GET", path, **kwargs)

    async def _post(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self._request("POST", path, **kwargs)

    async def _patch(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self._request("PATCH", path, **kwargs)

    async def _delete(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self._request("DELETE", path, **kwargs)


def _json_body(response: httpx.Response) -> dict[str, Any]:
    """Response body as a JSON object; empty or non-object bodies give ``{}``."""
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
