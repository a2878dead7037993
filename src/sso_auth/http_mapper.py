"""Translate SDK errors into HTTP responses.

``map_error_to_http`` is what a route handler calls in its error path: it
picks the status code, a message that is safe to show end users, and the
SSO error code for clients that branch on it. Unknown exceptions become a
bare 500 so internal details never reach a response body.

Example:
    ```python
    try:
        tokens = await sso.login(email, password, device)
    except Exception as e:
        err = map_error_to_http(e)
        return jsonify(err.to_dict()), err.status_code
    ```
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Final, assert_never

import httpx

from .errors import AuthError, SSOError, SSOErrorKind

VALID_ERROR_STATUSES: Final[frozenset[int]] = frozenset({400, 401, 403, 404, 409, 500, 503})

USER_FRIENDLY_MESSAGES: Final[Mapping[int, str]] = MappingProxyType(
    {
        # Authentication (1000-1099)
        1000: "Invalid email or password",
        1001: "An account with this email already exists",
        1002: "User not found",
        1003: "Your session has expired. Please login again",
        1004: "Session not found",
        1005: "This email is already registered",
        1006: "Device not found",
        # Verification (1100-1199)
        1100: "Token has expired",
        1101: "Verification link is invalid or expired",
        1102: "Token expired. A new verification email has been sent",
        # Validation (1200-1299)
        1200: "Passwords do not match",
        1201: "No email changes detected",
        1202: "No password changes detected",
        1203: "No name changes detected",
        1204: "Client ID not allowed",
        1205: "Validation error",
        1206: "Current password is required",
        # Client management (1300-1399)
        1300: "Client not found",
        1301: "Client already exists",
        1302: "Client name cannot be empty",
        # Internal service (1500-1599)
        1500: "Failed to send verification email. Please try again",
        1501: "Failed to send password reset email. Please try again",
    }
)
"""End-user messages for the SSO API's numeric error codes."""


@dataclass(frozen=True, slots=True)
class HttpErrorResponse:
    message: str
    status_code: int
    code: str | None = None
    details: Mapping[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """JSON body: ``{"error": ..., "code": ..., "details": ...}``."""
        body: dict[str, Any] = {"error": self.message}
        if self.code is not None:
            body["code"] = self.code
        if self.details:
            body["details"] = dict(self.details)
        return body


def get_user_friendly_message(code: str | int | None, default: str) -> str:
    """Message for an SSO error code, or ``default`` when none is known."""
    if code is None:
        return default
    try:
        numeric = int(code)
    except (TypeError, ValueError):
        return default
    return USER_FRIENDLY_MESSAGES.get(numeric, default)


def map_error_to_http(error: BaseException) -> HttpErrorResponse:
    """Pick status, message and code for any exception."""
    if isinstance(error, AuthError):
        return HttpErrorResponse(
            message=error.message,
            status_code=error.status_code,
            code=error.kind.value,
        )
    if isinstance(error, SSOError):
        return _map_sso_error(error)
    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return HttpErrorResponse(message="Service temporarily unavailable", status_code=503)
    return HttpErrorResponse(message="Internal server error", status_code=500)


def _map_sso_error(error: SSOError) -> HttpErrorResponse:
    code = error.code or error.kind.value
    match error.kind:
        case SSOErrorKind.VALIDATION:
            return HttpErrorResponse(
                message=error.message or "Validation failed",
                status_code=400,
                code=code,
                details=error.details,
            )
        case SSOErrorKind.AUTHENTICATION:
            return HttpErrorResponse(
                message=get_user_friendly_message(
                    error.code, error.message or "Authentication failed"
                ),
                status_code=401,
                code=code,
            )
        case SSOErrorKind.NOT_FOUND:
            return HttpErrorResponse(
                message=get_user_friendly_message(error.code, error.message or "Resource not found"),
                status_code=404,
                code=code,
            )
        case SSOErrorKind.CONFLICT:
            return HttpErrorResponse(
                message=get_user_friendly_message(
                    error.code, error.message or "Resource already exists"
                ),
                status_code=409,
                code=code,
            )
        case SSOErrorKind.NETWORK | SSOErrorKind.TIMEOUT:
            return HttpErrorResponse(
                message="Service temporarily unavailable",
                status_code=503,
                code=code,
            )
        case SSOErrorKind.API:
            status = error.status_code if error.status_code in VALID_ERROR_STATUSES else 500
            return HttpErrorResponse(
                message=error.message or "An error occurred",
                status_code=status,
                code=code,
            )
        case _:
            assert_never(error.kind)
