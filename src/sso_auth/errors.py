"""Authentication and SDK errors.

Two tagged error types cover every failure the library raises:

- ``AuthError``: request authentication failures (token extraction, JWKS
  retrieval, signature and claims verification). The ``kind`` tag says what
  went wrong; ``status_code`` is the recommended HTTP status.
- ``SSOError``: failures of outbound SDK calls to the SSO API (validation,
  authentication, not-found, conflict, network, timeout).

Callers branch on ``error.kind`` instead of on the exception class, and the
status code for each kind comes from a total mapping over the enum.

Security Note:
    Messages are meant for logs and for the ``{"error": message}`` body of a
    401 response. They never contain token contents or key material.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from types import MappingProxyType
from typing import Any, assert_never


class AuthErrorKind(StrEnum):
    """What went wrong while authenticating a request."""

    TOKEN_NOT_FOUND = "TOKEN_NOT_FOUND"
    TOKEN_MALFORMED = "TOKEN_MALFORMED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_INVALID = "TOKEN_INVALID"
    CLAIMS_INVALID = "CLAIMS_INVALID"
    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    KEY_NOT_FOUND = "KEY_NOT_FOUND"
    KEY_FETCH_FAILED = "KEY_FETCH_FAILED"


class SSOErrorKind(StrEnum):
    """Category of a failed SSO API call."""

    VALIDATION = "VALIDATION_ERROR"
    AUTHENTICATION = "AUTHENTICATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    NETWORK = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    API = "API_ERROR"


def auth_status_code(kind: AuthErrorKind) -> int:
    """Recommended HTTP status for an authentication failure."""
    match kind:
        case (
            AuthErrorKind.TOKEN_NOT_FOUND
            | AuthErrorKind.TOKEN_MALFORMED
            | AuthErrorKind.TOKEN_EXPIRED
            | AuthErrorKind.TOKEN_INVALID
            | AuthErrorKind.CLAIMS_INVALID
            | AuthErrorKind.SIGNATURE_INVALID
            | AuthErrorKind.KEY_NOT_FOUND
            | AuthErrorKind.KEY_FETCH_FAILED
        ):
            return 401
        case _:
            assert_never(kind)


def sso_status_code(kind: SSOErrorKind) -> int:
    """Default HTTP status for an SDK error kind.

    ``API`` errors normally carry the upstream status; 500 is only the
    fallback when none is known.
    """
    match kind:
        case SSOErrorKind.VALIDATION:
            return 400
        case SSOErrorKind.AUTHENTICATION:
            return 401
        case SSOErrorKind.NOT_FOUND:
            return 404
        case SSOErrorKind.CONFLICT:
            return 409
        case SSOErrorKind.NETWORK | SSOErrorKind.TIMEOUT:
            return 503
        case SSOErrorKind.API:
            return 500
        case _:
            assert_never(kind)


def _freeze(details: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(details or {}))


class AuthError(Exception):
    """Raised for every request authentication failure.

    Attributes:
        kind: Failure category.
        message: Human-readable reason, safe to return to clients.
        status_code: Recommended HTTP status (401 unless overridden).
        details: Optional diagnostic data for server-side logs.
    """

    def __init__(
        self,
        kind: AuthErrorKind,
        message: str,
        *,
        status_code: int | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code if status_code is not None else auth_status_code(kind)
        self.details = _freeze(details)

    def __repr__(self) -> str:
        return f"AuthError(kind={self.kind.value}, message={self.message!r})"


class SSOError(Exception):
    """Raised when an outbound SSO API call fails.

    Attributes:
        kind: Failure category.
        message: Message from the API (or a local description for
            network failures).
        code: The SSO API's numeric error code as a string, when present.
        status_code: HTTP status of the response, or the kind's default.
        details: Field-level validation errors (``{"email": ["..."]}``) or
            other structured details from the API.
    """

    def __init__(
        self,
        kind: SSOErrorKind,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code
        self.status_code = status_code if status_code is not None else sso_status_code(kind)
        self.details = _freeze(details)

    @property
    def is_network_error(self) -> bool:
        """True when the service could not be reached at all."""
        return self.kind in (SSOErrorKind.NETWORK, SSOErrorKind.TIMEOUT)

    def field_errors(self, field: str) -> list[str]:
        errors = self.details.get(field, [])
        if isinstance(errors, str):
            return [errors]
        return [e for e in errors if isinstance(e, str)]

    def has_field_error(self, field: str) -> bool:
        return field in self.details

    def __repr__(self) -> str:
        return f"SSOError(kind={self.kind.value}, code={self.code!r}, message={self.message!r})"
