"""Thin async wrappers over the SSO REST API."""

from .app import AppAPI
from .auth import AuthAPI
from .base import BaseAPIClient, parse_api_error
from .user import UserAPI

__all__ = [
    "AppAPI",
    "AuthAPI",
    "BaseAPIClient",
    "UserAPI",
    "parse_api_error",
]
