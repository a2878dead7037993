"""Small helpers shared by the API client."""

from __future__ import annotations

import ipaddress
import logging
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "0.0.0.0", "::1"})


def validate_public_url(url: str, field_name: str) -> None:
    """Check that end users can open ``url`` from an email.

    Unreachable-looking hosts (localhost, private IPs, single-label internal
    names) only produce a warning, so development setups still work.

    Raises:
        ValueError: If ``url`` is not an absolute http(s) URL.
    """
    try:
        parts = urlsplit(url)
        hostname = (parts.hostname or "").lower()
    except ValueError as e:
        raise ValueError(f'{field_name}: Invalid URL format "{url}"') from e

    if parts.scheme not in ("http", "https") or not hostname:
        raise ValueError(f'{field_name}: Invalid URL format "{url}"')

    if hostname in _LOCAL_HOSTS:
        logger.warning(
            '%s: Using localhost URL "%s". End users won\'t be able to open it from email links',
            field_name,
            url,
        )
        return

    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        address = None

    if address is not None:
        if address.is_private:
            logger.warning(
                '%s: Using private IP "%s". End users won\'t be able to open it from email links',
                field_name,
                url,
            )
        return

    if "." not in hostname:
        logger.warning(
            '%s: Using internal hostname "%s". Use a public domain for email links',
            field_name,
            url,
        )
