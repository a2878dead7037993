"""Token extraction from raw request header values.

Both functions are pure: they take the header value as a string and never
touch a framework request object, so any web framework adapter can use them.
Neither raises; "no usable token" is reported as ``None`` and the caller
decides whether that is an error.

Sources:
- ``extract_from_header``: ``Authorization: Bearer <token>`` (recommended)
- ``extract_from_cookie``: a named cookie in the ``Cookie`` header (browsers)

Security Considerations:
- Bearer tokens should only be sent over HTTPS
- Cookie-based auth needs CSRF protection (SameSite, tokens)
- Never extract tokens from URL query parameters (visible in logs/history)
"""

from __future__ import annotations


def extract_from_header(value: str | None) -> str | None:
    """Return the token from an ``Authorization`` header value.

    The value must be exactly two space-separated parts, the first equal to
    ``bearer`` in any case and the second non-empty.

    Example:
        >>> extract_from_header("Bearer abc.def.ghi")
        'abc.def.ghi'
        >>> extract_from_header("Basic dXNlcjpwYXNz") is None
        True
    """
    if not value:
        return None

    parts = value.split(" ")
    if len(parts) != 2:
        return None

    scheme, token = parts
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def extract_from_cookie(value: str | None, name: str) -> str | None:
    """Return the value of cookie ``name`` from a ``Cookie`` header value.

    Pairs are separated by ``;`` and split on the first ``=``, so a cookie
    value may itself contain ``=``. Returns ``None`` if the cookie is absent
    or empty.
    """
    if not value or not name:
        return None

    for pair in value.split(";"):
        key, sep, cookie_value = pair.strip().partition("=")
        if sep and key.strip() == name:
            return cookie_value.strip() or None
    return None
