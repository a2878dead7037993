"""JWKS retrieval and caching.

``KeyStore`` fetches the identity provider's public signing keys and keeps
one cache entry per JWKS URL, so several issuers can share a store.

Cache Behavior:
    - An entry is valid while ``time.time() < expires_at``.
    - An expired entry is refetched lazily by the next caller. There is no
      background refresh and no polling.
    - A refetch replaces the whole entry; readers see the old entry or the
      new one, never a mix.
    - A failed fetch raises and leaves the previous entry as it was.

Concurrency:
    Callers on one event loop that find the same entry expired share a
    single fetch (per-URL ``asyncio.Lock``). The entry map is guarded by a
    ``threading.Lock`` so a store can also be shared by threads that each run
    their own event loop, as Flask does for async views.

Security Note:
    A longer TTL means fewer JWKS requests but a longer window before a
    rotated key is picked up. Unknown ``kid`` values do not force a refetch,
    so random key ids in forged tokens cannot make the store hammer the
    identity provider.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
import weakref
from dataclasses import dataclass
from typing import Any, Final

import httpx

from .errors import AuthError, AuthErrorKind
from .models import Jwk, JwkSet

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS: Final[float] = 3600.0
"""Default lifetime of a cached key set (one hour)."""

DEFAULT_TIMEOUT_SECONDS: Final[float] = 10.0
"""Default bound on a single JWKS request."""


@dataclass(frozen=True, slots=True)
class _CacheEntry:
    """Key set of one successful fetch and when it stops being valid.

    Attributes:
        keys: The fetched key set.
        expires_at: Unix timestamp after which the entry must be refetched.
    """

    keys: JwkSet
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


class KeyStore:
    """Fetches and caches JWKS key sets keyed by URL.

    Example:
        ```python
        store = KeyStore(ttl_seconds=600, client_id="my-api")
        key = await store.get_key("https://sso.example.com/v1/auth/.well-known/jwks.json", kid)
        ```

    Attributes:
        _ttl: Lifetime of a cache entry in seconds.
        _entries: JWKS URL -> current ``_CacheEntry``.
        _guard: Protects ``_entries`` and ``_locks``.
        _locks: Per event loop, per URL fetch locks.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        client_id: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize an empty key store.

        Args:
            ttl_seconds: How long a fetched key set stays valid.
            client_id: Sent as ``X-Client-Id`` on every JWKS request.
            timeout: Seconds before a JWKS request is abandoned.
            transport: Custom httpx transport (tests use ``httpx.MockTransport``).

        Raises:
            ValueError: If ttl_seconds or timeout is not positive.
        """
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        self._ttl = ttl_seconds
        self._client_id = client_id
        self._timeout = timeout
        self._transport = transport

        self._guard = threading.Lock()
        self._entries: dict[str, _CacheEntry] = {}
        self._locks: weakref.WeakKeyDictionary[
            asyncio.AbstractEventLoop, dict[str, asyncio.Lock]
        ] = weakref.WeakKeyDictionary()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    async def get_keys(self, source_url: str) -> JwkSet:
        """Return the key set published at ``source_url``.

        Serves the cached set while its entry is fresh, otherwise fetches,
        validates and caches a new one.

        Raises:
            AuthError: ``KEY_FETCH_FAILED`` if the request fails, times out,
                returns a non-2xx status, or the body is not a non-empty
                key collection.
        """
        entry = self._entry(source_url)
        if entry is not None and entry.is_fresh(time.time()):
            return entry.keys

        async with self._fetch_lock(source_url):
            # Another task may have refreshed the entry while we waited.
            entry = self._entry(source_url)
            if entry is not None and entry.is_fresh(time.time()):
                return entry.keys

            keys = await self._fetch(source_url)
            new_entry = _CacheEntry(keys=keys, expires_at=time.time() + self._ttl)
            with self._guard:
                self._entries[source_url] = new_entry

            logger.info(
                "JWKS refreshed from %s (%d keys, valid for %.0fs)",
                source_url,
                len(keys),
                self._ttl,
            )
            return keys

    async def get_key(self, source_url: str, kid: str) -> Jwk:
        """Return the key with id ``kid``.

        Raises:
            AuthError: ``KEY_NOT_FOUND`` when no published key matches;
                ``KEY_FETCH_FAILED`` as for ``get_keys``.
        """
        keys = await self.get_keys(source_url)
        key = keys.find(kid)
        if key is None:
            raise AuthError(
                AuthErrorKind.KEY_NOT_FOUND,
                f'JWK with kid "{kid}" not found in JWKS',
                details={"kid": kid},
            )
        return key

    async def get_first_key(self, source_url: str) -> Jwk:
        """Return the first published key.

        Only safe when the provider publishes a single active key: with
        several keys, a token without ``kid`` is checked against whichever
        key happens to be listed first.
        """
        keys = await self.get_keys(source_url)
        key = keys.first()
        if key is None:
            raise AuthError(AuthErrorKind.KEY_NOT_FOUND, "JWKS contains no keys")
        return key

    def invalidate(self, source_url: str | None = None) -> None:
        """Drop the entry for ``source_url``, or every entry when omitted."""
        with self._guard:
            if source_url is None:
                self._entries.clear()
            else:
                self._entries.pop(source_url, None)

    def clear_expired(self) -> None:
        """Drop entries whose TTL has passed."""
        now = time.time()
        with self._guard:
            for url, entry in list(self._entries.items()):
                if not entry.is_fresh(now):
                    del self._entries[url]

    def expires_at(self, source_url: str) -> float | None:
        """Expiry timestamp of the cached entry for ``source_url``, if any."""
        entry = self._entry(source_url)
        return entry.expires_at if entry is not None else None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _entry(self, source_url: str) -> _CacheEntry | None:
        with self._guard:
            return self._entries.get(source_url)

    def _fetch_lock(self, source_url: str) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        with self._guard:
            per_loop = self._locks.setdefault(loop, {})
            lock = per_loop.get(source_url)
            if lock is None:
                lock = per_loop[source_url] = asyncio.Lock()
            return lock

    async def _fetch(self, source_url: str) -> JwkSet:
        headers = {"Accept": "application/json"}
        if self._client_id:
            headers["X-Client-Id"] = self._client_id

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get(source_url, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("JWKS request to %s timed out after %ss", source_url, self._timeout)
            raise AuthError(
                AuthErrorKind.KEY_FETCH_FAILED,
                f"Failed to fetch JWKS: request timed out after {self._timeout}s",
                details={"reason": "timeout", "url": source_url},
            ) from e
        except httpx.HTTPError as e:
            logger.warning("JWKS request to %s failed: %s", source_url, e)
            raise AuthError(
                AuthErrorKind.KEY_FETCH_FAILED,
                f"Failed to fetch JWKS: {e}",
                details={"reason": "network", "url": source_url},
            ) from e

        if not response.is_success:
            logger.warning("JWKS endpoint %s answered %d", source_url, response.status_code)
            raise AuthError(
                AuthErrorKind.KEY_FETCH_FAILED,
                f"Failed to fetch JWKS: {response.status_code} {response.reason_phrase}",
                details={"upstream_status": response.status_code, "url": source_url},
            )

        try:
            return _parse_jwks(response.json())
        except ValueError as e:
            logger.warning("JWKS endpoint %s returned an invalid key set: %s", source_url, e)
            raise AuthError(
                AuthErrorKind.KEY_FETCH_FAILED,
                f"Invalid JWKS format: {e}",
                details={"reason": "format", "url": source_url},
            ) from e


def _parse_jwks(body: Any) -> JwkSet:
    """Validate a JWKS response body.

    The SSO server publishes ``{"keys": [...]}``; some deployments use
    ``"jwks"`` as the collection name, which is accepted too.

    Raises:
        ValueError: If the body is not an object with a non-empty list of
            key objects, a key lacks ``kid``/``kty``, or a ``kid`` repeats.
    """
    if not isinstance(body, dict):
        raise ValueError("response is not a JSON object")

    raw_keys = body.get("keys", body.get("jwks"))
    if not isinstance(raw_keys, list) or not raw_keys:
        raise ValueError("missing or empty keys array")
    if not all(isinstance(k, dict) for k in raw_keys):
        raise ValueError("keys array contains a non-object entry")

    return JwkSet(keys=tuple(Jwk.from_dict(k) for k in raw_keys))
