"""In-memory response caching for GET requests.

:class:`ResponseCache` keeps decoded GET payloads in a plain dict keyed by
``METHOD:URL`` (for example ``GET:https://api.example.com/users``) with a
configurable time-to-live. Expired entries are not swept in the
background: :meth:`ResponseCache.lookup` drops an entry it finds past its
TTL and reports a miss. :meth:`ResponseCache.stats` only reads.
Payloads are deep-copied on store and on lookup, so no caller holds a
reference to a stored payload.

After a successful write the client purges the written resource family
with :meth:`ResponseCache.invalidate`, a substring match over keys, using
the pattern returned by :func:`resource_family`.

The dict is shared by every task using the client and is mutated without
locks; on a single event loop each insert or delete happens between
suspension points.

See Also:
    :class:`~resilient_http.models.CacheConfig` -- the Pydantic model
    that controls ``enabled`` and ``ttl_seconds``.
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from resilient_http.models import CacheConfig, HTTPMethod


@dataclass
class CacheEntry:
    """A cached payload and the clock reading when it was stored."""

    payload: Any
    captured_at: float


class ResponseCache:
    """TTL-bounded store of decoded GET payloads.

    Args:
        config: Cache configuration (``enabled`` flag and ``ttl_seconds``).
        clock: Monotonic clock returning seconds. Replaceable in tests.

    Example::

        cache = ResponseCache(CacheConfig(ttl_seconds=30))
        key = cache.make_key("GET", "https://api.example.com/users")
        cache.store(key, [{"id": 1}])
        entry = cache.lookup(key)
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or CacheConfig()
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def ttl_seconds(self) -> float:
        return self._config.ttl_seconds

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    @staticmethod
    def make_key(method: str | HTTPMethod, url: str) -> str:
        """Build the cache key for *method* and *url*."""
        if isinstance(method, HTTPMethod):
            method = method.value
        return f"{method.upper()}:{url}"

    def lookup(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for *key*, or ``None``.

        An entry older than the TTL is deleted and reported as a miss.
        Always ``None`` when caching is disabled. The returned entry holds
        a deep copy of the stored payload.
        """
        if not self._config.enabled:
            return None
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.captured_at > self._config.ttl_seconds:
            del self._entries[key]
            return None
        return CacheEntry(payload=copy.deepcopy(entry.payload), captured_at=entry.captured_at)

    def store(self, key: str, payload: Any) -> None:
        """Insert a deep copy of *payload* under *key*, stamped with the current time.

        No-op when caching is disabled.
        """
        if not self._config.enabled:
            return
        self._entries[key] = CacheEntry(payload=copy.deepcopy(payload), captured_at=self._clock())

    def invalidate(self, pattern: str) -> int:
        """Remove every entry whose key contains *pattern*.

        Returns:
            The number of entries removed.
        """
        doomed = [key for key in self._entries if pattern in key]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        """Remove all entries."""
        self._entries.clear()

    def stats(self) -> dict[str, Any]:
        """Describe the cache without modifying it.

        Returns:
            A ``dict`` with ``enabled``, ``ttl_seconds``, ``size``, ``keys``
            and ``entries``; each entry has ``key``, ``age`` and
            ``expires_in`` in seconds. ``expires_in`` is negative for an
            entry that has expired but not been looked up since.
        """
        now = self._clock()
        entries = []
        for key, entry in self._entries.items():
            age = now - entry.captured_at
            entries.append({
                "key": key,
                "age": age,
                "expires_in": self._config.ttl_seconds - age,
            })
        return {
            "enabled": self._config.enabled,
            "ttl_seconds": self._config.ttl_seconds,
            "size": len(self._entries),
            "keys": list(self._entries),
            "entries": entries,
        }


def resource_family(endpoint: str) -> str:
    """Return the invalidation pattern for a mutated *endpoint*.

    This is the first path segment: ``/posts/1`` gives ``posts``. An
    endpoint without a leading segment (``posts``, ``/``) is used as-is.
    """
    parts = endpoint.split("/")
    if len(parts) > 1 and parts[1]:
        return parts[1]
    return endpoint
