"""In-memory response caching for resilient_http.

This package provides :class:`ResponseCache`, a TTL-bounded store of
decoded GET payloads keyed by ``METHOD:URL``, and :func:`resource_family`,
which derives the invalidation pattern for a written endpoint.

The cache is consumed by :class:`~resilient_http.client.ApiClient` and is
controlled by the ``cache`` section of a
:class:`~resilient_http.models.ClientConfig`. Nothing is written to disk.
"""

from resilient_http.cache.cache import CacheEntry, ResponseCache, resource_family

__all__ = ["CacheEntry", "ResponseCache", "resource_family"]
