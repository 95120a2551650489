"""HTTP client module for resilient_http.

Provides :class:`ApiClient`, an asynchronous facade over :mod:`httpx` that
combines a wall-clock timeout per attempt, retry with linear backoff,
request/response interceptors, an in-memory TTL cache for reads and cache
invalidation after writes.

Example::

    from resilient_http.client import ApiClient

    async with ApiClient(config) as client:
        result = await client.get("/users")
        if result.from_cache:
            ...
"""

from resilient_http.client.async_client import ApiClient
from resilient_http.client.response import ApiResult

__all__ = ["ApiClient", "ApiResult"]
