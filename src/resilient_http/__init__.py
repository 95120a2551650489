"""resilient_http -- an asyncio HTTP client for JSON resource APIs.

The package wraps :mod:`httpx` with the cross-cutting behaviour a small
front end usually re-implements by hand: a wall-clock deadline per call,
retry with linear backoff, request/response interceptors, an in-memory TTL
cache for reads, and cache invalidation after writes. All failures are
reported through one exception hierarchy.

Typical use::

    from resilient_http import ApiClient, ClientConfig

    async with ApiClient(ClientConfig(base_url="https://api.example.com")) as client:
        users = await client.get("/users")
        print(users.from_cache, users.data)

Modules:
    client: The :class:`ApiClient` facade and the :class:`ApiResult` envelope.
    transport: A single deadline-bounded network call.
    retry: The attempt loop with linear backoff.
    interceptors: Request/response transformation pipelines.
    cache: The in-memory response cache.
    models: Pydantic models shared across the package.
    config: Profile and environment resolution.
    exceptions: Exception hierarchy with error kinds and exit codes.
    output: stdout/stderr formatting with Rich support.
    app: Typer command line front end.
"""

__version__ = "0.3.0"

from resilient_http.client import ApiClient, ApiResult  # noqa: E402
from resilient_http.models import CacheConfig, ClientConfig, HTTPMethod, RequestConfig, RequestOptions  # noqa: E402

__all__ = [
    "ApiClient",
    "ApiResult",
    "CacheConfig",
    "ClientConfig",
    "HTTPMethod",
    "RequestConfig",
    "RequestOptions",
]
