"""The :class:`ApiClient` facade.

:class:`ApiClient` is the only component callers use. Every verb runs the
same pipeline::

    cache lookup (GET only, unless force_refresh)
      -> request interceptors
      -> retry policy -> transport
      -> status check (non-2xx raises HttpStatusError)
      -> decode body -> response interceptors
      -> cache store (GET) / invalidate resource family (POST, PUT, DELETE)
      -> ApiResult

A cache hit returns immediately with ``from_cache=True``; interceptors,
retries and the network are skipped entirely. Any stage that raises
short-circuits the rest, so a failed call never touches the cache.

See Also:
    :mod:`resilient_http.retry` for the backoff schedule and
    :mod:`resilient_http.interceptors` for the interceptor contract.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from resilient_http.cache import ResponseCache, resource_family
from resilient_http.client.response import ApiResult, error_message, extract_response_data
from resilient_http.exceptions import HttpStatusError, InvalidUsageError, ResilientHTTPError
from resilient_http.interceptors import (
    InterceptorChain,
    RequestInterceptorLike,
    ResponseInterceptorLike,
)
from resilient_http.models import ClientConfig, HTTPMethod, RequestOptions
from resilient_http.output import get_output
from resilient_http.retry import RetryPolicy
from resilient_http.transport import Transport

_JSON_HEADERS = {"Content-Type": "application/json"}


class ApiClient:
    """Asynchronous client for a JSON resource API.

    Must be used as an async context manager so that the underlying
    :class:`httpx.AsyncClient` is opened and closed.

    Args:
        config: Client configuration. Read-only for the client's lifetime.
        interceptors: Optional pre-populated interceptor chain. A new empty
            chain is created when omitted.
        cache: Optional response cache; by default one is built from
            ``config.cache``. Pass a cache to share it between clients.
        http_transport: Optional httpx transport, e.g.
            :class:`httpx.MockTransport` in tests.

    Example::

        async with ApiClient(ClientConfig(base_url="https://api.example.com")) as client:
            users = await client.get("/users")
            await client.post("/posts", {"title": "t"})
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        interceptors: Optional[InterceptorChain] = None,
        cache: Optional[ResponseCache] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._interceptors = interceptors or InterceptorChain()
        self._cache = cache if cache is not None else ResponseCache(self._config.cache)
        self._http_transport = http_transport
        self._client: Optional[httpx.AsyncClient] = None
        self._retry: Optional[RetryPolicy] = None

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def interceptors(self) -> InterceptorChain:
        return self._interceptors

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> ApiClient:
        request_config = self._config.request
        self._client = httpx.AsyncClient(
            timeout=request_config.timeout,
            verify=request_config.verify_ssl,
            follow_redirects=True,
            transport=self._http_transport,
            headers={"Accept": "application/json"},
        )
        self._retry = RetryPolicy(
            Transport(self._client),
            max_retries=request_config.max_retries,
            timeout=request_config.timeout,
            base_delay=request_config.retry_base_delay,
            on_retry=self._log_retry,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None
            self._retry = None

    # ------------------------------------------------------------------ #
    # Interceptors and cache management
    # ------------------------------------------------------------------ #

    def add_request_interceptor(self, interceptor: RequestInterceptorLike) -> None:
        """Register a request interceptor; see :class:`~resilient_http.interceptors.InterceptorChain`."""
        self._interceptors.register_request_interceptor(interceptor)

    def add_response_interceptor(self, interceptor: ResponseInterceptorLike) -> None:
        """Register a response interceptor; see :class:`~resilient_http.interceptors.InterceptorChain`."""
        self._interceptors.register_response_interceptor(interceptor)

    def get_cache_stats(self) -> dict[str, Any]:
        """Return :meth:`ResponseCache.stats() <resilient_http.cache.ResponseCache.stats>`."""
        return self._cache.stats()

    def clear_cache(self) -> None:
        """Drop every cached response."""
        self._cache.clear()
        self._log("[Cache] Cache cleared")

    def invalidate_cache(self, pattern: str) -> int:
        """Drop cached responses whose key contains *pattern*; return how many."""
        removed = self._cache.invalidate(pattern)
        self._log(f"[Cache] Invalidated cache for pattern: {pattern}")
        return removed

    # ------------------------------------------------------------------ #
    # Verbs
    # ------------------------------------------------------------------ #

    async def get(
        self,
        endpoint: str,
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        force_refresh: bool = False,
    ) -> ApiResult:
        """Read *endpoint*, serving it from the cache when possible.

        Args:
            endpoint: Path appended to ``config.base_url``.
            params: Query parameters; part of the cache key.
            headers: Extra request headers.
            force_refresh: Skip the cache lookup. The fresh result is
                still stored.
        """
        options = RequestOptions(
            method=HTTPMethod.GET,
            params=params or {},
            headers=headers or {},
            force_refresh=force_refresh,
        )
        return await self.request(HTTPMethod.GET, endpoint, options)

    async def post(self, endpoint: str, payload: Any) -> ApiResult:
        """Create a resource from *payload*, sent as JSON."""
        options = RequestOptions(method=HTTPMethod.POST, headers=dict(_JSON_HEADERS), body=payload)
        return await self.request(HTTPMethod.POST, endpoint, options)

    async def put(self, endpoint: str, payload: Any) -> ApiResult:
        """Replace the resource at *endpoint* with *payload*, sent as JSON."""
        options = RequestOptions(method=HTTPMethod.PUT, headers=dict(_JSON_HEADERS), body=payload)
        return await self.request(HTTPMethod.PUT, endpoint, options)

    async def delete(self, endpoint: str) -> ApiResult:
        """Delete the resource at *endpoint*."""
        return await self.request(HTTPMethod.DELETE, endpoint, RequestOptions(method=HTTPMethod.DELETE))

    async def request(
        self,
        method: HTTPMethod | str,
        endpoint: str,
        options: Optional[RequestOptions] = None,
    ) -> ApiResult:
        """Run the full pipeline for one call.

        Args:
            method: The verb. Overrides ``options.method``.
            endpoint: Non-empty path appended to ``config.base_url``.
            options: Headers, params, body and ``force_refresh``.

        Returns:
            The :class:`ApiResult` for the call.

        Raises:
            InvalidUsageError: *endpoint* is empty, the client is not open,
                or the request cannot be built (malformed URL, body that is
                not JSON-serializable).
            InterceptorError: An interceptor failed.
            RetryExhausted: Every attempt timed out or failed to connect.
            HttpStatusError: The server answered with a non-2xx status.
        """
        url = f"{self._config.base_url}{endpoint}"
        started = time.perf_counter()

        try:
            if not isinstance(method, HTTPMethod):
                try:
                    method = HTTPMethod(method.upper())
                except ValueError:
                    raise InvalidUsageError(f"Unsupported method: {method}") from None
            if not endpoint:
                raise InvalidUsageError("Endpoint must be a non-empty path")
            if self._retry is None:
                raise InvalidUsageError("Client not open -- use 'async with ApiClient(...)'")

            options = (options or RequestOptions()).model_copy(update={"method": method})
            cache_key = self._cache.make_key(method, _with_query(url, options.params))

            if method is HTTPMethod.GET and not options.force_refresh and self._cache.enabled:
                entry = self._cache.lookup(cache_key)
                if entry is not None:
                    self._log(f"[Cache HIT] {url}")
                    return ApiResult(data=entry.payload, from_cache=True)
                self._log(f"[Cache MISS] {url}")

            options = await self._interceptors.run_request_phase(url, options)
            self._log(f"[Request] {options.method.value} {url}")
            get_output().debug(
                f"Request options: headers={sorted(options.headers)} params={options.params}"
            )

            response = await self._retry.execute(url, options)
            if not response.is_success:
                raise HttpStatusError(
                    response.status_code,
                    error_message(response),
                    body=extract_response_data(response),
                )

            data = extract_response_data(response)
            data = await self._interceptors.run_response_phase(response, data)

            if method is HTTPMethod.GET:
                self._cache.store(cache_key, data)
            elif method.is_mutation:
                self.invalidate_cache(resource_family(endpoint))

            self._log(f"[Response] {response.status_code} {url} ({_elapsed_ms(started)}ms)")
            return ApiResult(data=data, from_cache=False, status_code=response.status_code)
        except ResilientHTTPError as exc:
            self._log(f"[Error] {url} ({_elapsed_ms(started)}ms) {exc}")
            raise

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _log(self, message: str) -> None:
        if self._config.enable_logging:
            get_output().log(message)

    def _log_retry(self, attempt: int, delay: float, error: Exception) -> None:
        max_retries = self._config.request.max_retries
        self._log(f"Retry attempt {attempt}/{max_retries} in {delay:g}s after: {error}")


def _with_query(url: str, params: dict[str, Any]) -> str:
    """Append encoded *params* to *url* so they become part of the cache key."""
    if not params:
        return url
    try:
        return str(httpx.URL(url).copy_merge_params(params))
    except (TypeError, httpx.InvalidURL) as exc:
        raise InvalidUsageError(f"Invalid URL or query parameters for {url}: {exc}") from exc


def _elapsed_ms(started: float) -> int:
    return round((time.perf_counter() - started) * 1000)
