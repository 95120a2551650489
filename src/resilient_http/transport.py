"""A single deadline-bounded network call.

:class:`Transport` is the leaf of the request pipeline. It performs exactly
one HTTP exchange through a shared :class:`httpx.AsyncClient` and returns
the raw :class:`httpx.Response` whatever its status code. Retrying,
caching and status interpretation are left to the callers in
:mod:`resilient_http.retry` and :mod:`resilient_http.client`.

The deadline is wall-clock: httpx's own timeouts bound each connect/read
phase separately, so a slow trickle of bytes could otherwise keep a call
alive indefinitely. The call runs inside a scoped :func:`asyncio.timeout`
block which is disposed on every exit path, and expiry cancels only the
task's current call.
"""

from __future__ import annotations

import asyncio

import httpx

from resilient_http.exceptions import InvalidUsageError, RequestTimeout, TransportError
from resilient_http.models import RequestOptions


class Transport:
    """Performs one HTTP call per :meth:`call` invocation.

    Args:
        client: An open :class:`httpx.AsyncClient`. The transport does not
            own it; whoever created it closes it.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def call(self, url: str, options: RequestOptions, timeout: float) -> httpx.Response:
        """Send one request and return the response, whatever its status.

        Args:
            url: Absolute request URL.
            options: Method, headers, query parameters and JSON body.
            timeout: Seconds before the call is aborted.

        Returns:
            The :class:`httpx.Response` from the server.

        Raises:
            InvalidUsageError: The request cannot be built, e.g. the body
                is not JSON-serializable or the URL is malformed.
            RequestTimeout: The deadline elapsed before the call completed.
            TransportError: The call failed without producing a response.
        """
        kwargs: dict = {
            "headers": options.headers,
            "params": options.params or None,
        }
        if options.body is not None:
            kwargs["json"] = options.body

        method = options.method.value
        try:
            request = self._client.build_request(method, url, **kwargs)
        except (TypeError, ValueError, httpx.InvalidURL) as exc:
            raise InvalidUsageError(f"Cannot build request {method} {url}: {exc}") from exc

        try:
            async with asyncio.timeout(timeout):
                return await self._client.send(request)
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise RequestTimeout(f"Request timeout after {timeout:g}s: {method} {url}") from exc
        except httpx.RequestError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc
