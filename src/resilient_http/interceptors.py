"""Request and response interceptors and the chain that runs them.

An interceptor is a transformation step applied to every request a client
sends or every response body it decodes:

* :class:`RequestInterceptor` -- ``transform(url, options)`` returns new
  :class:`~resilient_http.models.RequestOptions`, or ``None`` to keep the
  options it received.
* :class:`ResponseInterceptor` -- ``transform(response, data)`` returns the
  replacement payload, or :data:`UNCHANGED` to keep the current one.
  ``None`` is a real replacement value (a JSON ``null``), which is why the
  two phases use different "keep" markers.

:class:`InterceptorChain` holds both pipelines. Each runs in registration
order and each step receives the output of the previous one. ``transform``
may be a plain function or a coroutine function; plain callables passed
to the register methods are wrapped in :class:`FunctionRequestInterceptor`
or :class:`FunctionResponseInterceptor`.

Example::

    chain = InterceptorChain()
    chain.register_request_interceptor(
        lambda url, options: options.with_headers({"X-Trace": "1"})
    )
    chain.register_response_interceptor(ResponseMetadataInterceptor())
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

import httpx

from resilient_http.exceptions import InterceptorError, ResilientHTTPError
from resilient_http.models import RequestOptions


class _Unchanged:
    """Type of the :data:`UNCHANGED` sentinel."""

    _instance: Optional[_Unchanged] = None

    def __new__(cls) -> _Unchanged:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNCHANGED"

    def __bool__(self) -> bool:
        return False


UNCHANGED = _Unchanged()
"""Returned by a response interceptor that declines to replace the data."""


class RequestInterceptor(ABC):
    """A step in the request phase."""

    @abstractmethod
    def transform(self, url: str, options: RequestOptions) -> Any:
        """Return new options for *url*, or ``None`` to keep *options*.

        May be declared ``async``.
        """
        ...


class ResponseInterceptor(ABC):
    """A step in the response phase."""

    @abstractmethod
    def transform(self, response: httpx.Response, data: Any) -> Any:
        """Return the replacement payload, or :data:`UNCHANGED`.

        May be declared ``async``.
        """
        ...


class FunctionRequestInterceptor(RequestInterceptor):
    """Adapts a ``fn(url, options)`` callable to :class:`RequestInterceptor`."""

    def __init__(self, fn: Callable[[str, RequestOptions], Any]) -> None:
        self._fn = fn

    def transform(self, url: str, options: RequestOptions) -> Any:
        return self._fn(url, options)


class FunctionResponseInterceptor(ResponseInterceptor):
    """Adapts a ``fn(response, data)`` callable to :class:`ResponseInterceptor`."""

    def __init__(self, fn: Callable[[httpx.Response, Any], Any]) -> None:
        self._fn = fn

    def transform(self, response: httpx.Response, data: Any) -> Any:
        return self._fn(response, data)


class RequestTimestampInterceptor(RequestInterceptor):
    """Stamps every request with the time it entered the pipeline.

    Args:
        header: Header name to set. Defaults to ``X-Request-Time``.
    """

    def __init__(self, header: str = "X-Request-Time") -> None:
        self.header = header

    def transform(self, url: str, options: RequestOptions) -> RequestOptions:
        return options.with_headers({self.header: _utc_now_iso()})


class ResponseMetadataInterceptor(ResponseInterceptor):
    """Wraps the payload as ``{"data": ..., "metadata": {...}}``.

    The metadata records the response status, reason phrase and the time
    the response was processed.
    """

    def transform(self, response: httpx.Response, data: Any) -> dict[str, Any]:
        return {
            "data": data,
            "metadata": {
                "status": response.status_code,
                "status_text": response.reason_phrase,
                "timestamp": _utc_now_iso(),
            },
        }


RequestInterceptorLike = Union[RequestInterceptor, Callable[[str, RequestOptions], Any]]
ResponseInterceptorLike = Union[ResponseInterceptor, Callable[[httpx.Response, Any], Any]]


class InterceptorChain:
    """Two append-only, ordered interceptor pipelines."""

    def __init__(self) -> None:
        self._request: list[RequestInterceptor] = []
        self._response: list[ResponseInterceptor] = []

    @property
    def request_interceptors(self) -> list[RequestInterceptor]:
        return list(self._request)

    @property
    def response_interceptors(self) -> list[ResponseInterceptor]:
        return list(self._response)

    def register_request_interceptor(self, interceptor: RequestInterceptorLike) -> None:
        """Append *interceptor* to the request phase."""
        if not isinstance(interceptor, RequestInterceptor):
            interceptor = FunctionRequestInterceptor(interceptor)
        self._request.append(interceptor)

    def register_response_interceptor(self, interceptor: ResponseInterceptorLike) -> None:
        """Append *interceptor* to the response phase."""
        if not isinstance(interceptor, ResponseInterceptor):
            interceptor = FunctionResponseInterceptor(interceptor)
        self._response.append(interceptor)

    async def run_request_phase(self, url: str, options: RequestOptions) -> RequestOptions:
        """Fold every request interceptor over *options* in registration order.

        Raises:
            InterceptorError: An interceptor raised something other than a
                :class:`~resilient_http.exceptions.ResilientHTTPError`.
        """
        for interceptor in self._request:
            result = await _invoke("request", interceptor.transform, url, options)
            if result is None:
                continue
            if not isinstance(result, RequestOptions):
                raise InterceptorError(
                    "request",
                    TypeError(f"expected RequestOptions or None, got {type(result).__name__}"),
                )
            options = result
        return options

    async def run_response_phase(self, response: httpx.Response, data: Any) -> Any:
        """Fold every response interceptor over *data* in registration order.

        Raises:
            InterceptorError: An interceptor raised something other than a
                :class:`~resilient_http.exceptions.ResilientHTTPError`.
        """
        for interceptor in self._response:
            result = await _invoke("response", interceptor.transform, response, data)
            if result is not UNCHANGED:
                data = result
        return data


async def _invoke(phase: str, fn: Callable[..., Any], *args: Any) -> Any:
    """Call *fn*, awaiting the result when it is awaitable."""
    try:
        result = fn(*args)
        if inspect.isawaitable(result):
            result = await result
    except ResilientHTTPError:
        raise
    except Exception as exc:
        raise InterceptorError(phase, exc) from exc
    return result


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
