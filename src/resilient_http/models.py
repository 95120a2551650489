"""Canonical Pydantic models shared across all resilient_http modules.

The models fall into two groups:

**Configuration models** -- read from built-in profiles, the user's
``config.json`` and environment variables by :mod:`resilient_http.config`:
    :class:`RequestConfig`, :class:`CacheConfig`, :class:`ClientConfig`
    and :class:`ProfileFile`.

**Request models** -- threaded through the request pipeline:
    :class:`HTTPMethod` and :class:`RequestOptions`.

Configuration and request options are frozen: a :class:`ClientConfig` is
set once when the client is constructed, and interceptors produce new
:class:`RequestOptions` values instead of mutating the one they receive.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration ---


class RequestConfig(BaseModel):
    """HTTP request settings applied to every call made by a client."""

    model_config = ConfigDict(frozen=True)

    timeout: float = Field(default=10.0, gt=0, description="Wall-clock timeout per attempt in seconds")
    max_retries: int = Field(default=2, ge=0, description="Retries after the first attempt")
    retry_base_delay: float = Field(
        default=1.0, ge=0, description="Backoff unit; attempt n waits n * retry_base_delay seconds"
    )
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class CacheConfig(BaseModel):
    """In-memory response cache settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Enable response caching for GET requests")
    ttl_seconds: float = Field(default=60.0, ge=0, description="Cache TTL in seconds")


class ClientConfig(BaseModel):
    """Complete configuration of an :class:`~resilient_http.client.ApiClient`.

    Example::

        ClientConfig(
            base_url="https://jsonplaceholder.typicode.com",
            request=RequestConfig(timeout=5, max_retries=2),
            cache=CacheConfig(ttl_seconds=30),
            enable_logging=True,
        )
    """

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(default="", description="Prefix joined to every endpoint")
    request: RequestConfig = Field(default_factory=RequestConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    enable_logging: bool = Field(default=False, description="Log pipeline events to stderr")


class ProfileFile(BaseModel):
    """Shape of the user's ``config.json``.

    ``profiles`` maps a profile name to a partial :class:`ClientConfig`
    dict; unspecified fields fall back to the built-in profile of the same
    name, or to ``default``.
    """

    default_profile: Optional[str] = None
    profiles: dict[str, dict[str, Any]] = Field(default_factory=dict)


# --- Requests ---


class HTTPMethod(str, enum.Enum):
    """The four verbs the client issues.

    ``GET`` reads and is the only cacheable verb; ``POST``, ``PUT`` and
    ``DELETE`` create, replace and delete, and invalidate cached reads of
    the same resource family.
    """

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    @property
    def is_mutation(self) -> bool:
        return self is not HTTPMethod.GET


class RequestOptions(BaseModel):
    """Options for a single request, passed through the interceptor chain.

    Instances are frozen. Interceptors that need to change a request
    return an updated copy, typically via :meth:`with_headers` or
    :meth:`with_params`.
    """

    model_config = ConfigDict(frozen=True)

    method: HTTPMethod = HTTPMethod.GET
    headers: dict[str, str] = Field(default_factory=dict)
    params: dict[str, Any] = Field(default_factory=dict)
    body: Any = None
    force_refresh: bool = False

    def with_headers(self, headers: dict[str, str]) -> RequestOptions:
        """Return a copy whose headers are updated with *headers*."""
        return self.model_copy(update={"headers": {**self.headers, **headers}})

    def with_params(self, params: dict[str, Any]) -> RequestOptions:
        """Return a copy whose query parameters are updated with *params*."""
        return self.model_copy(update={"params": {**self.params, **params}})
