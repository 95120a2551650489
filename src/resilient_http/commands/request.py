"""Request commands -- ``get``, ``post``, ``put`` and ``delete``.

Each command resolves the active configuration, opens an
:class:`~resilient_http.client.ApiClient`, performs one call and prints the
:class:`~resilient_http.client.ApiResult`: the payload on stdout, the
status and provenance on stderr. Library errors are reported with an
``Error:`` line and the process exits with the error's ``exit_code``.

The cache lives in memory, so a single invocation never sees a cache hit
unless it is the ``demo`` command; ``--force-refresh`` is accepted for
symmetry with the library API.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional

import typer

from resilient_http.client import ApiClient, ApiResult
from resilient_http.client.response import format_api_result
from resilient_http.config import resolve_config
from resilient_http.exceptions import InvalidUsageError, ResilientHTTPError
from resilient_http.models import ClientConfig
from resilient_http.output import debug, error


def make_client(config: ClientConfig) -> ApiClient:
    """Build the client used by the commands. Tests replace this."""
    return ApiClient(config)


def resolve_from_context(ctx: typer.Context) -> ClientConfig:
    """Resolve the configuration from the options stored by the root callback."""
    obj = ctx.obj or {}
    config = resolve_config(obj.get("profile"), obj.get("overrides"))
    cache = f"ttl {config.cache.ttl_seconds:g}s" if config.cache.enabled else "off"
    debug(
        f"Config: base_url={config.base_url} timeout={config.request.timeout:g}s "
        f"retries={config.request.max_retries} cache={cache}"
    )
    return config


def run_call(ctx: typer.Context, call: Callable[[ApiClient], Awaitable[ApiResult]]) -> None:
    """Open a client, run *call* on it and print the result.

    Raises:
        typer.Exit: With the error's exit code on any library error.
    """

    async def _go() -> ApiResult:
        async with make_client(resolve_from_context(ctx)) as client:
            return await call(client)

    try:
        result = asyncio.run(_go())
    except ResilientHTTPError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code)
    format_api_result(result)


def parse_params(pairs: Optional[list[str]]) -> dict[str, str]:
    """Parse ``key=value`` strings into a dict."""
    params: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise InvalidUsageError(f"Invalid --param '{pair}', expected key=value")
        params[key] = value
    return params


def parse_payload(data: str) -> Any:
    """Parse a ``--data`` argument as JSON."""
    try:
        return json.loads(data)
    except json.JSONDecodeError as exc:
        raise InvalidUsageError(f"--data is not valid JSON: {exc}") from exc


def _usage_guard(fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    except InvalidUsageError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code)


def get_command(
    ctx: typer.Context,
    endpoint: str = typer.Argument(help="Path such as /users or /users/1."),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-P", help="Query parameter as key=value. Repeatable."
    ),
    force_refresh: bool = typer.Option(
        False, "--force-refresh", help="Bypass the response cache."
    ),
) -> None:
    """Read a resource.

    Example::

        resilient-http get /users
        resilient-http get /posts -P userId=1
    """
    params = _usage_guard(lambda: parse_params(param))
    run_call(ctx, lambda client: client.get(endpoint, params=params, force_refresh=force_refresh))


def post_command(
    ctx: typer.Context,
    endpoint: str = typer.Argument(help="Collection path such as /posts."),
    data: str = typer.Option(..., "--data", "-d", help="JSON payload."),
) -> None:
    """Create a resource from a JSON payload."""
    payload = _usage_guard(lambda: parse_payload(data))
    run_call(ctx, lambda client: client.post(endpoint, payload))


def put_command(
    ctx: typer.Context,
    endpoint: str = typer.Argument(help="Resource path such as /posts/1."),
    data: str = typer.Option(..., "--data", "-d", help="JSON payload."),
) -> None:
    """Replace a resource with a JSON payload."""
    payload = _usage_guard(lambda: parse_payload(data))
    run_call(ctx, lambda client: client.put(endpoint, payload))


def delete_command(
    ctx: typer.Context,
    endpoint: str = typer.Argument(help="Resource path such as /posts/1."),
) -> None:
    """Delete a resource."""
    run_call(ctx, lambda client: client.delete(endpoint))
