"""The ``demo`` command -- a scripted session against a placeholder API.

Runs a fixed sequence of calls through one client so that caching and
invalidation are visible within a single process:

1. list users, then list them again (the repeat is served from cache);
2. fetch user 1;
3. list posts, create a post, list posts again (the create purged the
   cached list, so the second read is fresh);
4. replace and delete post 1.

The client carries a :class:`~resilient_http.interceptors.RequestTimestampInterceptor`
and a :class:`~resilient_http.interceptors.ResponseMetadataInterceptor`.
A failing step is reported and the session continues; the command exits
non-zero if any step failed. A cache status table is printed at the end.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import typer

from resilient_http.client import ApiClient, ApiResult
from resilient_http.commands import request as request_commands
from resilient_http.exceptions import ResilientHTTPError
from resilient_http.exit_codes import EXIT_GENERIC_FAILURE
from resilient_http.interceptors import RequestTimestampInterceptor, ResponseMetadataInterceptor
from resilient_http.output import error, get_output, info, success, warning

Step = tuple[str, Callable[[ApiClient], Awaitable[ApiResult]]]

_NEW_POST = {"title": "My First Post", "body": "This is the content of my post", "userId": 1}
_UPDATED_POST = {"id": 1, "title": "Updated Title", "body": "Updated content", "userId": 1}

DEMO_STEPS: list[Step] = [
    ("GET users", lambda c: c.get("/users")),
    ("GET users again", lambda c: c.get("/users")),
    ("GET user #1", lambda c: c.get("/users/1")),
    ("GET posts", lambda c: c.get("/posts")),
    ("POST create post", lambda c: c.post("/posts", _NEW_POST)),
    ("GET posts after create", lambda c: c.get("/posts")),
    ("PUT update post #1", lambda c: c.put("/posts/1", _UPDATED_POST)),
    ("DELETE post #1", lambda c: c.delete("/posts/1")),
]


async def run_demo(client: ApiClient, steps: list[Step] = DEMO_STEPS) -> list[tuple[str, Any]]:
    """Run *steps* in order on an open *client*.

    Returns:
        ``(label, outcome)`` pairs where the outcome is the
        :class:`~resilient_http.client.ApiResult` or the raised error.
    """
    outcomes: list[tuple[str, Any]] = []
    for label, step in steps:
        info(f"{label}...")
        try:
            result = await step(client)
        except ResilientHTTPError as exc:
            error(f"{label} failed ({exc.kind}): {exc}")
            outcomes.append((label, exc))
            continue
        success(f"{label} ({'from cache' if result.from_cache else 'fresh'})")
        outcomes.append((label, result))
    return outcomes


def print_cache_status(stats: dict[str, Any]) -> None:
    rows = [
        [entry["key"], f"{entry['age']:.1f}s", f"{max(entry['expires_in'], 0):.0f}s"]
        for entry in stats["entries"]
    ]
    get_output().print_table(
        ["key", "age", "expires in"], rows, title=f"Cache entries: {stats['size']}"
    )


def demo_command(ctx: typer.Context) -> None:
    """Run a scripted session showing caching, invalidation and retries.

    Example::

        resilient-http --profile interactive demo
    """
    try:
        config = request_commands.resolve_from_context(ctx)
    except ResilientHTTPError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code)

    if not config.cache.enabled:
        warning("Response cache is disabled; repeated reads will not be served from cache")

    async def _go() -> tuple[list[tuple[str, Any]], dict[str, Any]]:
        async with request_commands.make_client(config) as client:
            client.add_request_interceptor(RequestTimestampInterceptor())
            client.add_response_interceptor(ResponseMetadataInterceptor())
            outcomes = await run_demo(client)
            return outcomes, client.get_cache_stats()

    outcomes, stats = asyncio.run(_go())
    print_cache_status(stats)

    failures = [label for label, outcome in outcomes if isinstance(outcome, Exception)]
    if failures:
        error(f"{len(failures)} of {len(outcomes)} steps failed: {', '.join(failures)}")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)
