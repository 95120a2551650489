"""Shared test fixtures for resilient_http.

Provides a scripted upstream server built on :class:`httpx.MockTransport`,
client configurations tuned for fast tests, isolated configuration
directories, and output state management. These fixtures are discovered
automatically by pytest.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Union

import httpx
import pytest

from resilient_http.models import CacheConfig, ClientConfig, RequestConfig
from resilient_http.output import OutputFormat, OutputManager, reset_output, set_output


BASE_URL = "https://api.example.com"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    A manager keeps references to the sys.stdout/sys.stderr objects that
    existed when it was built; CliRunner and capsys swap those out.
    """
    yield
    reset_output()


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, colourless PLAIN output manager."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def plain_output() -> OutputManager:
    """Install a colourless PLAIN output manager that prints diagnostics."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Scripted upstream server
# ---------------------------------------------------------------------------


Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class FakeServer:
    """Records requests and answers from per-route scripts.

    Routes are keyed by ``"METHOD /path"``. A route's script is a list of
    replies consumed in order; the last reply repeats once the list is
    exhausted. A reply is an :class:`httpx.Response`, an exception to
    raise, or a callable receiving the request.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[str, list[Reply]] = {}

    def route(self, method: str, path: str, *replies: Reply) -> None:
        self._routes[f"{method.upper()} {path}"] = list(replies)

    def json(self, method: str, path: str, data: Any, status_code: int = 200) -> None:
        self.route(method, path, httpx.Response(status_code, json=data))

    def calls(self, method: str | None = None, path: str | None = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if (method is None or r.method == method.upper())
            and (path is None or r.url.path == path)
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        script = self._routes.get(f"{request.method} {request.url.path}")
        if not script:
            return httpx.Response(404, json={"message": "no route"})
        reply = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content) if request.content else None


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def fast_config() -> ClientConfig:
    """Client config with zero backoff, two retries and a 60 s cache."""
    return ClientConfig(
        base_url=BASE_URL,
        request=RequestConfig(timeout=5, max_retries=2, retry_base_delay=0),
        cache=CacheConfig(enabled=True, ttl_seconds=60),
    )


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG_CONFIG_HOME at tmp_path and clear RESILIENT_HTTP_* variables.

    Returns:
        The directory in which ``config.json`` is looked up.
    """
    monkeypatch.setattr("resilient_http.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    for var in [
        "RESILIENT_HTTP_PROFILE",
        "RESILIENT_HTTP_BASE_URL",
        "RESILIENT_HTTP_TIMEOUT",
        "RESILIENT_HTTP_MAX_RETRIES",
        "RESILIENT_HTTP_CACHE_TTL",
        "RESILIENT_HTTP_NO_CACHE",
        "RESILIENT_HTTP_LOGGING",
    ]:
        monkeypatch.delenv(var, raising=False)
    return tmp_path / "config" / "resilient-http"
