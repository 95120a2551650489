"""Typer application and CLI entry point for resilient_http.

The command line front end is a thin consumer of
:class:`~resilient_http.client.ApiClient`: the root callback turns global
flags into an :class:`~resilient_http.output.OutputManager` and a dict of
configuration overrides, and the sub-commands in
:mod:`resilient_http.commands` resolve the configuration and make calls.

:func:`main` is the console-script entry point declared in
``pyproject.toml``.
"""

from __future__ import annotations

import signal
import sys
from typing import Any, Optional

import typer

from resilient_http import __version__
from resilient_http.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="resilient-http",
    help="Call a JSON resource API with timeouts, retries and a response cache.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

from resilient_http.commands.config import config_app  # noqa: E402
from resilient_http.commands.demo import demo_command  # noqa: E402
from resilient_http.commands.request import (  # noqa: E402
    delete_command,
    get_command,
    post_command,
    put_command,
)

app.command("get")(get_command)
app.command("post")(post_command)
app.command("put")(put_command)
app.command("delete")(delete_command)
app.command("demo")(demo_command)
app.add_typer(config_app, name="config", help="Inspect configuration and profiles.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"resilient-http {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Profile name to use."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Override the profile's base URL."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Per-attempt timeout in seconds."
    ),
    retries: Optional[int] = typer.Option(
        None, "--retries", help="Retries after the first attempt."
    ),
    ttl: Optional[float] = typer.Option(
        None, "--ttl", help="Cache time-to-live in seconds."
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Disable the response cache."
    ),
    log: bool = typer.Option(
        False, "--log", help="Log cache, request and retry events to stderr."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~resilient_http.output.OutputManager` and
    stores the profile name and configuration overrides in ``ctx.obj``.
    Flags left unset are stored as ``None`` so that lower-precedence
    layers (environment, profile file) still apply.
    """
    from resilient_http.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    overrides: dict[str, Any] = {
        "base_url": base_url,
        "request": {"timeout": timeout, "max_retries": retries},
        "cache": {"ttl_seconds": ttl, "enabled": False if no_cache else None},
        "enable_logging": True if log else None,
    }

    ctx.ensure_object(dict)
    ctx.obj["profile"] = profile
    ctx.obj["overrides"] = overrides


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``resilient-http`` console script.

    Library errors are normally handled inside the commands; any that
    escape cause a clean exit with the error's ``exit_code``. Anything else
    is reported as an unexpected error with a generic failure exit.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from resilient_http.exceptions import ResilientHTTPError
        from resilient_http.output import error

        if isinstance(exc, ResilientHTTPError):
            error(str(exc))
            sys.exit(exc.exit_code)
        error(f"Unexpected error: {type(exc).__name__}: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
