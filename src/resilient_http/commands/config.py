"""Config commands -- inspect the resolved configuration and profiles.

Provides the ``resilient-http config`` sub-command group. Nothing here
writes to disk; profiles are edited by hand in ``config.json`` under the
directory printed by ``config show``.
"""

from __future__ import annotations

import typer

from resilient_http.exceptions import ResilientHTTPError
from resilient_http.output import error, get_output, info


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the configuration the request commands would use.

    Applies the same precedence as the request commands: command line
    flags, ``RESILIENT_HTTP_*`` environment variables, the user's profile
    file, then the built-in profile.

    Example::

        resilient-http config show
        resilient-http --profile interactive --json config show
    """
    from resilient_http.config import get_config_dir, resolve_config

    obj = ctx.obj or {}
    try:
        config = resolve_config(obj.get("profile"), obj.get("overrides"))
    except ResilientHTTPError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code)

    info(f"Config directory: {get_config_dir()}")
    get_output().format_response(config.model_dump(mode="json"))


@config_app.command("profiles")
def config_profiles() -> None:
    """List built-in and user-defined profiles."""
    from resilient_http.config import BUILTIN_PROFILES, load_profile_file

    try:
        profile_file = load_profile_file()
    except ResilientHTTPError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code)

    rows = []
    for name in sorted(set(BUILTIN_PROFILES) | set(profile_file.profiles)):
        if name in profile_file.profiles:
            source = "user (overrides built-in)" if name in BUILTIN_PROFILES else "user"
        else:
            source = "built-in"
        marker = "*" if name == (profile_file.default_profile or "default") else ""
        rows.append([name, source, marker])
    get_output().print_table(["name", "source", "default"], rows, title="Profiles")
