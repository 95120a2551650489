"""Configuration resolution with built-in profiles, a user file and env overrides.

A :class:`~resilient_http.models.ClientConfig` is assembled from layers,
lowest precedence first:

1. Model defaults.
2. A built-in profile from :data:`BUILTIN_PROFILES` (``default`` or
   ``interactive``).
3. The user's profile of the same name in ``config.json`` under the XDG
   config directory (see :func:`get_config_dir`).
4. ``RESILIENT_HTTP_*`` environment variables.
5. Explicit overrides passed by the caller (the command line flags).

Nested sections (``request``, ``cache``) are merged key by key, so a layer
only needs to name the fields it changes. The result is validated once;
any problem surfaces as :class:`~resilient_http.exceptions.ConfigError`.
"""

from __future__ import annotations

import json
import os
import platform
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from resilient_http.exceptions import ConfigError
from resilient_http.models import ClientConfig, ProfileFile

_APP_NAME = "resilient-http"
_CONFIG_FILENAME = "config.json"
_ENV_PREFIX = "RESILIENT_HTTP_"

DEMO_BASE_URL = "https://jsonplaceholder.typicode.com"

BUILTIN_PROFILES: dict[str, dict[str, Any]] = {
    "default": {
        "base_url": DEMO_BASE_URL,
        "cache": {"ttl_seconds": 60},
    },
    "interactive": {
        "base_url": DEMO_BASE_URL,
        "cache": {"ttl_seconds": 30},
        "enable_logging": True,
    },
}

_TRUTHY = {"1", "true", "yes", "on"}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True on Linux/BSD, where the XDG Base Directory spec applies."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_config_dir() -> Path:
    """Return the configuration directory. It is not created.

    On Linux/BSD: ``$XDG_CONFIG_HOME/resilient-http/`` (default
    ``~/.config/resilient-http/``). Elsewhere: ``~/.resilient-http/``.
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_CONFIG_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".config"
        return base / _APP_NAME
    return Path.home() / f".{_APP_NAME}"


def config_file_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


# --- User profiles ---


def load_profile_file(path: Optional[Path] = None) -> ProfileFile:
    """Load the user's profile file.

    Args:
        path: Explicit file to read. Defaults to :func:`config_file_path`.

    Returns:
        The parsed :class:`~resilient_http.models.ProfileFile`, or an empty
        one when the file does not exist.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    path = path or config_file_path()
    if not path.is_file():
        return ProfileFile()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ProfileFile.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config file at {path}: {exc}") from exc


def list_profiles(profile_file: Optional[ProfileFile] = None) -> list[str]:
    """Return built-in and user profile names, sorted."""
    if profile_file is None:
        profile_file = load_profile_file()
    return sorted(set(BUILTIN_PROFILES) | set(profile_file.profiles))


# --- Precedence resolution ---


def resolve_config(
    profile: Optional[str] = None,
    overrides: Optional[dict[str, Any]] = None,
    profile_file: Optional[ProfileFile] = None,
) -> ClientConfig:
    """Resolve the effective client configuration.

    Profile name precedence: *profile* argument, ``RESILIENT_HTTP_PROFILE``,
    the file's ``default_profile``, then ``default``.

    Args:
        profile: Profile name chosen by the caller.
        overrides: Partial config dict with the highest precedence. ``None``
            values are ignored so unset command line flags fall through.
        profile_file: Pre-loaded user profiles; read from disk when omitted.

    Raises:
        ConfigError: Unknown profile name or invalid resulting values.
    """
    if profile_file is None:
        profile_file = load_profile_file()
    name = (
        profile
        or os.environ.get(f"{_ENV_PREFIX}PROFILE")
        or profile_file.default_profile
        or "default"
    )

    if name not in BUILTIN_PROFILES and name not in profile_file.profiles:
        raise ConfigError(
            f"Unknown profile '{name}'. Available: {', '.join(list_profiles(profile_file))}"
        )

    merged: dict[str, Any] = {}
    for layer in (
        BUILTIN_PROFILES.get(name, BUILTIN_PROFILES["default"]),
        profile_file.profiles.get(name, {}),
        _env_layer(),
        _drop_none(overrides or {}),
    ):
        merged = _deep_merge(merged, layer)

    try:
        return ClientConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration for profile '{name}': {exc}") from exc


def _env_layer() -> dict[str, Any]:
    """Collect overrides from ``RESILIENT_HTTP_*`` environment variables."""
    layer: dict[str, Any] = {}
    env = os.environ

    if env.get(f"{_ENV_PREFIX}BASE_URL"):
        layer["base_url"] = env[f"{_ENV_PREFIX}BASE_URL"]

    request: dict[str, Any] = {}
    if env.get(f"{_ENV_PREFIX}TIMEOUT"):
        request["timeout"] = env[f"{_ENV_PREFIX}TIMEOUT"]
    if env.get(f"{_ENV_PREFIX}MAX_RETRIES"):
        request["max_retries"] = env[f"{_ENV_PREFIX}MAX_RETRIES"]
    if request:
        layer["request"] = request

    cache: dict[str, Any] = {}
    if env.get(f"{_ENV_PREFIX}CACHE_TTL"):
        cache["ttl_seconds"] = env[f"{_ENV_PREFIX}CACHE_TTL"]
    if env.get(f"{_ENV_PREFIX}NO_CACHE", "").lower() in _TRUTHY:
        cache["enabled"] = False
    if cache:
        layer["cache"] = cache

    if env.get(f"{_ENV_PREFIX}LOGGING", "").lower() in _TRUTHY:
        layer["enable_logging"] = True
    return layer


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            value = _drop_none(value)
            if not value:
                continue
        elif value is None:
            continue
        cleaned[key] = value
    return cleaned


def _deep_merge(base: dict[str, Any], layer: dict[str, Any]) -> dict[str, Any]:
    """Return *base* updated with *layer*, merging nested dicts key by key."""
    result = dict(base)
    for key, value in layer.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
