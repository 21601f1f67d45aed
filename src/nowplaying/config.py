"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for nowplaying:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.nowplaying/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Settings** -- a single :class:`~nowplaying.models.Settings` JSON file,
  overlaid by ``NOWPLAYING_*`` environment variables in
  :func:`load_settings`.
* **Redirect URI** -- :func:`resolve_redirect_uri` picks the loopback
  callback for local use and the configured production URI otherwise. Login
  and code exchange both go through it so the two requests always agree.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from nowplaying.exceptions import ConfigurationError
from nowplaying.models import Settings

_APP_NAME = "nowplaying"
_CONFIG_FILENAME = "config.json"
_CREDENTIALS_FILENAME = "credentials.json"

LOCAL_HOSTS = frozenset({"localhost"})
LOCAL_REDIRECT_URI = "http://localhost:5173/callback"

# Environment variable -> Settings field
_ENV_VARS = {
    "NOWPLAYING_CLIENT_ID": "client_id",
    "NOWPLAYING_REDIRECT_URI": "redirect_uri",
    "NOWPLAYING_SCOPES": "scopes",
    "NOWPLAYING_LYRICS_TOKEN": "lyrics_access_token",
    "NOWPLAYING_APP_HOST": "app_host",
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform follows the XDG Base Directory layout (Linux/BSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/nowplaying/`` (default ``~/.config/nowplaying/``).
    On macOS/Windows: ``~/.nowplaying/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (credentials, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/nowplaying/`` (default ``~/.local/share/nowplaying/``).
    On macOS/Windows: ``~/.nowplaying/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_credentials_path() -> Path:
    """Path of the JSON file backing the credential store."""
    return get_data_dir() / _CREDENTIALS_FILENAME


def settings_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is given
    it is applied to the temp file before any content is written, so secrets
    are never readable with looser permissions, even momentarily.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Settings ---


def load_settings_file() -> dict[str, Any]:
    path = settings_path()
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Invalid config at {path}: expected a JSON object")
    return data


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for var, field in _ENV_VARS.items():
        value = os.environ.get(var)
        if not value:
            continue
        if field == "scopes":
            overrides[field] = value.split()
        else:
            overrides[field] = value.strip()
    return overrides


def load_settings() -> Settings:
    """Resolve the effective settings.

    Precedence (high to low):
        1. Environment variables (``NOWPLAYING_CLIENT_ID``,
           ``NOWPLAYING_REDIRECT_URI``, ``NOWPLAYING_SCOPES``,
           ``NOWPLAYING_LYRICS_TOKEN``, ``NOWPLAYING_APP_HOST``)
        2. User config (``~/.config/nowplaying/config.json``)
        3. Defaults

    Raises:
        ConfigurationError: If the config file exists but is not valid JSON
            or fails validation.
    """
    data = load_settings_file()
    data.update(_env_overrides())
    try:
        return Settings.model_validate(data)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid settings: {exc}") from exc


def save_settings(settings: Settings) -> None:
    """Persist *settings* atomically to the config directory."""
    data = settings.model_dump(mode="json")
    atomic_write(settings_path(), json.dumps(data, indent=2) + "\n")


# --- Redirect URI ---


def resolve_redirect_uri(settings: Settings) -> str:
    """Return the redirect URI for the current environment.

    A local host always uses :data:`LOCAL_REDIRECT_URI`; any other host uses
    ``settings.redirect_uri``, which has to match the provider dashboard
    byte for byte.

    Raises:
        ConfigurationError: If a non-local host has no redirect URI configured.
    """
    if settings.app_host in LOCAL_HOSTS:
        return LOCAL_REDIRECT_URI
    if not settings.redirect_uri:
        raise ConfigurationError(
            "Missing redirect uri (set NOWPLAYING_REDIRECT_URI or "
            "'nowplaying config set redirect_uri ...')"
        )
    return settings.redirect_uri
