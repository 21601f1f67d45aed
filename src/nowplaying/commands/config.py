"""Config commands -- view and modify the settings file.

Provides the ``nowplaying config`` sub-command group. Values written here
land in ``config.json`` in the config directory; ``NOWPLAYING_*``
environment variables still take precedence at runtime.
"""

from __future__ import annotations

import typer

from nowplaying.exit_codes import EXIT_INVALID_USAGE
from nowplaying.output import error, format_response, info, print_data, success


config_app = typer.Typer(no_args_is_help=True)

_SECRET_FIELDS = {"lyrics_access_token"}


@config_app.command("show")
def config_show() -> None:
    """Show the effective settings (file plus environment overrides).

    Secrets are masked.

    Example::

        nowplaying config show
        nowplaying --json config show
    """
    from nowplaying.commands import exit_on_error
    from nowplaying.config import load_settings, settings_path

    with exit_on_error():
        settings = load_settings()
    data = settings.model_dump(mode="json")
    for key in _SECRET_FIELDS:
        if data.get(key):
            data[key] = "****"
    data["scopes"] = " ".join(data["scopes"])
    info(f"Config file: {settings_path()}")
    format_response(data)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Setting name, e.g. 'client_id'."),
    value: str = typer.Argument(help="Value to set. Scopes are space separated."),
) -> None:
    """Set a value in the settings file.

    Only the file is changed; environment variables are neither read nor
    written, so the stored file never picks up an override by accident.

    Example::

        nowplaying config set client_id abc123
        nowplaying config set scopes "user-read-currently-playing user-read-playback-state"
    """
    from pydantic import ValidationError

    from nowplaying.commands import exit_on_error
    from nowplaying.config import load_settings_file, save_settings
    from nowplaying.models import Settings

    if key not in Settings.model_fields:
        error(f"Unknown setting: {key}")
        info("Available: " + ", ".join(sorted(Settings.model_fields)))
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    with exit_on_error():
        data = load_settings_file()
    data[key] = value.split() if key == "scopes" else value

    try:
        settings = Settings.model_validate(data)
    except ValidationError as exc:
        error(f"Invalid value for {key}: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_settings(settings)
    success(f"Set {key}.")


@config_app.command("path")
def config_path() -> None:
    """Print where settings and credentials are stored."""
    from nowplaying.config import get_credentials_path, settings_path

    print_data(str(settings_path()))
    print_data(str(get_credentials_path()))
