"""Built-in CLI commands for nowplaying.

Each module defines commands that :func:`nowplaying.app.register_commands`
attaches to the root Typer app:

- :mod:`~nowplaying.commands.session` -- ``login``, ``logout``, ``status``,
  ``refresh``.
- :mod:`~nowplaying.commands.watch` -- ``watch``, the polling display.
- :mod:`~nowplaying.commands.config` -- ``config show|set|path``.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import typer

from nowplaying.exceptions import NowPlayingError
from nowplaying.output import error


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Report a :class:`NowPlayingError` on stderr and exit with its code."""
    try:
        yield
    except NowPlayingError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
