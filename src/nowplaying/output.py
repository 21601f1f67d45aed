"""Output formatting with strict stdout/stderr discipline.

Follows `clig.dev <https://clig.dev/>`_ conventions:

* **stdout** -- primary data only (the now-playing display, ``--json``
  records, ``config show``).
* **stderr** -- diagnostics (status, errors, next-step hints) and log records.
* **TTY detection** -- Rich formatting when stdout is an interactive
  terminal, plain text when piped.
* **Colour control** -- respects ``NO_COLOR``, ``TERM=dumb``, and the
  ``--no-color`` flag.

The module exposes two layers:

1. :class:`OutputManager` -- holds the format, the Rich consoles and the
   quiet flag. Created once in :func:`~nowplaying.app.main_callback`
   and installed via :func:`set_output`.
2. Module-level helpers (:func:`info`, :func:`error`, :func:`suggest`, ...)
   delegating to the global instance.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console, Group
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.syntax import Syntax
from rich.text import Text

from nowplaying.models import CurrentlyPlaying
from nowplaying.poll import PollState

_BAR_WIDTH = 30


class OutputFormat(str, Enum):
    """Supported output formats. ``AUTO`` resolves to ``RICH`` on a colour TTY, else ``PLAIN``."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


def format_clock(ms: int) -> str:
    """Render milliseconds as ``m:ss``."""
    seconds = max(0, int(ms)) // 1000
    return f"{seconds // 60}:{seconds % 60:02d}"


def _plain_bar(fraction: float, width: int = _BAR_WIDTH) -> str:
    filled = int(round(fraction * width))
    return "[" + "#" * filled + "-" * (width - filled) + "]"


def _lyrics_line(
    lyrics_url: Optional[str], scroll: Optional[float], lyrics_error: Optional[str]
) -> Optional[str]:
    if lyrics_url:
        suffix = f" (scroll {int(scroll)}px)" if scroll is not None else ""
        return f"Lyrics: {lyrics_url}{suffix}"
    if lyrics_error:
        return f"Lyrics: {lyrics_error}"
    return None


class OutputManager:
    """Central manager for all CLI output.

    Args:
        format: Desired output format.
        no_color: Disable all colour and Rich markup.
        quiet: Keep stderr to errors only.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet

        if format == OutputFormat.AUTO:
            self._format = (
                OutputFormat.RICH if _is_tty() and not self._no_color else OutputFormat.PLAIN
            )
        else:
            self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=(self._format == OutputFormat.RICH),
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    # ------------------------------------------------------------------ #
    # Data output (stdout)
    # ------------------------------------------------------------------ #

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def format_response(self, data: dict[str, Any]) -> None:
        """Print a flat record: JSON, ``key<TAB>value`` lines, or highlighted JSON."""
        if self._format == OutputFormat.JSON:
            self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))
        elif self._format == OutputFormat.PLAIN:
            for key, value in data.items():
                self.print_data(f"{key}\t{value}")
        else:
            json_str = json.dumps(data, indent=2, ensure_ascii=False, default=str)
            self._stdout.print(Syntax(json_str, "json", theme="monokai", word_wrap=True))

    def render_now_playing(
        self,
        state: PollState[CurrentlyPlaying],
        lyrics_url: Optional[str] = None,
        scroll: Optional[float] = None,
        lyrics_error: Optional[str] = None,
    ) -> None:
        """Render one published poll state.

        Data and error are shown side by side: a failed tick keeps the last
        track on screen with the error underneath. *lyrics_error* explains a
        missing lyrics URL ("Lyrics not found", ...).
        """
        if self._format == OutputFormat.JSON:
            record = {
                "data": state.data.model_dump(mode="json") if state.data else None,
                "error": state.error,
                "lyrics_url": lyrics_url,
                "lyrics_error": lyrics_error,
            }
            self.print_data(json.dumps(record, ensure_ascii=False, default=str))
            return

        lyrics = _lyrics_line(lyrics_url, scroll, lyrics_error)
        if self._format == OutputFormat.PLAIN:
            for line in self._plain_lines(state, lyrics):
                self.print_data(line)
            return

        self._stdout.print(self._rich_panel(state, lyrics))

    def _plain_lines(
        self, state: PollState[CurrentlyPlaying], lyrics: Optional[str]
    ) -> list[str]:
        lines: list[str] = []
        now = state.data
        if now is None or now.item is None:
            lines.append("Nothing playing.")
        else:
            item = now.item
            lines.append(f"{item.name} - {now.artist_names}")
            if item.album.name:
                lines.append(f"Album: {item.album.name}")
            progress = now.progress_ms or 0
            lines.append(
                f"{_plain_bar(now.progress_fraction)} "
                f"{format_clock(progress)} / {format_clock(now.duration_ms)}"
            )
            if lyrics:
                lines.append(lyrics)
        if state.error:
            lines.append(f"Error: {state.error}")
        return lines

    def _rich_panel(
        self, state: PollState[CurrentlyPlaying], lyrics: Optional[str]
    ) -> Panel:
        parts: list[Any] = []
        now = state.data
        if now is None or now.item is None:
            parts.append(Text("Nothing playing.", style="dim"))
        else:
            item = now.item
            parts.append(Text(item.name, style="bold"))
            parts.append(Text(now.artist_names))
            if item.album.name:
                parts.append(Text(item.album.name, style="dim"))
            progress = now.progress_ms or 0
            parts.append(ProgressBar(total=now.duration_ms, completed=progress, width=_BAR_WIDTH))
            parts.append(
                Text(f"{format_clock(progress)} / {format_clock(now.duration_ms)}", style="dim")
            )
            details = f"Explicit: {'yes' if item.explicit else 'no'}"
            if item.popularity is not None:
                details += f"  Popularity: {item.popularity}"
            if item.id:
                details += f"  Track ID: {item.id}"
            parts.append(Text(details, style="dim"))
            if lyrics:
                parts.append(Text(lyrics, style="cyan"))
        if state.error:
            parts.append(Text(state.error, style="bold red"))
        return Panel(Group(*parts), title="Now Playing", expand=False)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def _emit(self, text: str, markup: str, *, essential: bool = False) -> None:
        if self._quiet and not essential:
            return
        if self._no_color:
            print(text, file=sys.stderr, flush=True)
        else:
            self._stderr.print(markup)

    def info(self, message: str) -> None:
        self._emit(message, message)

    def success(self, message: str) -> None:
        self._emit(message, f"[green]{message}[/green]")

    def error(self, message: str) -> None:
        """Errors are shown even with ``--quiet``."""
        self._emit(f"Error: {message}", f"[bold red]Error:[/bold red] {message}", essential=True)

    def suggest(self, message: str) -> None:
        """A dimmed next-step hint, e.g. ``→ Sign in: nowplaying login``."""
        self._emit(f"→ {message}", f"[dim]→ {message}[/dim]")


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (any value) or ``TERM=dumb``."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


def configure_logging(verbose: bool = False) -> None:
    """Route library loggers to stderr; debug level with ``--verbose``."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


# ------------------------------------------------------------------ #
# Process-wide manager, installed by the root callback
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Drop the installed manager. Used by the test suite between tests."""
    global _output
    _output = None


def format_response(data: dict[str, Any]) -> None:
    get_output().format_response(data)


def print_data(text: str) -> None:
    get_output().print_data(text)


def info(message: str) -> None:
    get_output().info(message)


def error(message: str) -> None:
    get_output().error(message)


def success(message: str) -> None:
    get_output().success(message)


def suggest(message: str) -> None:
    get_output().suggest(message)
