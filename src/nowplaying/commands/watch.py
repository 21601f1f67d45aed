"""``nowplaying watch`` -- poll the player endpoint and render every result.

Wires the pieces together: :meth:`AuthFlowController.bootstrap` settles the
session, :class:`~nowplaying.poll.PollLoop` drives the ticks with
:meth:`AuthFlowController.ensure_fresh_token` as its refresh step and
:func:`~nowplaying.client.player.fetch_currently_playing` as its fetch step,
and each published state goes to
:meth:`OutputManager.render_now_playing`. Lyrics are looked up in background
tasks keyed by track, so a slow or failing lookup never holds up a tick.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx
import typer

from nowplaying.auth.flow import AuthFlowController
from nowplaying.client.player import fetch_currently_playing
from nowplaying.commands import exit_on_error
from nowplaying.exit_codes import EXIT_AUTH_FAILURE
from nowplaying.lyrics import LYRICS_FETCH_FAILED, LyricsOverlay, scroll_offset
from nowplaying.models import AuthState, CurrentlyPlaying, Settings
from nowplaying.output import error, get_output, info, suggest
from nowplaying.poll import PollLoop, PollState


class _LyricsTracker:
    """Remembers lyrics answers per track and starts lookups for new tracks.

    Only settled answers (a URL, "not found", "not configured") are kept. A
    failed lookup leaves the track unsettled, so the next render starts
    another one.
    """

    def __init__(self, overlay: LyricsOverlay) -> None:
        self._overlay = overlay
        self._settled: dict[tuple[str, str], tuple[Optional[str], Optional[str]]] = {}
        self._failures: dict[tuple[str, str], str] = {}
        self._pending: set[tuple[str, str]] = set()
        self._tasks: set[asyncio.Task[None]] = set()

    def lookup_for(self, now: CurrentlyPlaying) -> tuple[Optional[str], Optional[str]]:
        """Return ``(url, error)`` for the playing track, starting a lookup if needed."""
        if now.item is None or not now.primary_artist:
            return None, None
        key = (now.item.name, now.primary_artist)
        if key in self._settled:
            return self._settled[key]
        if key not in self._pending:
            self._pending.add(key)
            task = asyncio.get_running_loop().create_task(self._lookup(key))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return None, self._failures.get(key)

    async def _lookup(self, key: tuple[str, str]) -> None:
        try:
            url = await self._overlay.lookup(*key)
            reason = None if url else self._overlay.error
            if reason == LYRICS_FETCH_FAILED:
                self._failures[key] = reason
            else:
                self._settled[key] = (url, reason)
                self._failures.pop(key, None)
        finally:
            self._pending.discard(key)

    def cancel(self) -> None:
        for task in list(self._tasks):
            task.cancel()


async def _watch(
    controller: AuthFlowController,
    settings: Settings,
    max_ticks: Optional[int],
    with_lyrics: bool,
) -> None:
    state = await controller.bootstrap()
    if state is AuthState.ERROR:
        error(controller.last_error or "Sign-in failed.")
        suggest("Try again: nowplaying login")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)
    if state is not AuthState.LOGGED_IN:
        error("Not logged in.")
        suggest("Sign in: nowplaying login")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)

    output = get_output()
    tracker = _LyricsTracker(LyricsOverlay(settings.lyrics_access_token)) if with_lyrics else None

    def render(published: PollState[CurrentlyPlaying]) -> None:
        url = note = scroll = None
        now = published.data
        if tracker is not None and now is not None:
            url, note = tracker.lookup_for(now)
            if url:
                scroll = scroll_offset(now.progress_ms or 0, now.duration_ms)
        output.render_now_playing(published, url, scroll, lyrics_error=note)

    async with httpx.AsyncClient() as http_client:

        async def fetch(token: str) -> Optional[CurrentlyPlaying]:
            return await fetch_currently_playing(token, settings=settings, http_client=http_client)

        loop: PollLoop[CurrentlyPlaying] = PollLoop(
            fetch,
            refresh_if_needed=controller.ensure_fresh_token,
            is_ready=controller.is_logged_in,
            on_publish=render,
        )
        try:
            await loop.run(max_ticks)
        finally:
            loop.stop()
            if tracker is not None:
                tracker.cancel()


def watch_command(
    ticks: int = typer.Option(
        0, "--ticks", min=0, help="Stop after this many polls (0 = until Ctrl-C)."
    ),
    lyrics: bool = typer.Option(
        True, "--lyrics/--no-lyrics", help="Look up a lyrics page for each track."
    ),
) -> None:
    """Poll what is playing every 3 seconds and render it.

    Errors from a single poll are shown under the last known track and the
    next poll retries. The access token is refreshed automatically before it
    expires.

    Example::

        nowplaying watch
        nowplaying --json watch --ticks 1 --no-lyrics
    """
    from nowplaying.auth import create_controller
    from nowplaying.config import load_settings

    with exit_on_error():
        settings = load_settings()
        controller = create_controller(settings)
        if ticks == 0:
            info("Polling every 3 seconds. Press Ctrl-C to stop.")
        asyncio.run(_watch(controller, settings, ticks or None, lyrics))
