"""Cancellable polling loop: refresh the token if needed, fetch, publish, repeat.

:class:`PollLoop` is the control pattern behind ``nowplaying watch``. Each
tick:

1. stops the loop if its readiness predicate no longer holds (logged out);
2. awaits the refresh-if-needed step, which yields the access token;
3. awaits the fetch step with that token;
4. on success publishes the new data and clears the error;
5. on failure publishes the error and keeps the previous data;
6. sleeps for the interval and goes again, unless stopped.

Within a run, ticks never overlap: the next one is only scheduled once the
previous one has finished. :meth:`PollLoop.stop` cannot abort a request that
is already on the wire. Instead every run carries its own generation number,
checked before every publish, so a tick that completes after ``stop()`` has
no visible effect, even when a new run has been started in the meantime.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 3.0

T = TypeVar("T")


@dataclass
class PollState(Generic[T]):
    """What the loop has published so far.

    Attributes:
        data: Result of the last successful fetch. Kept across failed ticks
            so the display shows stale data rather than nothing.
        error: Message of the last failure, ``None`` after a success.
        ticks: Number of ticks that published something.
    """

    data: Optional[T] = None
    error: Optional[str] = None
    ticks: int = 0


class PollLoop(Generic[T]):
    """Repeating fetch task with per-tick error isolation.

    Args:
        fetch: ``async (access_token) -> data``. ``None`` is a valid result
            meaning "nothing active", not an error.
        refresh_if_needed: ``async () -> access_token``; refreshes the token
            first when it is about to expire. Its failures count as the
            tick's failure.
        is_ready: Predicate checked at the start of each tick; when it turns
            false the loop stops itself.
        interval: Seconds between the end of one tick and the next.
        on_publish: Called with :attr:`state` after every visible change.

    Example::

        loop = PollLoop(
            lambda token: fetch_currently_playing(token, settings=settings),
            refresh_if_needed=controller.ensure_fresh_token,
            is_ready=controller.is_logged_in,
            on_publish=render,
        )
        loop.start()
        ...
        loop.stop()
        await loop.wait()
    """

    def __init__(
        self,
        fetch: Callable[[str], Awaitable[Optional[T]]],
        *,
        refresh_if_needed: Callable[[], Awaitable[str]],
        is_ready: Optional[Callable[[], bool]] = None,
        interval: float = POLL_INTERVAL_SECONDS,
        on_publish: Optional[Callable[[PollState[T]], None]] = None,
    ) -> None:
        self._fetch = fetch
        self._refresh_if_needed = refresh_if_needed
        self._is_ready = is_ready or (lambda: True)
        self._interval = interval
        self._on_publish = on_publish
        self._generation = 0
        self._live: Optional[int] = None
        self._wake = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None
        self.state: PollState[T] = PollState()

    @property
    def active(self) -> bool:
        return self._live is not None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def _begin(self) -> tuple[int, asyncio.Event]:
        # Each run owns a generation number and a wake event; a run whose
        # number is no longer the live one never publishes again.
        self._wake.set()
        self._generation += 1
        self._live = self._generation
        self._wake = asyncio.Event()
        return self._generation, self._wake

    def start(self) -> asyncio.Task[None]:
        """Schedule a run on the running event loop; the first tick runs immediately.

        While a run is active this returns its task. After :meth:`stop` a
        fresh run is launched even if the old one still has a request in
        flight; that request's result is discarded.
        """
        if self.active and self._task is not None and not self._task.done():
            return self._task
        generation, wake = self._begin()
        self._task = asyncio.get_running_loop().create_task(self._run(generation, wake, None))
        return self._task

    async def run(self, max_ticks: Optional[int] = None) -> PollState[T]:
        """Run the loop in the current task until stopped or *max_ticks* ticks ran."""
        generation, wake = self._begin()
        await self._run(generation, wake, max_ticks)
        return self.state

    def stop(self) -> None:
        """Prevent further ticks and suppress the publish of one in flight."""
        self._live = None
        self._wake.set()

    async def wait(self) -> None:
        """Wait for the run most recently launched with :meth:`start` to wind down."""
        if self._task is not None:
            await self._task

    # ------------------------------------------------------------------ #
    # Ticks
    # ------------------------------------------------------------------ #

    def _is_live(self, generation: int) -> bool:
        return self._live == generation

    async def _run(self, generation: int, wake: asyncio.Event, max_ticks: Optional[int]) -> None:
        ran = 0
        while self._is_live(generation):
            await self._tick(generation)
            ran += 1
            if max_ticks is not None and ran >= max_ticks and self._is_live(generation):
                self._live = None
            if not self._is_live(generation):
                break
            await self._sleep(wake)

    async def _sleep(self, wake: asyncio.Event) -> None:
        try:
            await asyncio.wait_for(wake.wait(), timeout=self._interval)
        except asyncio.TimeoutError:
            pass

    async def _tick(self, generation: int) -> None:
        if not self._is_ready():
            logger.debug("Poll prerequisite no longer met; stopping")
            if self._is_live(generation):
                self.stop()
            return

        try:
            token = await self._refresh_if_needed()
            data = await self._fetch(token)
        except Exception as exc:
            if not self._is_live(generation):
                return
            logger.debug("Poll tick failed: %s", exc)
            self.state.error = str(exc) or exc.__class__.__name__
            self._publish()
            return

        if not self._is_live(generation):
            return
        self.state.data = data
        self.state.error = None
        self._publish()

    def _publish(self) -> None:
        self.state.ticks += 1
        if self._on_publish is not None:
            self._on_publish(self.state)
