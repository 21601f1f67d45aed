"""Best-effort lyrics lookup for the track that is playing.

:class:`LyricsOverlay` searches the Genius API for ``"<track> <artist>"`` and
turns the first hit into an embeddable lyrics page URL. It also maps playback
progress onto a scroll offset so a long lyrics page can follow the song.

Nothing here is allowed to disturb the poll loop: every failure is logged,
remembered in :attr:`LyricsOverlay.error`, and answered with ``None``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

GENIUS_SEARCH_URL = "https://api.genius.com/search"
GENIUS_EMBED_URL = "https://genius.com/songs/{song_id}/embed"

CONTENT_HEIGHT = 3000
VIEWPORT_HEIGHT = 500

LYRICS_NOT_CONFIGURED = "Lyrics not configured"
LYRICS_NOT_FOUND = "Lyrics not found"
LYRICS_FETCH_FAILED = "Failed to fetch lyrics"


def scroll_offset(
    progress_ms: int,
    duration_ms: int,
    content_height: int = CONTENT_HEIGHT,
    viewport_height: int = VIEWPORT_HEIGHT,
) -> float:
    """Map playback progress to a scroll position in pixels.

    The scrollable distance is ``content_height - viewport_height``; a track
    at 25% progress scrolls a quarter of it. Returns ``0.0`` when the
    duration is unknown.
    """
    if duration_ms <= 0:
        return 0.0
    scrollable = max(0, content_height - viewport_height)
    fraction = max(0.0, min(1.0, progress_ms / duration_ms))
    return fraction * scrollable


class LyricsOverlay:
    """Look up lyrics pages, caching one answer per (track, artist).

    Args:
        access_token: Genius API bearer token. Without one every lookup
            returns ``None``.
        http_client: Optional shared client.
    """

    def __init__(
        self,
        access_token: Optional[str],
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._access_token = access_token
        self._http_client = http_client
        self._cache: dict[tuple[str, str], tuple[Optional[str], Optional[str]]] = {}
        self.error: Optional[str] = None

    async def _search(self, query: str) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._access_token}"}
        params = {"q": query}
        if self._http_client is not None:
            response = await self._http_client.get(GENIUS_SEARCH_URL, params=params, headers=headers)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.get(GENIUS_SEARCH_URL, params=params, headers=headers)
        response.raise_for_status()
        return response.json()

    async def lookup(self, track: Optional[str], artist: Optional[str]) -> Optional[str]:
        """Return the embed URL for *track* by *artist*, or ``None``.

        Never raises. Repeated calls for the same pair are answered from the
        cache, including negative answers. When the result is ``None``,
        :attr:`error` says why; :data:`LYRICS_FETCH_FAILED` is the only
        answer that is not cached.
        """
        if not track or not artist:
            return None
        key = (track, artist)
        if key in self._cache:
            url, self.error = self._cache[key]
            return url

        url: Optional[str] = None
        if not self._access_token:
            self.error = LYRICS_NOT_CONFIGURED
        else:
            try:
                payload = await self._search(f"{track} {artist}")
                hits = payload["response"]["hits"]
                if hits:
                    url = GENIUS_EMBED_URL.format(song_id=hits[0]["result"]["id"])
                    self.error = None
                else:
                    self.error = LYRICS_NOT_FOUND
            except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as exc:
                logger.warning("Lyrics lookup failed for %r: %s", query_label(track, artist), exc)
                self.error = LYRICS_FETCH_FAILED
                # transient; try again next time this track comes round
                return None

        self._cache[key] = (url, self.error)
        return url


def query_label(track: str, artist: str) -> str:
    return f"{track} - {artist}"
