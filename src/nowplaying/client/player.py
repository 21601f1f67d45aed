"""Player endpoint client -- the fetch step of the poll loop.

:func:`fetch_currently_playing` reads ``GET /me/player/currently-playing``
with a bearer token. An empty ``204`` means nothing is playing and is
returned as ``None``; every other failure becomes a
:class:`~nowplaying.exceptions.FetchError` so the poll loop can show it and
retry on the next tick.
"""

from __future__ import annotations

from typing import Optional

import httpx

from nowplaying.exceptions import FetchError
from nowplaying.models import CurrentlyPlaying, Settings

CURRENTLY_PLAYING_PATH = "/me/player/currently-playing"


async def _get(url: str, headers: dict[str, str], http_client: Optional[httpx.AsyncClient]) -> httpx.Response:
    if http_client is not None:
        return await http_client.get(url, headers=headers)
    async with httpx.AsyncClient() as client:
        return await client.get(url, headers=headers)


async def fetch_currently_playing(
    access_token: str,
    *,
    settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
) -> Optional[CurrentlyPlaying]:
    """Return the account's current playback, or ``None`` if nothing is playing.

    Args:
        access_token: A valid bearer token.
        settings: Supplies ``api_base_url``.
        http_client: Optional shared client; a short-lived one is used otherwise.

    Raises:
        FetchError: On a non-2xx response, a transport failure, or a body
            that is not a playback object.
    """
    url = f"{settings.api_base_url.rstrip('/')}{CURRENTLY_PLAYING_PATH}"
    headers = {"Authorization": f"Bearer {access_token}"}

    try:
        response = await _get(url, headers, http_client)
    except httpx.HTTPError as exc:
        raise FetchError(None, str(exc)) from exc

    if response.status_code == 204 or (response.is_success and not response.content):
        return None
    if not response.is_success:
        raise FetchError(response.status_code, response.text)

    try:
        return CurrentlyPlaying.model_validate(response.json())
    except ValueError as exc:
        raise FetchError(response.status_code, f"unexpected response body: {exc}") from exc
