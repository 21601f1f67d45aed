"""Canonical Pydantic models shared across nowplaying modules.

The models fall into three groups:

**Configuration** -- :class:`Settings`, serialised as JSON in the user's
config directory and overlaid with environment variables by
:func:`nowplaying.config.load_settings`.

**Provider payloads** -- :class:`TokenResponse` from the OAuth2 token
endpoint, and :class:`CurrentlyPlaying` (with :class:`Track`,
:class:`Album`, :class:`Artist`, :class:`Image`) from the player endpoint.
Payload models use ``extra="allow"`` so fields the provider adds later are
kept in ``model_extra`` rather than rejected.

**State** -- :class:`AuthState`, the states of the sign-in state machine.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_SCOPES = ["user-read-currently-playing", "user-read-playback-state"]


# --- Configuration ---


class Settings(BaseModel):
    """Client configuration, read-only at runtime.

    Nothing here is validated for presence at load time: a missing
    ``client_id`` or ``redirect_uri`` only fails when a login is attempted.

    Example::

        Settings(client_id="abc123", scopes=["user-read-currently-playing"])
    """

    client_id: Optional[str] = Field(
        default=None, description="OAuth2 client identifier registered with the provider"
    )
    redirect_uri: Optional[str] = Field(
        default=None,
        description="Production redirect URI; must match the provider dashboard exactly",
    )
    scopes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SCOPES),
        description="Scopes requested at authorization time",
    )
    lyrics_access_token: Optional[str] = Field(
        default=None, description="Bearer token for the lyrics search API"
    )
    app_host: str = Field(
        default="localhost",
        description="Host the app is served from; 'localhost' selects the loopback callback",
    )
    callback_path: str = Field(default="/callback")
    authorize_url: str = Field(default="https://accounts.spotify.com/authorize")
    token_url: str = Field(default="https://accounts.spotify.com/api/token")
    api_base_url: str = Field(default="https://api.spotify.com/v1")


# --- Token endpoint ---


class TokenResponse(BaseModel):
    """JSON body returned by the token endpoint for either grant type.

    ``refresh_token`` is optional: providers may not rotate it on refresh.
    ``expires_in`` is required; without it the expiry cannot be computed.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    scope: Optional[str] = None


# --- Player endpoint ---


class Image(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: str
    width: Optional[int] = None
    height: Optional[int] = None


class Artist(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    id: Optional[str] = None


class Album(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = ""
    images: list[Image] = Field(default_factory=list)


class Track(BaseModel):
    """The ``item`` of a currently-playing response."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: str = ""
    artists: list[Artist] = Field(default_factory=list)
    album: Album = Field(default_factory=Album)
    duration_ms: int = 0
    explicit: bool = False
    popularity: Optional[int] = None


class CurrentlyPlaying(BaseModel):
    """Playback state as reported by ``GET /me/player/currently-playing``.

    ``item`` is ``None`` for ads or when the provider withholds track data.
    """

    model_config = ConfigDict(extra="allow")

    is_playing: bool = False
    progress_ms: Optional[int] = None
    item: Optional[Track] = None

    @property
    def artist_names(self) -> str:
        """Comma-separated artist names, or an empty string."""
        if self.item is None:
            return ""
        return ", ".join(a.name for a in self.item.artists)

    @property
    def primary_artist(self) -> Optional[str]:
        if self.item is None or not self.item.artists:
            return None
        return self.item.artists[0].name

    @property
    def cover_url(self) -> Optional[str]:
        if self.item is None or not self.item.album.images:
            return None
        return self.item.album.images[0].url

    @property
    def duration_ms(self) -> int:
        """Track duration, never less than 1 ms so it can be divided by."""
        if self.item is None or self.item.duration_ms <= 0:
            return 1
        return self.item.duration_ms

    @property
    def progress_fraction(self) -> float:
        """Playback progress in ``[0, 1]``."""
        progress = self.progress_ms or 0
        return max(0.0, min(1.0, progress / self.duration_ms))


# --- State ---


class AuthState(str, enum.Enum):
    """States of :class:`~nowplaying.auth.flow.AuthFlowController`."""

    LOGGED_OUT = "logged_out"
    AWAITING_CALLBACK = "awaiting_callback"
    LOGGED_IN = "logged_in"
    ERROR = "error"
