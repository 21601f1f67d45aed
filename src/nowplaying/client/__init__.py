"""HTTP clients for the provider's Web API."""

from nowplaying.client.player import fetch_currently_playing

__all__ = ["fetch_currently_playing"]
