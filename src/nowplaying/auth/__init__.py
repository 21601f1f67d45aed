"""Sign-in and credential lifecycle for nowplaying.

The main entry points are:

- :class:`AuthFlowController` -- the OAuth2 Authorization Code + PKCE state
  machine (login, callback exchange, expiry check, refresh, logout).
- :class:`CredentialStore` -- the session's four credential slots over an
  injectable :class:`KeyValueStorage`.
- :class:`NavigationPort` -- the host environment the flow redirects through.
- :func:`create_controller` -- factory wiring the pieces with on-disk storage
  and the system browser.

Typical usage::

    from nowplaying.auth import create_controller

    controller = create_controller(settings)
    token = await controller.ensure_fresh_token()
"""

from __future__ import annotations

from typing import Optional

import httpx

from nowplaying.auth.credential_store import (
    CredentialField,
    CredentialStore,
    JsonFileStorage,
    KeyValueStorage,
    MemoryStorage,
)
from nowplaying.auth.flow import AuthFlowController
from nowplaying.auth.navigation import BrowserNavigator, MemoryNavigator, NavigationPort
from nowplaying.auth.pkce import derive_challenge, generate_pkce_pair, generate_verifier
from nowplaying.models import Settings


def create_controller(
    settings: Settings,
    storage: Optional[KeyValueStorage] = None,
    navigator: Optional[NavigationPort] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> AuthFlowController:
    """Return an :class:`AuthFlowController` with default collaborators.

    Storage defaults to :class:`JsonFileStorage` in the data directory and
    navigation to :class:`BrowserNavigator`.
    """
    if storage is None:
        from nowplaying.config import get_credentials_path

        storage = JsonFileStorage(get_credentials_path())
    return AuthFlowController(
        settings,
        CredentialStore(storage),
        navigator or BrowserNavigator(),
        http_client=http_client,
    )


__all__ = [
    "AuthFlowController",
    "BrowserNavigator",
    "CredentialField",
    "CredentialStore",
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryNavigator",
    "MemoryStorage",
    "NavigationPort",
    "create_controller",
    "derive_challenge",
    "generate_pkce_pair",
    "generate_verifier",
]
