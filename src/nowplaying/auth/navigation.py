"""Navigation port -- where the sign-in flow reads and moves "the page".

The auth flow needs three things from its host environment: the URL it was
loaded at (to spot an OAuth callback), a way to send the user to the
provider, and a way to rewrite the current URL once the authorization code
has been consumed. :class:`NavigationPort` captures exactly that, so the
state machine never touches a browser or an HTTP server directly.
"""

from __future__ import annotations

import logging
import threading
import webbrowser
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)


class NavigationPort(ABC):
    """Abstract host environment for :class:`~nowplaying.auth.flow.AuthFlowController`."""

    @abstractmethod
    def current_url(self) -> str:
        """The URL (or path plus query) this load is at."""
        ...

    @abstractmethod
    def redirect_to(self, url: str) -> None:
        """Full navigation away from the app, e.g. to the authorize endpoint."""
        ...

    @abstractmethod
    def replace_current_url(self, url: str) -> None:
        """Rewrite the current URL without navigating or adding history."""
        ...


class MemoryNavigator(NavigationPort):
    """A navigator that only records what happened.

    Used directly in tests and as the base of :class:`BrowserNavigator`.

    Args:
        location: Initial URL, ``"/"`` by default.
    """

    def __init__(self, location: str = "/") -> None:
        self.location = location
        self.redirects: list[str] = []

    @property
    def last_redirect(self) -> Optional[str]:
        return self.redirects[-1] if self.redirects else None

    def current_url(self) -> str:
        return self.location

    def redirect_to(self, url: str) -> None:
        self.redirects.append(url)

    def replace_current_url(self, url: str) -> None:
        self.location = url

    def arrive(self, url: str) -> None:
        """Record that the user landed on *url* (e.g. the provider's redirect)."""
        self.location = url


class BrowserNavigator(MemoryNavigator):
    """Navigator for the terminal: redirects open the system web browser.

    The browser is opened in a daemon thread so a slow browser launch never
    blocks the caller.
    """

    def redirect_to(self, url: str) -> None:
        super().redirect_to(url)
        logger.debug("Opening browser for authorization")
        thread = threading.Thread(target=webbrowser.open, args=(url,), daemon=True)
        thread.start()
