"""One-shot loopback HTTP server that catches the provider's redirect.

When the redirect URI points at this machine (``http://localhost:5173/callback``
by default) the CLI cannot rely on a browser tab running the app, so
:class:`CallbackReceiver` binds that host and port before the browser is
opened, waits for exactly one request and hands the requested path and
query back to the caller, which feeds it through
:meth:`~nowplaying.auth.flow.AuthFlowController.handle_callback_if_present`.
"""

from __future__ import annotations

import html
import logging
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from nowplaying.exceptions import AuthError

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})
CALLBACK_TIMEOUT_SECONDS = 120


def is_loopback_uri(uri: str) -> bool:
    """True if *uri* is an ``http`` URL on this machine."""
    parsed = urlparse(uri)
    return parsed.scheme == "http" and (parsed.hostname or "") in LOOPBACK_HOSTS


def _page_for(path: str) -> str:
    params = parse_qs(urlparse(path).query)
    if "error" in params:
        body = f"Authorization failed: {html.escape(params['error'][0])}"
    elif "code" in params:
        body = "Authorization successful! You can close this window and return to the terminal."
    else:
        body = "No authorization code received."
    return f"<html><body><h2>{body}</h2></body></html>"


class CallbackReceiver:
    """Loopback server for a single OAuth redirect.

    The socket is bound when the receiver is opened, so the browser can be
    sent to the provider afterwards without racing the listener::

        with CallbackReceiver(redirect_uri) as receiver:
            controller.login()          # opens the browser
            landed = receiver.wait()

    Args:
        redirect_uri: A loopback URI such as ``http://localhost:5173/callback``.
        timeout: Seconds :meth:`wait` gives the browser before giving up.
    """

    def __init__(self, redirect_uri: str, timeout: float = CALLBACK_TIMEOUT_SECONDS) -> None:
        parsed = urlparse(redirect_uri)
        self._host = parsed.hostname or "127.0.0.1"
        self._port = parsed.port or 80
        self._timeout = timeout
        self._received: Optional[str] = None
        self._server: Optional[HTTPServer] = None

    def open(self) -> None:
        """Bind the listening socket.

        Raises:
            AuthError: If the port cannot be bound (e.g. already in use).
        """
        receiver = self

        class CallbackHandler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                receiver._received = self.path
                page = _page_for(self.path)
                self.send_response(200)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.end_headers()
                self.wfile.write(page.encode("utf-8"))

            def log_message(self, format: str, *args: Any) -> None:
                # the query string carries the authorization code
                pass

        try:
            self._server = HTTPServer((self._host, self._port), CallbackHandler)
        except OSError as exc:
            raise AuthError(
                f"Cannot listen for the OAuth callback on {self._host}:{self._port}: {exc}"
            ) from exc
        self._server.timeout = self._timeout
        logger.debug("Listening for OAuth callback on %s:%d", self._host, self._port)

    def wait(self) -> str:
        """Serve one request and return its path and query, e.g. ``/callback?code=...``.

        Raises:
            AuthError: If nothing arrives within the timeout.
        """
        if self._server is None:
            self.open()
        server = self._server
        if server is not None:
            server.handle_request()
        if self._received is None:
            raise AuthError(f"No callback received within {int(self._timeout)} seconds")
        return self._received

    def close(self) -> None:
        if self._server is not None:
            self._server.server_close()
            self._server = None

    def __enter__(self) -> CallbackReceiver:
        self.open()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

