"""Session commands -- sign in, sign out, inspect and refresh the stored tokens.

Typical workflow::

    nowplaying login      # browser sign-in
    nowplaying status     # is the token still good?
    nowplaying refresh    # force a refresh-token grant
    nowplaying logout     # forget everything
"""

from __future__ import annotations

import asyncio

import typer

from nowplaying.commands import exit_on_error
from nowplaying.exit_codes import EXIT_AUTH_FAILURE
from nowplaying.output import error, format_response, info, success, suggest


def login_command(
    timeout: int = typer.Option(
        120, "--timeout", help="Seconds to wait for the browser to come back."
    ),
) -> None:
    """Sign in with the provider (OAuth2 Authorization Code + PKCE).

    Opens the authorize page in the browser. For a loopback redirect URI the
    callback is caught by a short-lived local server; otherwise paste the URL
    the browser ended up on.

    Example::

        nowplaying login
    """
    from nowplaying.auth import BrowserNavigator, create_controller
    from nowplaying.auth.callback import CallbackReceiver, is_loopback_uri
    from nowplaying.config import load_settings

    with exit_on_error():
        settings = load_settings()
        navigator = BrowserNavigator()
        controller = create_controller(settings, navigator=navigator)
        redirect_uri = controller.redirect_uri()

        def start_login() -> None:
            controller.login()
            info("Opening the browser to sign in...")
            info(f"If it does not open, visit:\n{navigator.last_redirect}")

        if is_loopback_uri(redirect_uri):
            # listen before the browser can be redirected back
            with CallbackReceiver(redirect_uri, timeout=timeout) as receiver:
                start_login()
                landed = receiver.wait()
        else:
            start_login()
            landed = typer.prompt("Paste the URL your browser was redirected to")
        navigator.arrive(landed.strip())

        exchanged = asyncio.run(controller.handle_callback_if_present())

    if not exchanged:
        error("The callback URL did not contain an authorization code.")
        suggest("Try again: nowplaying login")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)

    success("Logged in.")
    suggest("Start watching: nowplaying watch")


def logout_command() -> None:
    """Forget all stored credentials. Safe to run when already logged out."""
    from nowplaying.auth import create_controller
    from nowplaying.config import load_settings

    with exit_on_error():
        controller = create_controller(load_settings())
        controller.logout()
    success("Logged out.")


def status_command() -> None:
    """Show whether a session is stored and when its access token expires."""
    from nowplaying.auth import create_controller
    from nowplaying.config import get_credentials_path, load_settings

    with exit_on_error():
        controller = create_controller(load_settings())
    store = controller.store

    logged_in = store.is_logged_in()
    expires_in = None
    if logged_in:
        expires_in = max(0, int((store.expires_at() - store.now()) // 1000))

    format_response(
        {
            "logged_in": logged_in,
            "expires_in_seconds": expires_in,
            "expiring_soon": controller.is_access_token_expiring_soon() if logged_in else None,
            "has_refresh_token": bool(store.refresh_token),
            "credentials_file": str(get_credentials_path()),
        }
    )
    if not logged_in:
        suggest("Sign in: nowplaying login")


def refresh_command() -> None:
    """Exchange the stored refresh token for a new access token."""
    from nowplaying.auth import create_controller
    from nowplaying.config import load_settings

    with exit_on_error():
        controller = create_controller(load_settings())
        asyncio.run(controller.refresh())
    expires_in = max(0, int((controller.store.expires_at() - controller.store.now()) // 1000))
    success(f"Access token refreshed (valid for {expires_in}s).")
