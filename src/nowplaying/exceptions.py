"""Exception hierarchy for nowplaying.

All exceptions inherit from :class:`NowPlayingError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`nowplaying.exit_codes`.
The top-level handler in :func:`nowplaying.app.main` catches
``NowPlayingError`` and exits with the matching code; anything else produces a
crash log.

Subclass hierarchy::

    NowPlayingError          (exit 1)
    +-- ConfigurationError   (exit 1)
    +-- AuthError            (exit 3)
    |   +-- ProviderAuthError
    |   +-- MissingVerifierError
    |   +-- TokenExchangeError
    |   +-- TokenRefreshError
    |   +-- NoRefreshTokenError
    +-- FetchError           (exit 6)
"""

from __future__ import annotations

from typing import Optional

from nowplaying.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_FETCH_ERROR,
    EXIT_GENERIC_FAILURE,
)


class NowPlayingError(Exception):
    """Base exception for all nowplaying errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(NowPlayingError):
    """Raised when required setup (client id, redirect URI) is missing or invalid."""

    exit_code = EXIT_GENERIC_FAILURE


class AuthError(NowPlayingError):
    """Base class for failures of the sign-in and token lifecycle."""

    exit_code = EXIT_AUTH_FAILURE


class ProviderAuthError(AuthError):
    """The provider redirected back with an ``error`` (e.g. consent denied).

    Terminal for the current login attempt; the user has to log in again.
    """

    def __init__(self, error: str, description: str | None = None):
        message = f"Provider auth error: {error}"
        if description:
            message += f" - {description}"
        super().__init__(message)
        self.error = error
        self.description = description


class MissingVerifierError(AuthError):
    """A callback arrived but no PKCE verifier was stored by a prior login."""

    def __init__(self, message: str = "Missing PKCE verifier (try login again)"):
        super().__init__(message)


class _HTTPStatusAuthError(AuthError):
    """Shared shape for token endpoint failures: a status and the response body.

    ``status`` is ``None`` when the request never produced a response
    (connection refused, DNS failure, ...).
    """

    action = "Token request"

    def __init__(self, status: Optional[int], body: str):
        if status is None:
            message = f"{self.action} failed: {body}"
        else:
            message = f"{self.action} failed: {status} {body}"
        super().__init__(message)
        self.status = status
        self.body = body


class TokenExchangeError(_HTTPStatusAuthError):
    """The token endpoint rejected an authorization-code exchange."""

    action = "Token exchange"


class TokenRefreshError(_HTTPStatusAuthError):
    """The token endpoint rejected a refresh-token grant."""

    action = "Refresh"


class NoRefreshTokenError(AuthError):
    """A refresh was attempted but no refresh token is stored."""

    def __init__(self, message: str = "No refresh token"):
        super().__init__(message)


class FetchError(NowPlayingError):
    """The periodic player request failed.

    Surfaced to the display; the poll loop keeps running and the next tick
    retries.
    """

    exit_code = EXIT_FETCH_ERROR

    def __init__(self, status: Optional[int], body: str):
        if status is None:
            message = f"Currently playing failed: {body}"
        else:
            message = f"Currently playing failed: {status} {body}"
        super().__init__(message)
        self.status = status
        self.body = body
