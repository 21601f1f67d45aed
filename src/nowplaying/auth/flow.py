"""OAuth2 Authorization Code + PKCE sign-in and token lifecycle.

:class:`AuthFlowController` drives the whole credential lifecycle:

1. :meth:`~AuthFlowController.login` stores a fresh PKCE verifier and sends
   the user to the provider's authorize endpoint.
2. :meth:`~AuthFlowController.handle_callback_if_present` recognises the
   provider's redirect back, exchanges the authorization code for tokens,
   persists them and scrubs the code from the current URL.
3. :meth:`~AuthFlowController.is_access_token_expiring_soon` and
   :meth:`~AuthFlowController.refresh` keep the access token usable; the
   poll loop calls them through :meth:`~AuthFlowController.ensure_fresh_token`.
4. :meth:`~AuthFlowController.logout` forgets everything.

The controller owns no I/O of its own: storage is a
:class:`~nowplaying.auth.credential_store.CredentialStore`, page movement is a
:class:`~nowplaying.auth.navigation.NavigationPort`, and token requests go
through an injectable :class:`httpx.AsyncClient`.

Concurrent login/refresh/logout calls are not serialised here; the last
write wins. Callers are expected to run one authentication action at a time.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import parse_qs, urlencode, urlparse

import httpx

from nowplaying.auth.credential_store import CredentialStore
from nowplaying.auth.navigation import NavigationPort
from nowplaying.auth.pkce import derive_challenge, generate_verifier
from nowplaying.config import resolve_redirect_uri
from nowplaying.exceptions import (
    ConfigurationError,
    MissingVerifierError,
    NoRefreshTokenError,
    NowPlayingError,
    ProviderAuthError,
    TokenExchangeError,
    TokenRefreshError,
)
from nowplaying.models import AuthState, Settings, TokenResponse

logger = logging.getLogger(__name__)

EXPIRY_MARGIN_MS = 30_000
"""An access token is treated as expired this long before its real expiry."""


class AuthFlowController:
    """State machine over :class:`~nowplaying.models.AuthState`.

    Args:
        settings: Client configuration (client id, endpoints, scopes).
        store: Credential storage shared with the rest of the app.
        navigator: Host environment used for redirects and URL rewrites.
        http_client: Optional client for token requests. When omitted a
            short-lived :class:`httpx.AsyncClient` is created per request.

    Example::

        controller = AuthFlowController(settings, store, BrowserNavigator())
        controller.login()
        ...
        navigator.arrive(callback_url)
        await controller.handle_callback_if_present()
    """

    def __init__(
        self,
        settings: Settings,
        store: CredentialStore,
        navigator: NavigationPort,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._navigator = navigator
        self._http_client = http_client
        self._state = AuthState.LOGGED_IN if store.is_logged_in() else AuthState.LOGGED_OUT
        self.last_error: Optional[str] = None

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def store(self) -> CredentialStore:
        return self._store

    def is_logged_in(self) -> bool:
        return self._store.is_logged_in()

    def _set_state(self, state: AuthState) -> None:
        if state is not self._state:
            logger.debug("auth state %s -> %s", self._state.value, state.value)
        self._state = state

    def _fail(self, exc: NowPlayingError) -> None:
        self.last_error = str(exc)
        self._set_state(AuthState.ERROR)

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def _require_client_id(self) -> str:
        if not self._settings.client_id:
            raise ConfigurationError(
                "Missing client id (set NOWPLAYING_CLIENT_ID or "
                "'nowplaying config set client_id ...')"
            )
        return self._settings.client_id

    def redirect_uri(self) -> str:
        """Check the client configuration and return the redirect URI to use.

        Raises:
            ConfigurationError: If the client id or redirect URI is missing.
        """
        self._require_client_id()
        return resolve_redirect_uri(self._settings)

    def authorization_url(self, challenge: str) -> str:
        """Build the authorize endpoint URL for *challenge*.

        Raises:
            ConfigurationError: If the client id or redirect URI is missing.
        """
        params = {
            "response_type": "code",
            "client_id": self._require_client_id(),
            "redirect_uri": resolve_redirect_uri(self._settings),
            "code_challenge_method": "S256",
            "code_challenge": challenge,
            "scope": " ".join(self._settings.scopes),
        }
        return f"{self._settings.authorize_url}?{urlencode(params)}"

    def login(self) -> None:
        """Start a sign-in: store a new verifier and redirect to the provider.

        Configuration is checked before anything is stored, so a failed call
        leaves the credential record untouched.

        Raises:
            ConfigurationError: If the client id or redirect URI is missing.
        """
        self.redirect_uri()

        verifier = generate_verifier(64)
        url = self.authorization_url(derive_challenge(verifier))
        self._store.set_verifier(verifier)
        self._set_state(AuthState.AWAITING_CALLBACK)
        self._navigator.redirect_to(url)

    # ------------------------------------------------------------------ #
    # Callback
    # ------------------------------------------------------------------ #

    def _is_callback(self, path: str) -> bool:
        return path.startswith(self._settings.callback_path)

    async def handle_callback_if_present(self) -> bool:
        """Consume an OAuth callback if the current URL is one.

        Returns:
            ``True`` when a code was exchanged and tokens stored, ``False``
            when the current URL is not a callback or carries no code.

        Raises:
            ProviderAuthError: The provider reported an ``error``.
            MissingVerifierError: No verifier was stored by a prior login.
            TokenExchangeError: The token endpoint refused the code.
            ConfigurationError: Client id or redirect URI missing.
        """
        parsed = urlparse(self._navigator.current_url())
        if not self._is_callback(parsed.path):
            return False

        query = parse_qs(parsed.query)
        try:
            if "error" in query:
                description = query.get("error_description", [None])[0]
                raise ProviderAuthError(query["error"][0], description)

            code = query.get("code", [""])[0]
            if not code:
                return False

            verifier = self._store.get_verifier()
            if not verifier:
                raise MissingVerifierError()

            token = await self._exchange_code(code, verifier)
        except NowPlayingError as exc:
            self._fail(exc)
            raise

        self._store_tokens(token)
        self._store.clear_verifier()
        self._navigator.replace_current_url("/")
        self.last_error = None
        self._set_state(AuthState.LOGGED_IN)
        logger.debug("Authorization code exchanged")
        return True

    async def bootstrap(self) -> AuthState:
        """Start-up sequence: consume a pending callback, then settle the state.

        Failures are not raised; they are kept in :attr:`last_error` and the
        controller ends in :attr:`AuthState.ERROR`, from which the user can
        simply log in again.
        """
        try:
            await self.handle_callback_if_present()
        except NowPlayingError as exc:
            self._fail(exc)
            return self._state
        self._set_state(AuthState.LOGGED_IN if self.is_logged_in() else AuthState.LOGGED_OUT)
        return self._state

    # ------------------------------------------------------------------ #
    # Token endpoint
    # ------------------------------------------------------------------ #

    async def _post_token_form(self, data: dict[str, str]) -> httpx.Response:
        headers = {"Accept": "application/json"}
        if self._http_client is not None:
            return await self._http_client.post(self._settings.token_url, data=data, headers=headers)
        async with httpx.AsyncClient() as client:
            return await client.post(self._settings.token_url, data=data, headers=headers)

    async def _request_token(
        self, data: dict[str, str], error_cls: type[TokenExchangeError] | type[TokenRefreshError]
    ) -> TokenResponse:
        try:
            response = await self._post_token_form(data)
        except httpx.HTTPError as exc:
            raise error_cls(None, str(exc)) from exc

        if not response.is_success:
            raise error_cls(response.status_code, response.text)

        try:
            payload: Any = response.json()
            return TokenResponse.model_validate(payload)
        except ValueError as exc:
            raise error_cls(response.status_code, f"malformed token response: {response.text}") from exc

    async def _exchange_code(self, code: str, verifier: str) -> TokenResponse:
        # Must be the same redirect_uri the authorize request carried.
        data = {
            "client_id": self._require_client_id(),
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": resolve_redirect_uri(self._settings),
            "code_verifier": verifier,
        }
        return await self._request_token(data, TokenExchangeError)

    def _store_tokens(self, token: TokenResponse) -> None:
        self._store.set_access(token.access_token, token.expires_in)
        if token.refresh_token:
            self._store.set_refresh(token.refresh_token)

    # ------------------------------------------------------------------ #
    # Expiry and refresh
    # ------------------------------------------------------------------ #

    def is_access_token_expiring_soon(self) -> bool:
        """True once we are within :data:`EXPIRY_MARGIN_MS` of expiry (or past it)."""
        return self._store.now() > self._store.expires_at() - EXPIRY_MARGIN_MS

    async def refresh(self) -> str:
        """Mint a new access token from the stored refresh token.

        The refresh token itself is only replaced when the provider rotates
        it.

        Returns:
            The new access token.

        Raises:
            NoRefreshTokenError: Nothing to refresh with.
            TokenRefreshError: The token endpoint refused the grant.
        """
        refresh_token = self._store.refresh_token
        try:
            if not refresh_token:
                raise NoRefreshTokenError()
            data = {
                "client_id": self._require_client_id(),
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            }
            token = await self._request_token(data, TokenRefreshError)
        except NowPlayingError as exc:
            self.last_error = str(exc)
            raise

        self._store_tokens(token)
        logger.debug("Access token refreshed")
        return token.access_token

    async def ensure_fresh_token(self) -> str:
        """Refresh if the access token is about to expire, then return it.

        Raises:
            NoRefreshTokenError: The token is expiring and cannot be refreshed.
            TokenRefreshError: The refresh request failed.
        """
        if self.is_access_token_expiring_soon():
            return await self.refresh()
        return self._store.access_token or ""

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self) -> None:
        """Forget every stored credential. Safe to call repeatedly."""
        self._store.clear_all()
        self.last_error = None
        self._set_state(AuthState.LOGGED_OUT)
