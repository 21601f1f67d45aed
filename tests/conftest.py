"""Shared test fixtures for nowplaying.

Provides a controllable clock, in-memory credential storage, a recording
navigator, token-endpoint fakes built on :class:`httpx.MockTransport`, and
config isolation so that tests never touch the real user directories.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from nowplaying.auth.credential_store import CredentialStore, MemoryStorage
from nowplaying.auth.navigation import MemoryNavigator
from nowplaying.models import Settings
from nowplaying.output import OutputFormat, OutputManager, reset_output, set_output

NOW_MS = 1_700_000_000_000.0


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: float = NOW_MS) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    CliRunner swaps sys.stdout/sys.stderr; a manager created during one
    test would otherwise keep writing to closed streams in the next.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Core collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(storage: MemoryStorage, clock: FakeClock) -> CredentialStore:
    return CredentialStore(storage, clock=clock)


@pytest.fixture
def navigator() -> MemoryNavigator:
    return MemoryNavigator()


@pytest.fixture
def settings() -> Settings:
    """Local-host settings: the redirect URI resolves to the loopback callback."""
    return Settings(
        client_id="test-client",
        scopes=["user-read-currently-playing", "user-read-playback-state"],
        authorize_url="https://accounts.example.com/authorize",
        token_url="https://accounts.example.com/api/token",
        api_base_url="https://api.example.com/v1",
    )


# ---------------------------------------------------------------------------
# Token endpoint fakes
# ---------------------------------------------------------------------------


class TokenEndpoint:
    """Records form posts and answers them from a queue of responses."""

    def __init__(self) -> None:
        self.requests: list[dict[str, str]] = []
        self.responses: list[httpx.Response] = []

    def reply(self, status_code: int = 200, **payload: Any) -> None:
        self.responses.append(httpx.Response(status_code, json=payload))

    def reply_text(self, status_code: int, text: str) -> None:
        self.responses.append(httpx.Response(status_code, text=text))

    def handler(self, request: httpx.Request) -> httpx.Response:
        form = httpx.QueryParams(request.content.decode("utf-8"))
        self.requests.append(dict(form))
        return self.responses.pop(0)

    @property
    def last_form(self) -> dict[str, str]:
        return self.requests[-1]


@pytest.fixture
def token_endpoint() -> TokenEndpoint:
    return TokenEndpoint()


@pytest.fixture
def make_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an AsyncClient that routes every request to *handler*."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make


# ---------------------------------------------------------------------------
# Config isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG directories into tmp_path and clear NOWPLAYING_* variables."""
    monkeypatch.setattr("nowplaying.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in [
        "NOWPLAYING_CLIENT_ID",
        "NOWPLAYING_REDIRECT_URI",
        "NOWPLAYING_SCOPES",
        "NOWPLAYING_LYRICS_TOKEN",
        "NOWPLAYING_APP_HOST",
    ]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner()
