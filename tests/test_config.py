"""Tests for nowplaying.config -- XDG paths, atomic writes, settings precedence."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path
from typing import Any

import pytest

from nowplaying.config import (
    LOCAL_REDIRECT_URI,
    atomic_write,
    get_config_dir,
    get_credentials_path,
    get_data_dir,
    load_settings,
    load_settings_file,
    resolve_redirect_uri,
    save_settings,
    settings_path,
)
from nowplaying.exceptions import ConfigurationError
from nowplaying.models import DEFAULT_SCOPES, Settings


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_config_dir_from_env(self, isolated_config: Path) -> None:
        path = get_config_dir()
        assert path == isolated_config / "config" / "nowplaying"
        assert path.is_dir()

    def test_data_dir_from_env(self, isolated_config: Path) -> None:
        path = get_data_dir()
        assert path == isolated_config / "data" / "nowplaying"
        assert path.is_dir()

    def test_config_dir_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("nowplaying.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", staticmethod(lambda: tmp_path))
        assert get_config_dir() == tmp_path / ".config" / "nowplaying"

    def test_data_dir_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("nowplaying.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", staticmethod(lambda: tmp_path))
        assert get_data_dir() == tmp_path / ".local" / "share" / "nowplaying"

    def test_non_xdg_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("nowplaying.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", staticmethod(lambda: tmp_path))
        assert get_config_dir() == tmp_path / ".nowplaying"
        assert get_data_dir() == tmp_path / ".nowplaying" / "data"

    def test_credentials_live_in_data_dir(self, isolated_config: Path) -> None:
        assert get_credentials_path() == isolated_config / "data" / "nowplaying" / "credentials.json"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_writes_content(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "file.json"
        atomic_write(target, '{"a": 1}')
        assert target.read_text() == '{"a": 1}'

    def test_replaces_existing(self, tmp_path: Path) -> None:
        target = tmp_path / "file.json"
        target.write_text("old")
        atomic_write(target, "new")
        assert target.read_text() == "new"

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_mode_applied(self, tmp_path: Path) -> None:
        target = tmp_path / "secret.json"
        atomic_write(target, "{}", mode=0o600)
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        atomic_write(tmp_path / "file.json", "{}")
        assert [p.name for p in tmp_path.iterdir()] == ["file.json"]

    def test_failure_cleans_up(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        def broken_replace(src: str, dst: Any) -> None:
            raise OSError("disk full")

        monkeypatch.setattr("nowplaying.config.os.replace", broken_replace)
        with pytest.raises(OSError, match="disk full"):
            atomic_write(tmp_path / "file.json", "{}")
        assert list(tmp_path.iterdir()) == []


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class TestLoadSettings:
    def test_defaults(self, isolated_config: Path) -> None:
        settings = load_settings()
        assert settings.client_id is None
        assert settings.scopes == DEFAULT_SCOPES
        assert settings.app_host == "localhost"
        assert settings.callback_path == "/callback"

    def test_file_values(self, isolated_config: Path) -> None:
        _write_json(settings_path(), {"client_id": "from-file", "scopes": ["a", "b"]})
        settings = load_settings()
        assert settings.client_id == "from-file"
        assert settings.scopes == ["a", "b"]

    def test_env_overrides_file(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(settings_path(), {"client_id": "from-file"})
        monkeypatch.setenv("NOWPLAYING_CLIENT_ID", "from-env")
        assert load_settings().client_id == "from-env"

    def test_env_scopes_split_on_whitespace(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("NOWPLAYING_SCOPES", "user-read-currently-playing  streaming")
        assert load_settings().scopes == ["user-read-currently-playing", "streaming"]

    def test_empty_env_is_ignored(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(settings_path(), {"client_id": "from-file"})
        monkeypatch.setenv("NOWPLAYING_CLIENT_ID", "")
        assert load_settings().client_id == "from-file"

    def test_all_env_vars(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NOWPLAYING_REDIRECT_URI", "https://np.example.com/callback")
        monkeypatch.setenv("NOWPLAYING_LYRICS_TOKEN", "GT")
        monkeypatch.setenv("NOWPLAYING_APP_HOST", "np.example.com")
        settings = load_settings()
        assert settings.redirect_uri == "https://np.example.com/callback"
        assert settings.lyrics_access_token == "GT"
        assert settings.app_host == "np.example.com"

    def test_invalid_json(self, isolated_config: Path) -> None:
        path = settings_path()
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid config"):
            load_settings()

    def test_not_an_object(self, isolated_config: Path) -> None:
        _write_json(settings_path(), ["client_id"])
        with pytest.raises(ConfigurationError, match="expected a JSON object"):
            load_settings()

    def test_invalid_field(self, isolated_config: Path) -> None:
        _write_json(settings_path(), {"scopes": "not-a-list"})
        with pytest.raises(ConfigurationError, match="Invalid settings"):
            load_settings()

    def test_missing_file_is_empty(self, isolated_config: Path) -> None:
        assert load_settings_file() == {}


class TestSaveSettings:
    def test_round_trip(self, isolated_config: Path) -> None:
        save_settings(Settings(client_id="abc", scopes=["x"]))
        data = json.loads(settings_path().read_text(encoding="utf-8"))
        assert data["client_id"] == "abc"
        assert data["scopes"] == ["x"]
        assert load_settings().client_id == "abc"


# ---------------------------------------------------------------------------
# Redirect URI
# ---------------------------------------------------------------------------


class TestResolveRedirectUri:
    def test_local_host_uses_loopback(self) -> None:
        settings = Settings(redirect_uri="https://ignored.example.com/callback")
        assert resolve_redirect_uri(settings) == LOCAL_REDIRECT_URI
        assert LOCAL_REDIRECT_URI == "http://localhost:5173/callback"

    def test_production_host_uses_configured_uri(self) -> None:
        settings = Settings(app_host="np.example.com", redirect_uri="https://np.example.com/callback")
        assert resolve_redirect_uri(settings) == "https://np.example.com/callback"

    def test_production_host_without_uri(self) -> None:
        with pytest.raises(ConfigurationError, match="Missing redirect uri"):
            resolve_redirect_uri(Settings(app_host="np.example.com"))
